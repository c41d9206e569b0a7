import asyncio
import logging

from sqlalchemy import select, func
from uwuweb.core.config import (
    DEFAULT_ADMIN_USERNAME,
    DEFAULT_ADMIN_PASSWORD,
    ENVIRONMENT,
)
from uwuweb.core.database import async_session, db_manager, db_operation, engine, Base
from uwuweb.core.exceptions import StorageError, ConfigurationError
from uwuweb.roster.crud.users import hash_password
from uwuweb.roster.models import Role, RoleType, User

# Регистрация таблиц посещаемости в metadata
import uwuweb.attendance.models  # noqa: F401

logger = logging.getLogger(__name__)

ROLE_NAMES = {
    RoleType.admin: "Administrator",
    RoleType.teacher: "Teacher",
    RoleType.student: "Student",
    RoleType.parent: "Parent",
}


@db_operation
async def create_initial_roles(session_factory=async_session):
    """Create missing roles"""
    async with session_factory() as session:
        result = await session.execute(select(Role.code))
        existing = set(result.scalars().all())

        missing = [code for code in RoleType if code not in existing]
        if not missing:
            logger.info(f"Roles already exist ({len(existing)} found), skipping creation")
            return 0

        logger.info("Creating initial roles...")
        for code in missing:
            session.add(Role(code=code, name=ROLE_NAMES[code]))

        await session.commit()
        logger.info(f"Initial roles created successfully: {[c.value for c in missing]}")
        return len(missing)


@db_operation
async def create_default_admin(
    session_factory=async_session,
    username: str = DEFAULT_ADMIN_USERNAME,
    password: str = DEFAULT_ADMIN_PASSWORD,
):
    """Create the default administrator if configured and not present"""
    if not username or not password:
        logger.info("Default admin is not configured, skipping")
        return None

    async with session_factory() as session:
        result = await session.execute(select(User).where(User.username == username))
        if result.scalar_one_or_none():
            logger.info(f"Default admin '{username}' already exists")
            return None

        role_result = await session.execute(
            select(Role).where(Role.code == RoleType.admin)
        )
        admin_role = role_result.scalar_one_or_none()
        if not admin_role:
            raise StorageError("Admin role is missing, run role initialization first")

        admin = User(
            username=username,
            pass_hash=hash_password(password),
            role_id=admin_role.id,
        )
        session.add(admin)
        await session.commit()

        logger.info(f"✅ Default admin '{username}' created")
        return admin.id


async def init_database():
    """Initialize database with tables and initial data"""
    try:
        logger.info("Starting database initialization...")

        await db_manager.check_connection()
        logger.info("✅ Database connection verified")

        await db_manager.create_tables()
        logger.info("✅ Database tables created/verified")

        await create_initial_roles()
        await create_default_admin()
        logger.info("✅ Initial data created/verified")

        logger.info("🎉 Database initialization completed successfully")

    except StorageError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during database initialization: {e}")
        raise StorageError(f"Database initialization failed: {str(e)}")


async def verify_database_setup():
    """Verify that database is properly set up"""
    async with async_session() as session:
        roles_count = await session.execute(select(func.count(Role.id)))
        count = roles_count.scalar()

    expected_roles = len(RoleType)
    if count != expected_roles:
        raise StorageError(f"Expected {expected_roles} roles, found {count}")

    logger.info(f"✅ Database verification passed: {count} roles found")
    return True


async def reset_database():
    """Reset database (for development/testing only)"""
    if ENVIRONMENT not in ["development", "dev", "test"]:
        raise ConfigurationError(
            "ENVIRONMENT",
            "Database reset is only allowed in development or test environments",
        )

    logger.warning("🚨 RESETTING DATABASE - ALL DATA WILL BE LOST!")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.info("✅ All tables dropped")

    await init_database()
    logger.info("✅ Database reset completed")


if __name__ == "__main__":
    import sys

    async def main():
        command = sys.argv[1] if len(sys.argv) > 1 else "init"

        if command == "init":
            await init_database()
        elif command == "verify":
            await verify_database_setup()
        elif command == "reset":
            await reset_database()
        else:
            print(f"Unknown command: {command}")
            print("Available commands: init, verify, reset")
            sys.exit(1)

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Database initialization cancelled by user")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        sys.exit(1)
