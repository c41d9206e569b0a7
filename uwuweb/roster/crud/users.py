"""Identity & Role Directory - users, credentials and actor resolution"""
from typing import Optional

import bcrypt
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from uwuweb.core.database import db_operation
from uwuweb.core.exceptions import AuthenticationError, NotFoundError, ValidationError
from uwuweb.roster.models.roles import Role, RoleType
from uwuweb.roster.models.users import User, Teacher, Student, Parent
from uwuweb.roster.schemas.auth import Actor

# Role -> profile table holding the role-scoped id
_PROFILE_MODELS = {
    RoleType.teacher: Teacher,
    RoleType.student: Student,
    RoleType.parent: Parent,
}


def hash_password(password: str) -> str:
    """Hash a password with bcrypt"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, pass_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), pass_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


@db_operation
async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[User]:
    """Get user by ID with role"""
    if user_id <= 0:
        raise ValidationError("User ID must be positive")

    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


@db_operation
async def get_user_by_username(session: AsyncSession, username: str) -> Optional[User]:
    """Get user by username with role"""
    result = await session.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def authenticate_user(session: AsyncSession, username: str, password: str) -> User:
    """Check credentials and return the user"""
    user = await get_user_by_username(session, username)

    # Same message for unknown user and wrong password
    if not user or not verify_password(password, user.pass_hash):
        raise AuthenticationError("Invalid username or password")

    return user


@db_operation
async def resolve_actor(session: AsyncSession, user: User) -> Actor:
    """
    Resolve the role-scoped id of a user.

    Admins have no profile; every other role must have exactly one profile
    row, otherwise the account is unusable.
    """
    # The role relationship may be unloaded on a detached or freshly built user
    role = (
        await session.execute(select(Role.code).where(Role.id == user.role_id))
    ).scalar_one()
    if role == RoleType.admin:
        return Actor(role=role, user_id=user.id)

    profile_model = _PROFILE_MODELS[role]
    result = await session.execute(
        select(profile_model.id).where(profile_model.user_id == user.id)
    )
    scoped_id = result.scalar_one_or_none()

    if scoped_id is None:
        raise NotFoundError(f"{role.value.capitalize()} profile", str(user.id))

    return Actor(role=role, user_id=user.id, scoped_id=scoped_id)
