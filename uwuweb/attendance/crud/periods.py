"""Period CRUD - Class-subject sessions and their cascade delete"""
from typing import List, Optional

from sqlalchemy import delete, func
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from uwuweb.core.database import db_operation, with_db_transaction
from uwuweb.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from uwuweb.core.logging_utils import log_business_event
from uwuweb.attendance.models.attendance import AttendanceRecord
from uwuweb.attendance.models.periods import Period
from uwuweb.attendance.schemas.attendance import PeriodCreate, PeriodUpdate
from uwuweb.attendance.services.access import AccessPolicy
from uwuweb.attendance.services.file_storage import JustificationFileStorage, file_storage
from uwuweb.roster.models.classes import ClassSubject
from uwuweb.roster.schemas.auth import Actor


@db_operation
async def get_period_by_id(session: AsyncSession, period_id: int) -> Period:
    """Get period by ID"""
    if period_id <= 0:
        raise ValidationError("Period ID must be positive")

    result = await session.execute(select(Period).where(Period.id == period_id))
    period = result.scalar_one_or_none()

    if not period:
        raise NotFoundError("Period", str(period_id))

    return period


@db_operation
async def add_period(
    session: AsyncSession,
    actor: Actor,
    period: PeriodCreate,
    policy: Optional[AccessPolicy] = None,
) -> Period:
    """Add a period to a class-subject taught by the actor"""
    policy = policy or AccessPolicy(session)

    class_subject = await session.get(ClassSubject, period.class_subject_id)
    if not class_subject:
        raise NotFoundError("Class subject", str(period.class_subject_id))

    if not await policy.teacher_owns_class_subject(actor, period.class_subject_id):
        raise AuthorizationError("You do not teach this class subject")

    async def _add_period_operation(session: AsyncSession):
        db_period = Period(**period.model_dump())
        session.add(db_period)
        await session.flush()
        return db_period

    db_period = await with_db_transaction(session, _add_period_operation)
    await session.refresh(db_period)

    log_business_event(
        "period_added",
        "period",
        db_period.id,
        {"class_subject_id": db_period.class_subject_id, "user_id": actor.user_id},
    )
    return db_period


@db_operation
async def update_period(
    session: AsyncSession,
    actor: Actor,
    period_id: int,
    period_update: PeriodUpdate,
    policy: Optional[AccessPolicy] = None,
) -> Period:
    """Change date and label of a period"""
    policy = policy or AccessPolicy(session)
    db_period = await get_period_by_id(session, period_id)

    if not await policy.teacher_owns_period(actor, period_id):
        raise AuthorizationError("You do not teach this period")

    async def _update_period_operation(session: AsyncSession):
        for field, value in period_update.model_dump().items():
            setattr(db_period, field, value)
        await session.flush()
        return db_period

    db_period = await with_db_transaction(session, _update_period_operation)
    await session.refresh(db_period)

    log_business_event(
        "period_updated", "period", period_id, {"user_id": actor.user_id}
    )
    return db_period


@db_operation
async def delete_period(
    session: AsyncSession,
    actor: Actor,
    period_id: int,
    policy: Optional[AccessPolicy] = None,
    storage: Optional[JustificationFileStorage] = None,
) -> int:
    """
    Delete a period together with its attendance rows.

    Both deletes run in one transaction: either the period and all its
    rows are gone, or nothing changed. Justification files of the removed
    rows are deleted from disk only after the commit.

    Returns:
        Number of attendance rows removed
    """
    policy = policy or AccessPolicy(session)
    storage = storage or file_storage
    db_period = await get_period_by_id(session, period_id)

    if not await policy.teacher_owns_period(actor, period_id):
        raise AuthorizationError("You do not teach this period")

    async def _delete_period_operation(session: AsyncSession):
        count_result = await session.execute(
            select(func.count(AttendanceRecord.id)).where(
                AttendanceRecord.period_id == period_id
            )
        )
        deleted_records = count_result.scalar() or 0

        files_result = await session.execute(
            select(AttendanceRecord.justification_file).where(
                AttendanceRecord.period_id == period_id,
                AttendanceRecord.justification_file.isnot(None),
            )
        )
        stored_files = files_result.scalars().all()

        await session.execute(
            delete(AttendanceRecord).where(AttendanceRecord.period_id == period_id)
        )
        await session.execute(delete(Period).where(Period.id == db_period.id))
        return deleted_records, stored_files

    deleted_records, stored_files = await with_db_transaction(
        session, _delete_period_operation
    )

    for stored_name in stored_files:
        storage.delete(stored_name)

    log_business_event(
        "period_deleted",
        "period",
        period_id,
        {
            "deleted_records": deleted_records,
            "deleted_files": len(stored_files),
            "user_id": actor.user_id,
        },
    )
    return deleted_records


@db_operation
async def list_periods(
    session: AsyncSession,
    actor: Actor,
    class_subject_id: int,
    policy: Optional[AccessPolicy] = None,
) -> List[Period]:
    """Periods of a class-subject, newest first"""
    if class_subject_id <= 0:
        raise ValidationError("Class subject ID must be positive")

    policy = policy or AccessPolicy(session)
    if not await policy.teacher_owns_class_subject(actor, class_subject_id):
        raise AuthorizationError("You do not teach this class subject")

    result = await session.execute(
        select(Period)
        .where(Period.class_subject_id == class_subject_id)
        .order_by(Period.period_date.desc(), Period.id.desc())
    )
    return result.scalars().all()
