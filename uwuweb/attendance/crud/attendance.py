"""Attendance CRUD - Recording statuses and student attendance reports"""
import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from uwuweb.core.database import db_operation, with_db_transaction
from uwuweb.core.exceptions import (
    AuthorizationError,
    BaseAppException,
    NotFoundError,
    ValidationError,
)
from uwuweb.core.logging_utils import log_business_event
from uwuweb.attendance.models.attendance import AttendanceRecord, AttendanceStatus
from uwuweb.attendance.models.periods import Period
from uwuweb.attendance.schemas.attendance import (
    AttendanceSave,
    AttendanceQuery,
    AttendanceRecordRead,
    AttendanceReport,
    BulkAttendanceRequest,
)
from uwuweb.attendance.services import justification_state
from uwuweb.attendance.services.access import AccessPolicy
from uwuweb.attendance.services.file_storage import JustificationFileStorage, file_storage
from uwuweb.attendance.services.summary import summarize_attendance
from uwuweb.roster.models.classes import ClassSubject, Enrollment, SchoolClass, Subject
from uwuweb.roster.schemas.auth import Actor

logger = logging.getLogger(__name__)


def build_record_read(
    record: AttendanceRecord,
    period: Period,
    subject_name: Optional[str] = None,
    class_code: Optional[str] = None,
) -> AttendanceRecordRead:
    state = justification_state.current_state(record)
    return AttendanceRecordRead(
        id=record.id,
        enrollment_id=record.enrollment_id,
        period_id=record.period_id,
        period_date=period.period_date,
        period_label=period.period_label,
        class_subject_id=period.class_subject_id,
        subject_name=subject_name,
        class_code=class_code,
        status=record.status,
        status_label=justification_state.status_label(record.status),
        justification_text=record.justification_text,
        has_justification_file=bool(record.justification_file),
        justification_status=state,
        approval_label=justification_state.approval_label(state),
        reject_reason=record.reject_reason,
    )


async def _load_period_with_class(session: AsyncSession, period_id: int) -> Period:
    if period_id <= 0:
        raise ValidationError("Period ID must be positive")

    result = await session.execute(
        select(Period)
        .options(
            selectinload(Period.class_subject).selectinload(ClassSubject.subject),
            selectinload(Period.class_subject).selectinload(ClassSubject.school_class),
        )
        .where(Period.id == period_id)
        .execution_options(populate_existing=True)
    )
    period = result.scalar_one_or_none()
    if not period:
        raise NotFoundError("Period", str(period_id))
    return period


async def _check_entry(
    session: AsyncSession,
    actor: Actor,
    period: Period,
    enrollment_id: int,
    policy: AccessPolicy,
) -> Optional[BaseAppException]:
    """Problem with one (period, enrollment) pair, or None if it can be saved"""
    enrollment = await session.get(Enrollment, enrollment_id)
    if not enrollment:
        return NotFoundError("Enrollment", str(enrollment_id))

    if enrollment.class_id != period.class_subject.class_id:
        return ValidationError(
            f"Enrollment {enrollment_id} does not belong to the class of this period"
        )

    if not await policy.teacher_owns_enrollment(actor, enrollment_id):
        return AuthorizationError(
            f"You are not allowed to record attendance for enrollment {enrollment_id}"
        )

    return None


async def _find_record(
    session: AsyncSession, period_id: int, enrollment_id: int
) -> Optional[AttendanceRecord]:
    result = await session.execute(
        select(AttendanceRecord).where(
            and_(
                AttendanceRecord.period_id == period_id,
                AttendanceRecord.enrollment_id == enrollment_id,
            )
        )
    )
    return result.scalar_one_or_none()


async def _upsert_record(
    session: AsyncSession, period_id: int, enrollment_id: int, status: AttendanceStatus
) -> Tuple[AttendanceRecord, bool, Optional[str]]:
    """
    Insert or update one row; Present clears any justification in the same update.

    Returns the row, whether it is new, and the stored file name that the
    update detached from the row (to be removed after the commit).
    """
    record = await _find_record(session, period_id, enrollment_id)
    created = record is None

    if created:
        record = AttendanceRecord(
            period_id=period_id,
            enrollment_id=enrollment_id,
            status=status,
        )
        session.add(record)

    dropped_file = None
    record.status = status
    if status == AttendanceStatus.present:
        dropped_file = record.justification_file
        justification_state.clear_justification(record)

    return record, created, dropped_file


async def _run_upsert(session: AsyncSession, operation):
    """
    Run an upsert transaction, once more if a concurrent request inserted
    one of the rows between our select and our flush.
    """
    try:
        return await with_db_transaction(session, operation)
    except IntegrityError:
        # The unique (enrollment, period) row exists now, the retry updates it
        logger.warning("Attendance row inserted concurrently, retrying as update")
        return await with_db_transaction(session, operation)


def _remove_dropped_files(storage: JustificationFileStorage, stored_files) -> None:
    for stored_name in stored_files:
        if stored_name:
            storage.delete(stored_name)


@db_operation
async def save_attendance(
    session: AsyncSession,
    actor: Actor,
    data: AttendanceSave,
    policy: Optional[AccessPolicy] = None,
    storage: Optional[JustificationFileStorage] = None,
) -> AttendanceRecordRead:
    """Record a student's status for a period (insert or update)"""
    policy = policy or AccessPolicy(session)
    storage = storage or file_storage
    period = await _load_period_with_class(session, data.period_id)

    if not await policy.teacher_owns_period(actor, data.period_id):
        raise AuthorizationError("You do not teach this period")

    problem = await _check_entry(session, actor, period, data.enrollment_id, policy)
    if problem:
        raise problem

    async def _save_operation(session: AsyncSession):
        record, created, dropped_file = await _upsert_record(
            session, data.period_id, data.enrollment_id, data.status
        )
        await session.flush()
        return record, created, dropped_file

    record, created, dropped_file = await _run_upsert(session, _save_operation)
    _remove_dropped_files(storage, [dropped_file])

    log_business_event(
        "attendance_recorded" if created else "attendance_updated",
        "attendance",
        record.id,
        {"status": data.status.value, "user_id": actor.user_id},
    )

    # Rollback of a retried attempt expires the preloaded period
    period = await _load_period_with_class(session, data.period_id)
    return build_record_read(
        record,
        period,
        period.class_subject.subject.name,
        period.class_subject.school_class.class_code,
    )


@db_operation
async def bulk_save_attendance(
    session: AsyncSession,
    actor: Actor,
    request: BulkAttendanceRequest,
    policy: Optional[AccessPolicy] = None,
    storage: Optional[JustificationFileStorage] = None,
) -> List[AttendanceRecordRead]:
    """
    Record statuses for many students of one period.

    All or nothing: every entry is checked first, and a single invalid
    entry aborts the batch with a ValidationError listing all problems.
    """
    policy = policy or AccessPolicy(session)
    storage = storage or file_storage
    period = await _load_period_with_class(session, request.period_id)

    if not await policy.teacher_owns_period(actor, request.period_id):
        raise AuthorizationError("You do not teach this period")

    errors: List[Dict[str, object]] = []
    for index, entry in enumerate(request.entries):
        problem = await _check_entry(session, actor, period, entry.enrollment_id, policy)
        if problem:
            errors.append(
                {
                    "index": index,
                    "enrollment_id": entry.enrollment_id,
                    "error": problem.error_code,
                    "message": problem.message,
                }
            )

    if errors:
        raise ValidationError(
            f"{len(errors)} of {len(request.entries)} entries are invalid, nothing was saved",
            details={"errors": errors},
        )

    async def _bulk_save_operation(session: AsyncSession):
        records, dropped_files = [], []
        for entry in request.entries:
            record, _, dropped_file = await _upsert_record(
                session, request.period_id, entry.enrollment_id, entry.status
            )
            records.append(record)
            dropped_files.append(dropped_file)
        await session.flush()
        return records, dropped_files

    records, dropped_files = await _run_upsert(session, _bulk_save_operation)
    _remove_dropped_files(storage, dropped_files)

    log_business_event(
        "attendance_bulk_saved",
        "period",
        request.period_id,
        {"saved": len(records), "user_id": actor.user_id},
    )

    period = await _load_period_with_class(session, request.period_id)
    subject_name = period.class_subject.subject.name
    class_code = period.class_subject.school_class.class_code
    return [build_record_read(record, period, subject_name, class_code) for record in records]


@db_operation
async def get_student_attendance(
    session: AsyncSession,
    actor: Actor,
    query: AttendanceQuery,
    policy: Optional[AccessPolicy] = None,
) -> AttendanceReport:
    """Attendance history of a student with summary, newest first"""
    policy = policy or AccessPolicy(session)

    if not await policy.can_view_student(actor, query.student_id):
        raise AuthorizationError("You are not allowed to view this student's attendance")

    statement = (
        select(AttendanceRecord, Period, Subject.name, SchoolClass.class_code)
        .join(Period, AttendanceRecord.period_id == Period.id)
        .join(ClassSubject, Period.class_subject_id == ClassSubject.id)
        .join(Subject, ClassSubject.subject_id == Subject.id)
        .join(Enrollment, AttendanceRecord.enrollment_id == Enrollment.id)
        .join(SchoolClass, Enrollment.class_id == SchoolClass.id)
        .where(Enrollment.student_id == query.student_id)
    )

    if query.class_id:
        statement = statement.where(Enrollment.class_id == query.class_id)
    if query.date_from:
        statement = statement.where(Period.period_date >= query.date_from)
    if query.date_to:
        statement = statement.where(Period.period_date <= query.date_to)
    if query.status:
        statement = statement.where(AttendanceRecord.status == query.status)

    statement = statement.order_by(Period.period_date.desc(), Period.id.desc())

    result = await session.execute(statement)
    records = [
        build_record_read(record, period, subject_name, class_code)
        for record, period, subject_name, class_code in result.all()
    ]

    return AttendanceReport(
        student_id=query.student_id,
        records=records,
        summary=summarize_attendance(records),
    )
