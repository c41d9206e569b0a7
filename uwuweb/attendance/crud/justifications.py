"""Justification CRUD - Submission, decisions and role-scoped read models"""
import logging
from pathlib import Path
from typing import List, Optional, Tuple

from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from uwuweb.core.database import db_operation, with_db_transaction
from uwuweb.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from uwuweb.core.logging_utils import log_business_event
from uwuweb.attendance.models.attendance import AttendanceRecord, JustificationStatus
from uwuweb.attendance.models.periods import Period
from uwuweb.attendance.schemas.justifications import (
    DecisionResponse,
    JustificationDetail,
    JustificationSubmitResponse,
    JustificationSummary,
)
from uwuweb.attendance.services import justification_state
from uwuweb.attendance.services.access import AccessPolicy
from uwuweb.attendance.services.file_storage import (
    JustificationFileStorage,
    build_download_name,
    file_storage,
)
from uwuweb.roster.models.classes import ClassSubject, Enrollment, SchoolClass, Subject
from uwuweb.roster.models.roles import RoleType
from uwuweb.roster.models.users import Student, StudentParent, Teacher, User
from uwuweb.roster.schemas.auth import Actor

logger = logging.getLogger(__name__)


def _validate_attendance_id(attendance_id: int) -> None:
    if attendance_id is None or attendance_id <= 0:
        raise ValidationError("Attendance ID must be positive")


@db_operation
async def get_attendance_record(
    session: AsyncSession, attendance_id: int
) -> AttendanceRecord:
    """Get attendance record by ID"""
    _validate_attendance_id(attendance_id)

    result = await session.execute(
        select(AttendanceRecord).where(AttendanceRecord.id == attendance_id)
    )
    record = result.scalar_one_or_none()

    if not record:
        raise NotFoundError("Attendance record", str(attendance_id))

    return record


def _justification_query():
    """Record joined with period, subject, student and class"""
    return (
        select(AttendanceRecord, Period, ClassSubject, Subject, Student, SchoolClass)
        .join(Period, AttendanceRecord.period_id == Period.id)
        .join(ClassSubject, Period.class_subject_id == ClassSubject.id)
        .join(Subject, ClassSubject.subject_id == Subject.id)
        .join(Enrollment, AttendanceRecord.enrollment_id == Enrollment.id)
        .join(Student, Enrollment.student_id == Student.id)
        .join(SchoolClass, Enrollment.class_id == SchoolClass.id)
    )


def _summary_fields(record, period, subject, student, school_class) -> dict:
    state = justification_state.current_state(record)
    return dict(
        id=record.id,
        enrollment_id=record.enrollment_id,
        period_id=record.period_id,
        student_id=student.id,
        first_name=student.first_name,
        last_name=student.last_name,
        class_code=school_class.class_code,
        subject_name=subject.name,
        period_date=period.period_date,
        period_label=period.period_label,
        formatted_date=period.period_date.strftime("%d.%m.%Y"),
        status=record.status,
        status_label=justification_state.status_label(record.status),
        justification_text=record.justification_text,
        has_justification_file=bool(record.justification_file),
        justification_status=state,
        approved=record.approved,
        approval_status=state.value,
        approval_label=justification_state.approval_label(state),
        reject_reason=record.reject_reason,
    )


# === Submission ===
@db_operation
async def submit_justification(
    session: AsyncSession,
    actor: Actor,
    attendance_id: int,
    text: Optional[str] = None,
    file_data: Optional[bytes] = None,
    policy: Optional[AccessPolicy] = None,
    storage: Optional[JustificationFileStorage] = None,
) -> JustificationSubmitResponse:
    """
    Submit (or resubmit) a justification for an absence or late arrival.

    The file is validated and stored before the record is updated; if
    anything fails afterwards the stored file is removed and the record
    stays as it was.
    """
    _validate_attendance_id(attendance_id)
    policy = policy or AccessPolicy(session)
    storage = storage or file_storage

    record = await get_attendance_record(session, attendance_id)

    if not await policy.can_submit(actor, record):
        raise AuthorizationError(
            "You are not allowed to submit a justification for this record"
        )

    previous_file = record.justification_file
    stored_name = storage.save(attendance_id, file_data) if file_data else None

    async def _submit_operation(session: AsyncSession):
        justification_state.submit(record, text, stored_name)
        await session.flush()
        return record

    try:
        await with_db_transaction(session, _submit_operation)
    except Exception:
        if stored_name:
            storage.delete(stored_name)
        raise

    # Новый файл заменил старый
    if stored_name and previous_file and previous_file != stored_name:
        storage.delete(previous_file)

    log_business_event(
        "justification_submitted",
        "attendance",
        attendance_id,
        {
            "user_id": actor.user_id,
            "role": actor.role.value,
            "file_uploaded": bool(stored_name),
        },
    )

    return JustificationSubmitResponse(
        success=True,
        message="Justification submitted successfully",
        file_uploaded=bool(stored_name),
    )


# === Decisions ===
@db_operation
async def decide_justification(
    session: AsyncSession,
    actor: Actor,
    attendance_id: int,
    approved: bool,
    reject_reason: Optional[str] = None,
    policy: Optional[AccessPolicy] = None,
) -> DecisionResponse:
    """Approve or reject a submitted justification"""
    _validate_attendance_id(attendance_id)
    if not approved and not (reject_reason and reject_reason.strip()):
        raise ValidationError("Reject reason is required when rejecting a justification")

    policy = policy or AccessPolicy(session)
    record = await get_attendance_record(session, attendance_id)

    if not await policy.can_decide(actor, record):
        raise AuthorizationError("You are not allowed to decide on this justification")

    async def _decide_operation(session: AsyncSession):
        justification_state.decide(record, approved, reject_reason)
        await session.flush()
        return record

    await with_db_transaction(session, _decide_operation)

    event = "justification_approved" if approved else "justification_rejected"
    log_business_event(
        event,
        "attendance",
        attendance_id,
        {"user_id": actor.user_id, "role": actor.role.value},
    )

    message = (
        "Justification approved successfully"
        if approved
        else "Justification rejected successfully"
    )
    return DecisionResponse(success=True, message=message)


async def approve_justification(
    session: AsyncSession,
    actor: Actor,
    attendance_id: int,
    policy: Optional[AccessPolicy] = None,
) -> DecisionResponse:
    return await decide_justification(session, actor, attendance_id, True, None, policy)


async def reject_justification(
    session: AsyncSession,
    actor: Actor,
    attendance_id: int,
    reason: str,
    policy: Optional[AccessPolicy] = None,
) -> DecisionResponse:
    return await decide_justification(session, actor, attendance_id, False, reason, policy)


# === Read models ===
@db_operation
async def list_justifications(
    session: AsyncSession,
    actor: Actor,
    student_id: Optional[int] = None,
    status: Optional[JustificationStatus] = None,
) -> List[JustificationSummary]:
    """
    Submitted justifications visible to the actor, newest first.

    Admin sees all, a teacher sees the class-subjects they teach, a
    student their own and a parent those of linked children.
    """
    if student_id is not None and student_id <= 0:
        raise ValidationError("Student ID must be positive")

    if status == JustificationStatus.none:
        raise ValidationError("Status filter must be pending, approved or rejected")

    query = _justification_query().where(
        AttendanceRecord.justification_status != JustificationStatus.none
    )

    if actor.role == RoleType.teacher and actor.teacher_id:
        query = query.where(ClassSubject.teacher_id == actor.teacher_id)
    elif actor.role == RoleType.student and actor.student_id:
        query = query.where(Enrollment.student_id == actor.student_id)
    elif actor.role == RoleType.parent and actor.parent_id:
        query = query.where(
            Enrollment.student_id.in_(
                select(StudentParent.student_id).where(
                    StudentParent.parent_id == actor.parent_id
                )
            )
        )
    elif not actor.is_admin:
        return []

    if student_id:
        query = query.where(Enrollment.student_id == student_id)

    if status:
        query = query.where(AttendanceRecord.justification_status == status)

    query = query.order_by(
        Period.period_date.desc(), Student.last_name, Student.first_name, Period.id.desc()
    )

    result = await session.execute(query)
    return [
        JustificationSummary(
            **_summary_fields(record, period, subject, student, school_class)
        )
        for record, period, class_subject, subject, student, school_class in result.all()
    ]


@db_operation
async def get_justification_details(
    session: AsyncSession,
    actor: Actor,
    attendance_id: int,
    policy: Optional[AccessPolicy] = None,
) -> JustificationDetail:
    """Full justification view with the teacher of the class-subject"""
    policy = policy or AccessPolicy(session)
    record = await get_attendance_record(session, attendance_id)

    if not await policy.can_view(actor, record):
        raise AuthorizationError("You do not have permission to view this justification")

    if justification_state.current_state(record) == JustificationStatus.none:
        raise NotFoundError("Justification", str(attendance_id))

    result = await session.execute(
        _justification_query()
        .add_columns(User.username)
        .join(Teacher, ClassSubject.teacher_id == Teacher.id)
        .join(User, Teacher.user_id == User.id)
        .where(AttendanceRecord.id == attendance_id)
    )
    row = result.first()
    if not row:
        raise NotFoundError("Justification", str(attendance_id))

    record, period, class_subject, subject, student, school_class, teacher_username = row

    return JustificationDetail(
        **_summary_fields(record, period, subject, student, school_class),
        class_subject_id=class_subject.id,
        teacher_id=class_subject.teacher_id,
        teacher_username=teacher_username,
        justification_file=record.justification_file,
    )


@db_operation
async def open_justification_file(
    session: AsyncSession,
    actor: Actor,
    attendance_id: int,
    policy: Optional[AccessPolicy] = None,
    storage: Optional[JustificationFileStorage] = None,
) -> Tuple[Path, str, str]:
    """
    Locate the justification file for download.

    Returns:
        (path on disk, download name, media type)
    """
    policy = policy or AccessPolicy(session)
    storage = storage or file_storage
    record = await get_attendance_record(session, attendance_id)

    if not await policy.can_view(actor, record):
        raise AuthorizationError("You do not have permission to view this justification")

    if not record.justification_file:
        raise NotFoundError("Justification file")

    path = storage.resolve(record.justification_file)

    result = await session.execute(
        select(Student.first_name, Student.last_name, SchoolClass.class_code)
        .join(Enrollment, Enrollment.student_id == Student.id)
        .join(SchoolClass, Enrollment.class_id == SchoolClass.id)
        .where(Enrollment.id == record.enrollment_id)
    )
    first_name, last_name, class_code = result.one()

    download_name = build_download_name(
        first_name, last_name, class_code, record.justification_file
    )

    logger.info(
        f"Justification file served for attendance {attendance_id}",
        extra={"attendance_id": attendance_id, "user_id": actor.user_id},
    )
    return path, download_name, storage.media_type(record.justification_file)
