"""Attendance Router - Periods, attendance recording and student reports"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from uwuweb.core.database import get_session
from uwuweb.core.dependencies import get_current_actor, require_roles
from uwuweb.core.exceptions import ValidationError
from uwuweb.core.limits import limiter
from uwuweb.attendance.crud.periods import (
    add_period,
    update_period,
    delete_period,
    list_periods,
)
from uwuweb.attendance.crud.attendance import (
    save_attendance,
    bulk_save_attendance,
    get_student_attendance,
)
from uwuweb.attendance.models.attendance import AttendanceStatus
from uwuweb.attendance.schemas.attendance import (
    AttendanceQuery,
    AttendanceRecordRead,
    AttendanceReport,
    AttendanceSave,
    BulkAttendanceRequest,
    BulkAttendanceResponse,
    PeriodCreate,
    PeriodDeleteResponse,
    PeriodRead,
    PeriodUpdate,
)
from uwuweb.attendance.services.access import AccessPolicy
from uwuweb.attendance.services.file_storage import (
    JustificationFileStorage,
    get_file_storage,
)
from uwuweb.roster.models.roles import RoleType
from uwuweb.roster.schemas.auth import Actor

router = APIRouter(prefix="/attendance", tags=["Attendance"])

staff_only = require_roles(RoleType.teacher, RoleType.admin)


# === Periods ===
@router.post("/periods", response_model=PeriodRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def create_period(
    request: Request,
    period: PeriodCreate,
    actor: Actor = Depends(staff_only),
    db: AsyncSession = Depends(get_session),
):
    """Add a period to a class-subject you teach"""
    return await add_period(db, actor, period, policy=AccessPolicy(db))


@router.put("/periods/{period_id}", response_model=PeriodRead)
@limiter.limit("30/minute")
async def edit_period(
    request: Request,
    period_id: int,
    period_update: PeriodUpdate,
    actor: Actor = Depends(staff_only),
    db: AsyncSession = Depends(get_session),
):
    return await update_period(db, actor, period_id, period_update, policy=AccessPolicy(db))


@router.delete("/periods/{period_id}", response_model=PeriodDeleteResponse)
@limiter.limit("10/minute")
async def remove_period(
    request: Request,
    period_id: int,
    actor: Actor = Depends(staff_only),
    db: AsyncSession = Depends(get_session),
    storage: JustificationFileStorage = Depends(get_file_storage),
):
    """Delete a period and all attendance recorded for it"""
    deleted_records = await delete_period(
        db, actor, period_id, policy=AccessPolicy(db), storage=storage
    )
    return PeriodDeleteResponse(
        success=True,
        message="Period deleted successfully",
        deleted_records=deleted_records,
    )


@router.get("/periods", response_model=List[PeriodRead])
@limiter.limit("30/minute")
async def get_periods(
    request: Request,
    class_subject_id: int = Query(..., gt=0),
    actor: Actor = Depends(staff_only),
    db: AsyncSession = Depends(get_session),
):
    return await list_periods(db, actor, class_subject_id, policy=AccessPolicy(db))


# === Attendance records ===
@router.post("/records", response_model=AttendanceRecordRead)
@limiter.limit("60/minute")
async def record_attendance(
    request: Request,
    data: AttendanceSave,
    actor: Actor = Depends(staff_only),
    db: AsyncSession = Depends(get_session),
    storage: JustificationFileStorage = Depends(get_file_storage),
):
    """
    Record a student's status for a period.

    Updates the existing row if there is one. Setting Present removes any
    justification of the record.
    """
    return await save_attendance(db, actor, data, policy=AccessPolicy(db), storage=storage)


@router.post("/records/bulk", response_model=BulkAttendanceResponse)
@limiter.limit("30/minute")
async def record_attendance_bulk(
    request: Request,
    bulk_request: BulkAttendanceRequest,
    actor: Actor = Depends(staff_only),
    db: AsyncSession = Depends(get_session),
    storage: JustificationFileStorage = Depends(get_file_storage),
):
    """Record statuses for a whole period; nothing is saved if any entry is invalid"""
    records = await bulk_save_attendance(
        db, actor, bulk_request, policy=AccessPolicy(db), storage=storage
    )
    return BulkAttendanceResponse(
        success=True,
        message="Attendance saved successfully",
        saved=len(records),
        records=records,
    )


# === Student report ===
@router.get("/students/{student_id}", response_model=AttendanceReport)
@limiter.limit("30/minute")
async def get_attendance_for_student(
    request: Request,
    student_id: int,
    class_id: Optional[int] = Query(None, gt=0),
    date_from: Optional[date] = Query(None, description="Filter from date"),
    date_to: Optional[date] = Query(None, description="Filter to date"),
    attendance_status: Optional[AttendanceStatus] = Query(
        None, alias="status", description="P, A or L"
    ),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    """Attendance history of a student with totals and attendance rate"""
    try:
        query = AttendanceQuery(
            student_id=student_id,
            class_id=class_id,
            date_from=date_from,
            date_to=date_to,
            status=attendance_status,
        )
    except SchemaValidationError as e:
        raise ValidationError(
            "Invalid attendance query",
            details={"errors": [error["msg"] for error in e.errors()]},
        )

    return await get_student_attendance(db, actor, query, policy=AccessPolicy(db))
