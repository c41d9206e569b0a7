"""Justification Router - Submission, decisions, listing and file download"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from uwuweb.core.database import get_session
from uwuweb.core.dependencies import get_current_actor, require_roles
from uwuweb.core.limits import limiter
from uwuweb.attendance.crud.justifications import (
    submit_justification,
    decide_justification,
    list_justifications,
    get_justification_details,
    open_justification_file,
)
from uwuweb.attendance.models.attendance import JustificationStatus
from uwuweb.attendance.schemas.justifications import (
    DecisionResponse,
    JustificationDecision,
    JustificationDetailResponse,
    JustificationListResponse,
    JustificationSubmitResponse,
)
from uwuweb.attendance.services.access import AccessPolicy
from uwuweb.attendance.services.file_storage import (
    JustificationFileStorage,
    get_file_storage,
)
from uwuweb.roster.models.roles import RoleType
from uwuweb.roster.schemas.auth import Actor

router = APIRouter(prefix="/justifications", tags=["Justifications"])


@router.post("/submit", response_model=JustificationSubmitResponse)
@limiter.limit("10/minute")
async def submit(
    request: Request,
    attendance_id: int = Form(..., gt=0),
    justification_text: Optional[str] = Form(None, max_length=2000),
    justification_file: Optional[UploadFile] = File(None),
    actor: Actor = Depends(require_roles(RoleType.student, RoleType.admin)),
    db: AsyncSession = Depends(get_session),
    storage: JustificationFileStorage = Depends(get_file_storage),
):
    """
    Submit a justification for an absence or late arrival.

    Accepts text, a PDF/JPEG/PNG file, or both. A rejected justification
    can be submitted again; an approved one cannot.
    """
    file_data = None
    if justification_file is not None and justification_file.filename:
        file_data = await storage.read_upload(justification_file)

    return await submit_justification(
        db,
        actor,
        attendance_id,
        text=justification_text,
        file_data=file_data,
        policy=AccessPolicy(db),
        storage=storage,
    )


@router.post("/decide", response_model=DecisionResponse)
@limiter.limit("30/minute")
async def decide(
    request: Request,
    decision: JustificationDecision,
    actor: Actor = Depends(require_roles(RoleType.teacher, RoleType.admin)),
    db: AsyncSession = Depends(get_session),
):
    """Approve or reject a justification; rejecting requires a reason"""
    return await decide_justification(
        db,
        actor,
        decision.attendance_id,
        decision.approved,
        decision.reject_reason,
        policy=AccessPolicy(db),
    )


@router.get("", response_model=JustificationListResponse)
@limiter.limit("30/minute")
async def get_justifications(
    request: Request,
    student_id: Optional[int] = Query(None, gt=0, description="Filter by student"),
    status: Optional[JustificationStatus] = Query(
        None, description="Filter by state: pending, approved or rejected"
    ),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    """
    Justifications visible to the current user, newest first.

    Teachers use status=pending to see what is waiting for a decision.
    """
    justifications = await list_justifications(db, actor, student_id, status)
    return JustificationListResponse(justifications=justifications)


@router.get("/{attendance_id}", response_model=JustificationDetailResponse)
@limiter.limit("30/minute")
async def get_justification(
    request: Request,
    attendance_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    justification = await get_justification_details(
        db, actor, attendance_id, policy=AccessPolicy(db)
    )
    return JustificationDetailResponse(justification=justification)


@router.get("/{attendance_id}/file")
@limiter.limit("30/minute")
async def download_justification_file(
    request: Request,
    attendance_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    storage: JustificationFileStorage = Depends(get_file_storage),
):
    """Download the supporting file of a justification"""
    path, download_name, media_type = await open_justification_file(
        db, actor, attendance_id, policy=AccessPolicy(db), storage=storage
    )
    return FileResponse(path, media_type=media_type, filename=download_name)
