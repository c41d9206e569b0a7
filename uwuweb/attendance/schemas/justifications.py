"""Justification Schemas"""
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from uwuweb.attendance.models.attendance import AttendanceStatus, JustificationStatus


class JustificationSubmitResponse(BaseModel):
    """Response after submitting a justification"""

    success: bool
    message: str
    file_uploaded: bool = False


class JustificationDecision(BaseModel):
    """Teacher decision on a pending justification"""

    attendance_id: int = Field(..., gt=0)
    approved: bool
    reject_reason: Optional[str] = Field(None, max_length=1000)

    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "attendance_id": 42,
                "approved": False,
                "reject_reason": "No medical certificate attached",
            }
        },
    )

    @model_validator(mode="after")
    def validate_reject_reason(self):
        if not self.approved and not self.reject_reason:
            raise ValueError("reject_reason is required when approved is false")
        return self


class DecisionResponse(BaseModel):
    success: bool
    message: str


class JustificationSummary(BaseModel):
    """Justification list item"""

    id: int
    enrollment_id: int
    period_id: int

    student_id: int
    first_name: str
    last_name: str
    class_code: str
    subject_name: str

    period_date: date
    period_label: str
    formatted_date: str  # dd.mm.YYYY

    status: AttendanceStatus
    status_label: str

    justification_text: Optional[str] = None
    has_justification_file: bool = False
    justification_status: JustificationStatus
    approved: Optional[bool] = None
    approval_status: str
    approval_label: str
    reject_reason: Optional[str] = None


class JustificationDetail(JustificationSummary):
    """Full justification view"""

    class_subject_id: int
    teacher_id: int
    teacher_username: Optional[str] = None
    justification_file: Optional[str] = None


class JustificationListResponse(BaseModel):
    success: bool = True
    justifications: List[JustificationSummary]


class JustificationDetailResponse(BaseModel):
    success: bool = True
    justification: JustificationDetail
