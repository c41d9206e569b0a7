"""Attendance Schemas - periods, attendance recording and student reports"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from uwuweb.attendance.models.attendance import AttendanceStatus, JustificationStatus


# === Periods ===
class PeriodBase(BaseModel):
    period_date: date = Field(..., description="Date of the period")
    period_label: str = Field(
        ..., min_length=1, max_length=50, description="Period label, e.g. '1' or '3a'"
    )

    model_config = ConfigDict(from_attributes=True, str_strip_whitespace=True)


class PeriodCreate(PeriodBase):
    """Schema for adding a period to a class-subject"""

    class_subject_id: int = Field(..., gt=0, description="Class-subject ID must be positive")


class PeriodUpdate(PeriodBase):
    """Schema for updating period date and label"""


class PeriodRead(PeriodBase):
    id: int
    class_subject_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PeriodDeleteResponse(BaseModel):
    success: bool
    message: str
    deleted_records: int = 0


# === Attendance recording ===
class AttendanceSave(BaseModel):
    """Record one student's status for a period (insert or update)"""

    period_id: int = Field(..., gt=0)
    enrollment_id: int = Field(..., gt=0)
    status: AttendanceStatus

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"period_id": 12, "enrollment_id": 4, "status": "A"}
        }
    )


class BulkAttendanceEntry(BaseModel):
    enrollment_id: int = Field(..., gt=0)
    status: AttendanceStatus


class BulkAttendanceRequest(BaseModel):
    """Record statuses for many students of one period, all or nothing"""

    period_id: int = Field(..., gt=0)
    entries: List[BulkAttendanceEntry] = Field(..., min_length=1, max_length=200)

    @field_validator("entries")
    @classmethod
    def validate_unique_enrollments(cls, v):
        seen = set()
        for entry in v:
            if entry.enrollment_id in seen:
                raise ValueError(f"Duplicate enrollment_id {entry.enrollment_id}")
            seen.add(entry.enrollment_id)
        return v


class AttendanceRecordRead(BaseModel):
    """Attendance record for display"""

    id: int
    enrollment_id: int
    period_id: int

    # Period context
    period_date: date
    period_label: str
    class_subject_id: int
    subject_name: Optional[str] = None
    class_code: Optional[str] = None

    status: AttendanceStatus
    status_label: str

    justification_text: Optional[str] = None
    has_justification_file: bool = False
    justification_status: JustificationStatus = JustificationStatus.none
    approval_label: str
    reject_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class BulkAttendanceResponse(BaseModel):
    success: bool
    message: str
    saved: int
    records: List[AttendanceRecordRead] = Field(default_factory=list)


# === Student report ===
class AttendanceQuery(BaseModel):
    """Filters for a student's attendance history"""

    student_id: int = Field(..., gt=0)
    class_id: Optional[int] = Field(None, gt=0)
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    status: Optional[AttendanceStatus] = None

    @model_validator(mode="after")
    def validate_date_range(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self


class AttendanceSummary(BaseModel):
    """Attendance statistics"""

    total: int = 0
    present: int = 0
    absent: int = 0
    late: int = 0
    justified: int = 0
    pending: int = 0
    rejected: int = 0
    # Absences with no explanation submitted yet
    needs_justification: int = 0
    unjustified: int = 0
    attendance_rate: float = 0
    present_percent: float = 0
    absent_percent: float = 0
    late_percent: float = 0
    # Share of absences that were approved
    justified_percent: float = 0


class AttendanceReport(BaseModel):
    student_id: int
    records: List[AttendanceRecordRead]
    summary: AttendanceSummary
