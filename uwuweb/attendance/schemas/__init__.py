"""Attendance Schemas Package"""
from .attendance import (
    PeriodCreate,
    PeriodUpdate,
    PeriodRead,
    PeriodDeleteResponse,
    AttendanceSave,
    BulkAttendanceEntry,
    BulkAttendanceRequest,
    BulkAttendanceResponse,
    AttendanceRecordRead,
    AttendanceQuery,
    AttendanceSummary,
    AttendanceReport,
)

from .justifications import (
    JustificationSubmitResponse,
    JustificationDecision,
    DecisionResponse,
    JustificationSummary,
    JustificationDetail,
    JustificationListResponse,
    JustificationDetailResponse,
)

__all__ = [
    # Periods
    "PeriodCreate",
    "PeriodUpdate",
    "PeriodRead",
    "PeriodDeleteResponse",
    # Attendance
    "AttendanceSave",
    "BulkAttendanceEntry",
    "BulkAttendanceRequest",
    "BulkAttendanceResponse",
    "AttendanceRecordRead",
    "AttendanceQuery",
    "AttendanceSummary",
    "AttendanceReport",
    # Justifications
    "JustificationSubmitResponse",
    "JustificationDecision",
    "DecisionResponse",
    "JustificationSummary",
    "JustificationDetail",
    "JustificationListResponse",
    "JustificationDetailResponse",
]
