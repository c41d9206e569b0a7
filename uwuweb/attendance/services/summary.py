"""Attendance summary - pure fold over attendance records"""
from typing import Iterable

from uwuweb.attendance.models.attendance import AttendanceStatus, JustificationStatus
from uwuweb.attendance.schemas.attendance import AttendanceSummary


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0


def summarize_attendance(records: Iterable) -> AttendanceSummary:
    """
    Count statuses and compute the attendance rate.

    Works on anything exposing ``status`` and ``justification_status``
    (ORM rows or read schemas). Late counts as attended. Absences are further
    split by justification state: approved ones are "justified", rejected and
    never-explained ones together are "unjustified".
    """
    total = present = absent = late = 0
    absences = {state: 0 for state in JustificationStatus}

    for record in records:
        total += 1
        status = AttendanceStatus(record.status)

        if status == AttendanceStatus.present:
            present += 1
        elif status == AttendanceStatus.absent:
            absent += 1
            absences[JustificationStatus(record.justification_status)] += 1
        elif status == AttendanceStatus.late:
            late += 1

    justified = absences[JustificationStatus.approved]
    needs_justification = absences[JustificationStatus.none]
    rejected = absences[JustificationStatus.rejected]

    return AttendanceSummary(
        total=total,
        present=present,
        absent=absent,
        late=late,
        justified=justified,
        pending=absences[JustificationStatus.pending],
        rejected=rejected,
        needs_justification=needs_justification,
        unjustified=needs_justification + rejected,
        attendance_rate=_percent(present + late, total),
        present_percent=_percent(present, total),
        absent_percent=_percent(absent, total),
        late_percent=_percent(late, total),
        justified_percent=_percent(justified, absent),
    )
