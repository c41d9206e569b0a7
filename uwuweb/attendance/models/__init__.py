from uwuweb.core.database import Base

# Связи ссылаются на таблицы состава классов (Enrollment, ClassSubject)
import uwuweb.roster.models  # noqa: F401

from .periods import Period
from .attendance import (
    AttendanceRecord,
    AttendanceStatus,
    JustificationStatus,
    JUSTIFIABLE_STATUSES,
)

__all__ = [
    "Base",
    "Period",
    "AttendanceRecord",
    "AttendanceStatus",
    "JustificationStatus",
    "JUSTIFIABLE_STATUSES",
]
