"""Attendance Record Model - One row per (enrollment, period) with justification workflow fields"""
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from uwuweb.core.database import Base


class AttendanceStatus(str, Enum):
    """Статус присутствия"""
    present = "P"
    absent = "A"
    late = "L"


class JustificationStatus(str, Enum):
    """Состояние объяснительной"""
    none = "none"          # Объяснительная не подана
    pending = "pending"    # Ожидает решения
    approved = "approved"  # Принята
    rejected = "rejected"  # Отклонена (можно подать повторно)


# Только отсутствие и опоздание можно оправдать
JUSTIFIABLE_STATUSES = frozenset({AttendanceStatus.absent, AttendanceStatus.late})


class AttendanceRecord(Base):
    __tablename__ = "attendance"

    id = Column(Integer, primary_key=True, index=True)

    enrollment_id = Column(Integer, ForeignKey("enrollments.id"), nullable=False, index=True)
    period_id = Column(Integer, ForeignKey("periods.id"), nullable=False, index=True)

    status = Column(
        SQLEnum(AttendanceStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )

    # Justification workflow
    justification_text = Column(Text, nullable=True)
    justification_file = Column(String(255), nullable=True)
    justification_status = Column(
        SQLEnum(JustificationStatus),
        default=JustificationStatus.none,
        nullable=False,
    )
    reject_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    enrollment = relationship("Enrollment")
    period = relationship("Period", back_populates="attendance_records")

    __table_args__ = (
        UniqueConstraint("enrollment_id", "period_id", name="uq_attendance_enrollment_period"),
    )

    @property
    def approved(self) -> Optional[bool]:
        """Tri-state view: None while undecided, True/False once decided"""
        if self.justification_status == JustificationStatus.approved:
            return True
        if self.justification_status == JustificationStatus.rejected:
            return False
        return None

    def __repr__(self):
        return (
            f"<AttendanceRecord(id={self.id}, enrollment_id={self.enrollment_id}, "
            f"period_id={self.period_id}, status={self.status})>"
        )
