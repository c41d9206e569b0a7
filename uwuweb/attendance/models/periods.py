"""Period Model - A single class-subject session on a date"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    ForeignKey,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from uwuweb.core.database import Base


class Period(Base):
    __tablename__ = "periods"

    id = Column(Integer, primary_key=True, index=True)

    # Attendance rows are removed explicitly before the period (see delete_period)
    class_subject_id = Column(
        Integer, ForeignKey("class_subjects.id"), nullable=False, index=True
    )

    period_date = Column(Date, nullable=False)
    period_label = Column(String(50), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    class_subject = relationship("ClassSubject")
    attendance_records = relationship("AttendanceRecord", back_populates="period")

    __table_args__ = (
        Index("ix_periods_class_subject_date", "class_subject_id", "period_date"),
    )

    def __repr__(self):
        return f"<Period(id={self.id}, class_subject_id={self.class_subject_id}, date={self.period_date})>"
