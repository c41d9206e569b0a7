from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from uwuweb.core.database import Base


class Subject(Base):
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)


class SchoolClass(Base):
    """Класс (homeroom) с классным руководителем"""
    __tablename__ = "classes"

    id = Column(Integer, primary_key=True)
    class_code = Column(String(10), unique=True, nullable=False)
    title = Column(String(100), nullable=False)
    homeroom_teacher_id = Column(Integer, ForeignKey("teachers.id"), nullable=False)

    homeroom_teacher = relationship("Teacher")
    class_subjects = relationship("ClassSubject", back_populates="school_class")
    enrollments = relationship("Enrollment", back_populates="school_class")

    def __repr__(self):
        return f"<SchoolClass(id={self.id}, class_code='{self.class_code}')>"


class ClassSubject(Base):
    """Предмет, который ведет учитель в классе"""
    __tablename__ = "class_subjects"

    id = Column(Integer, primary_key=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)
    teacher_id = Column(Integer, ForeignKey("teachers.id"), nullable=False, index=True)

    school_class = relationship("SchoolClass", back_populates="class_subjects")
    subject = relationship("Subject")
    teacher = relationship("Teacher")

    __table_args__ = (
        UniqueConstraint("class_id", "subject_id", name="uq_class_subject"),
    )


class Enrollment(Base):
    """Зачисление ученика в класс"""
    __tablename__ = "enrollments"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False, index=True)

    student = relationship("Student", back_populates="enrollments")
    school_class = relationship("SchoolClass", back_populates="enrollments")

    __table_args__ = (
        UniqueConstraint("student_id", "class_id", name="uq_enrollment_student_class"),
    )

    def __repr__(self):
        return f"<Enrollment(id={self.id}, student_id={self.student_id}, class_id={self.class_id})>"
