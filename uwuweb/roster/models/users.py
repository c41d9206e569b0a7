from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    ForeignKey,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from uwuweb.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    pass_hash = Column(String(255), nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    role = relationship("Role", lazy="joined")

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}')>"


class Teacher(Base):
    """Профиль учителя"""
    __tablename__ = "teachers"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    user = relationship("User")


class Student(Base):
    """Профиль ученика"""
    __tablename__ = "students"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    dob = Column(Date, nullable=False)
    class_code = Column(String(10), nullable=False)

    user = relationship("User")
    enrollments = relationship("Enrollment", back_populates="student")


class Parent(Base):
    """Профиль родителя"""
    __tablename__ = "parents"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    user = relationship("User")


class StudentParent(Base):
    """Связь родитель - ученик (многие ко многим)"""
    __tablename__ = "student_parent"

    student_id = Column(Integer, ForeignKey("students.id"), primary_key=True)
    parent_id = Column(Integer, ForeignKey("parents.id"), primary_key=True)
