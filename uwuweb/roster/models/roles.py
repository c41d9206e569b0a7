from enum import Enum

from sqlalchemy import Column, Integer, String, Enum as SQLEnum
from uwuweb.core.database import Base


class RoleType(str, Enum):
    """Роли пользователей системы"""
    admin = "admin"
    teacher = "teacher"
    student = "student"
    parent = "parent"


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True)
    code = Column(SQLEnum(RoleType), unique=True, nullable=False)
    name = Column(String(50), nullable=False)

    def __repr__(self):
        return f"<Role(id={self.id}, code={self.code})>"
