from uwuweb.core.database import Base
from .roles import Role, RoleType
from .users import User, Teacher, Student, Parent, StudentParent
from .classes import Subject, SchoolClass, ClassSubject, Enrollment

__all__ = [
    "Base",
    "Role",
    "RoleType",
    "User",
    "Teacher",
    "Student",
    "Parent",
    "StudentParent",
    "Subject",
    "SchoolClass",
    "ClassSubject",
    "Enrollment",
]
