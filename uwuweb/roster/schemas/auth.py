"""Authentication and actor schemas"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from uwuweb.roster.models.roles import RoleType


class LoginRequest(BaseModel):
    """Login credentials"""

    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1, max_length=128)

    model_config = ConfigDict(str_strip_whitespace=True)


class TokenResponse(BaseModel):
    """JWT token response"""

    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    role: RoleType


class Actor(BaseModel):
    """
    The caller of a workflow operation, resolved once per request.

    scoped_id is the role-specific profile id (teacher_id, student_id or
    parent_id); admins have none.
    """

    role: RoleType
    user_id: int
    scoped_id: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_admin(self) -> bool:
        return self.role == RoleType.admin

    @property
    def teacher_id(self) -> Optional[int]:
        return self.scoped_id if self.role == RoleType.teacher else None

    @property
    def student_id(self) -> Optional[int]:
        return self.scoped_id if self.role == RoleType.student else None

    @property
    def parent_id(self) -> Optional[int]:
        return self.scoped_id if self.role == RoleType.parent else None


class ActorRead(BaseModel):
    """Current user as seen by the API"""

    user_id: int
    username: str
    role: RoleType
    scoped_id: Optional[int] = None
