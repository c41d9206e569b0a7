from typing import Any, Dict

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from uwuweb.core.database import get_session
from uwuweb.core.exceptions import AuthenticationError, AuthorizationError
from uwuweb.core.jwt_auth import jwt_manager
from uwuweb.roster.crud.users import get_user_by_id, resolve_actor
from uwuweb.roster.models.roles import RoleType
from uwuweb.roster.schemas.auth import Actor

security = HTTPBearer(
    scheme_name="JWT Token",
    description="Enter the access token returned by /auth/login",
    auto_error=False,
)


async def get_token_payload(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Dict[str, Any]:
    """Dependency для проверки bearer токена"""
    if credentials is None or not credentials.credentials.strip():
        raise AuthenticationError("Authentication data is required")

    return jwt_manager.decode_token(credentials.credentials)


async def get_current_actor(
    payload: Dict[str, Any] = Depends(get_token_payload),
    db: AsyncSession = Depends(get_session),
) -> Actor:
    """
    Dependency для определения актора запроса

    Актор определяется один раз на запрос и передается во все операции.
    """
    try:
        user_id = int(payload["sub"])
    except (KeyError, ValueError):
        raise AuthenticationError("Invalid token subject")

    user = await get_user_by_id(db, user_id)
    if not user:
        raise AuthenticationError("User no longer exists")

    # Роль могла измениться после выдачи токена
    if user.role.code.value != payload.get("role"):
        raise AuthenticationError("Token role is outdated")

    return await resolve_actor(db, user)


def require_roles(*roles: RoleType):
    """
    Фабрика dependency для ограничения endpoint по ролям

    Usage:
    @router.post("/periods")
    async def add(actor: Actor = Depends(require_roles(RoleType.teacher, RoleType.admin))):
        ...
    """

    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise AuthorizationError(
                "Role is not allowed to perform this action",
                details={"role": actor.role.value},
            )
        return actor

    return dependency
