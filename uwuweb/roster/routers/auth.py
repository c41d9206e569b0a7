"""Auth Router - Login and current actor"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from uwuweb.core.database import get_session
from uwuweb.core.dependencies import get_current_actor
from uwuweb.core.jwt_auth import jwt_manager
from uwuweb.core.limits import limiter
from uwuweb.core.logging_utils import log_business_event
from uwuweb.roster.crud.users import authenticate_user, get_user_by_id
from uwuweb.roster.schemas.auth import Actor, ActorRead, LoginRequest, TokenResponse

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=TokenResponse)
@limiter.limit("10/minute")
async def login(
    request: Request,
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_session),
):
    """
    Exchange username and password for a bearer token.

    The token carries the user id and role; the role-scoped profile is
    resolved again on every request.
    """
    user = await authenticate_user(db, credentials.username, credentials.password)
    role = user.role.code

    access_token = jwt_manager.create_access_token(user_id=user.id, role=role.value)

    log_business_event("user_logged_in", "user", user.id, {"role": role.value})

    return TokenResponse(
        access_token=access_token,
        expires_in=jwt_manager.access_token_expire_minutes * 60,
        role=role,
    )


@router.get("/me", response_model=ActorRead)
@limiter.limit("30/minute")
async def get_me(
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    """Current user with role and role-scoped id"""
    user = await get_user_by_id(db, actor.user_id)

    return ActorRead(
        user_id=actor.user_id,
        username=user.username,
        role=actor.role,
        scoped_id=actor.scoped_id,
    )
