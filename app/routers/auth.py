import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.config import get_settings
from app.core.db import get_db
from app.middleware.security import limiter
from app.models.user import User
from app.schemas.auth import AccountSummary, AuthSessionResponse, UserLogin
from app.services.auth import AccountProvisioner

router = APIRouter()
settings = get_settings()
logger = logging.getLogger(__name__)


def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=deps.SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=settings.access_token_expire_minutes * 60,
        path="/",
    )


@router.post("/login", response_model=AuthSessionResponse)
@limiter.limit("5/minute")
async def login(
    request: Request,
    payload: UserLogin,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> AuthSessionResponse:
    """
    Exchange email and password for an access token.

    Rate limited to 5 requests per minute to slow down credential stuffing.
    """
    user, token = await AccountProvisioner(db).authenticate(payload)
    set_auth_cookie(response, token)
    return AuthSessionResponse(data=AccountSummary.model_validate(user), access_token=token)


@router.get("/me", response_model=AccountSummary)
async def me(current_user: User = Depends(deps.get_current_user)) -> AccountSummary:
    return AccountSummary.model_validate(current_user)
