import logging
from typing import Annotated, List, Optional

from fastapi import Depends, HTTPException, Request, WebSocket, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.security import decode_access_token
from app.models.user import User
from app.services.effects import EffectRunner
from app.services.email import EmailService, get_email_service
from app.services.user_notification import UserNotificationService

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

SESSION_COOKIE = "projecthub_token"


async def _user_from_token(token: Optional[str], db: AsyncSession) -> Optional[User]:
    if not token:
        return None
    payload = decode_access_token(token)
    if not payload or not payload.get("sub"):
        return None
    return await db.get(User, payload["sub"])


async def get_current_user(
    request: Request,
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
    db: AsyncSession = Depends(get_db),
) -> User:
    credentials_token = token or request.cookies.get(SESSION_COOKIE)
    if not credentials_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing credentials")

    user = await _user_from_token(credentials_token, db)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User disabled")
    return user


async def get_current_user_websocket(websocket: WebSocket, db: AsyncSession) -> Optional[User]:
    """
    Authenticate WebSocket connections.

    Returns None instead of closing the socket; the caller decides how to reject.
    """
    token_header = websocket.headers.get("Authorization")
    if token_header and token_header.startswith("Bearer "):
        token = token_header.split(" ", 1)[1]
    else:
        # Fallback to query parameter for clients that don't support custom headers
        token = websocket.query_params.get("token")

    user = await _user_from_token(token, db)
    if not user or not user.is_active:
        logger.warning("[WebSocket Auth] Rejected connection")
        return None
    return user


def require_any_role(roles: List[str]):
    """
    FastAPI dependency that requires at least one of the specified roles.

    Usage:
        @router.get("/invitations")
        async def list_invitations(user = Depends(require_any_role(["admin", "manager"]))):
            ...
    """
    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            logger.warning(
                f"Role required: user={current_user.email}, required_any={roles}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. Insufficient permissions.",
            )
        return current_user

    return dependency


def get_effect_runner(
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
) -> EffectRunner:
    return EffectRunner(UserNotificationService(db), email_service)
