from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Unauthorized, UserAlreadyExists
from app.core.security import create_access_token, hash_password, verify_password
from app.models.user import User
from app.schemas.auth import UserLogin

logger = logging.getLogger(__name__)


class AccountProvisioner:
    """User directory: account creation, credential checks and session tokens."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        return await self.get_by_email(email) is not None

    async def create_account(
        self,
        *,
        name: str,
        email: str,
        password: str,
        role: str,
        department: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> User:
        """
        Add a user to the current unit of work. The caller commits.

        Raises:
            UserAlreadyExists: The email already belongs to an account
        """
        if await self.email_exists(email):
            raise UserAlreadyExists()

        user = User(
            id=str(uuid.uuid4()),
            name=name.strip(),
            email=email.lower(),
            hashed_password=hash_password(password),
            role=role,
            department=department,
            is_active=True,
        )
        if now is not None:
            user.created_at = now
            user.updated_at = now
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise UserAlreadyExists()
        return user

    def issue_session(self, user: User) -> str:
        return create_access_token({"sub": user.id, "role": user.role})

    async def authenticate(self, payload: UserLogin) -> Tuple[User, str]:
        user = await self.get_by_email(payload.email)
        if not user or not verify_password(payload.password, user.hashed_password):
            logger.warning(f"Invalid credentials for email: {payload.email}")
            raise Unauthorized("Invalid credentials")
        if not user.is_active:
            logger.warning(f"User disabled: {user.id}")
            raise Unauthorized("User disabled")

        logger.info(f"Authentication successful for user: {user.id}")
        return user, self.issue_session(user)
