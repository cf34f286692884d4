"""
Persistence for invitations.

Handles:
- Looking up live invitations by email or token
- Atomic creation under the one-pending-invitation-per-email index
- Guarded state transitions (pending rows only)
- The resend reactivation and the periodic expiry sweep

``create`` and ``sweep_expired`` commit on their own. Transitions leave the
commit to the caller, so a transition and the rows it depends on (a new
account, a roster entry) commit together.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import DuplicateActiveInvitation, InvalidTransition, UserAlreadyExists
from app.core.security import generate_invitation_token
from app.models.invitation import (
    INVITATION_STATUSES,
    STATUS_EXPIRED,
    STATUS_PENDING,
    Invitation,
)
from app.models.user import User
from app.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)
settings = get_settings()


class InvitationStore:
    """Data access for invitation rows."""

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    def _live(self, now: datetime):
        return and_(Invitation.status == STATUS_PENDING, Invitation.expires_at >= now)

    def _lapsed(self, now: datetime):
        return and_(Invitation.status == STATUS_PENDING, Invitation.expires_at < now)

    def _effective_status(self, now: datetime):
        return case((self._lapsed(now), STATUS_EXPIRED), else_=Invitation.status)

    def expiry_from(self, now: datetime) -> datetime:
        return now + timedelta(days=settings.invitation_expiry_days)

    async def get(self, invitation_id: str) -> Optional[Invitation]:
        return await self.db.get(Invitation, invitation_id, populate_existing=True)

    async def find_active_by_email(self, email: str) -> Optional[Invitation]:
        """Pending, unexpired invitation for the email, if any."""
        result = await self.db.execute(
            select(Invitation).where(
                Invitation.email == email.lower(),
                self._live(self.clock()),
            ).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_by_token(self, token: str) -> Optional[Invitation]:
        """Resolve a token. Used, cancelled and expired tokens never resolve."""
        if not token:
            return None
        result = await self.db.execute(
            select(Invitation).where(
                Invitation.token == token,
                self._live(self.clock()),
            ).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def email_has_account(self, email: str) -> bool:
        result = await self.db.execute(select(User.id).where(User.email == email.lower()))
        return result.first() is not None

    async def _retire_lapsed(self, email: str, now: datetime, exclude_id: Optional[str] = None) -> None:
        # Lapsed pending rows still hold the partial unique index for the email
        conditions = [Invitation.email == email, self._lapsed(now)]
        if exclude_id:
            conditions.append(Invitation.id != exclude_id)
        await self.db.execute(
            update(Invitation)
            .where(*conditions)
            .values(status=STATUS_EXPIRED, updated_at=now)
            .execution_options(synchronize_session=False)
        )

    async def create(
        self,
        *,
        email: str,
        invited_by: str,
        role: str = "member",
        department: Optional[str] = None,
        message: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> Invitation:
        """
        Insert and commit a new pending invitation.

        Raises:
            UserAlreadyExists: An account already holds the email
            DuplicateActiveInvitation: A live invitation exists for the email
        """
        email = email.lower()
        if await self.email_has_account(email):
            raise UserAlreadyExists()

        now = self.clock()
        await self._retire_lapsed(email, now)

        invitation = Invitation(
            id=str(uuid4()),
            email=email,
            role=role,
            department=department,
            message=message,
            invited_by=invited_by,
            project_id=project_id,
            status=STATUS_PENDING,
            token=generate_invitation_token(),
            expires_at=self.expiry_from(now),
            created_at=now,
            updated_at=now,
        )
        self.db.add(invitation)
        try:
            await self.db.commit()
        except IntegrityError:
            # Token collisions are negligible at 256 bits, so the violated
            # constraint is the pending-email index.
            await self.db.rollback()
            logger.info(f"Rejected duplicate invitation for {email}")
            raise DuplicateActiveInvitation()
        return invitation

    async def save(self, invitation: Invitation, live_only: bool = False, **changes: Any) -> None:
        """
        Move a pending invitation to a terminal state.

        The update only matches rows that are still pending, so two racing
        transitions cannot both win. With ``live_only`` a row past its expiry
        is rejected too.

        Raises:
            InvalidTransition: The stored row already left pending
        """
        now = self.clock()
        guard = self._live(now) if live_only else Invitation.status == STATUS_PENDING
        result = await self.db.execute(
            update(Invitation)
            .where(Invitation.id == invitation.id, guard)
            .values(updated_at=now, **changes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidTransition()

    async def reactivate(self, invitation: Invitation) -> None:
        """
        Force an invitation back to pending with a fresh token and expiry.

        This is the only write allowed out of a terminal state. It is guarded
        on the status the caller read, so a concurrent transition wins.

        Raises:
            InvalidTransition: The row changed since it was read
            DuplicateActiveInvitation: Another live invitation holds the email
        """
        now = self.clock()
        await self._retire_lapsed(invitation.email, now, exclude_id=invitation.id)
        try:
            result = await self.db.execute(
                update(Invitation)
                .where(Invitation.id == invitation.id, Invitation.status == invitation.status)
                .values(
                    status=STATUS_PENDING,
                    token=generate_invitation_token(),
                    expires_at=self.expiry_from(now),
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateActiveInvitation()
        if result.rowcount != 1:
            raise InvalidTransition()

    async def commit(self, *instances: Any) -> None:
        """Commit the unit of work and reload the given rows."""
        await self.db.commit()
        for instance in instances:
            await self.db.refresh(instance)

    async def rollback(self) -> None:
        await self.db.rollback()

    async def sweep_expired(self) -> int:
        """Mark every lapsed pending invitation as expired. Returns rows updated."""
        now = self.clock()
        result = await self.db.execute(
            update(Invitation)
            .where(self._lapsed(now))
            .values(status=STATUS_EXPIRED, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def list(
        self,
        *,
        invited_by: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Invitation], int]:
        """Page of invitations, newest first, filtered on the effective status."""
        now = self.clock()
        conditions = []
        if invited_by:
            conditions.append(Invitation.invited_by == invited_by)
        if status == STATUS_PENDING:
            conditions.append(self._live(now))
        elif status == STATUS_EXPIRED:
            conditions.append(or_(Invitation.status == STATUS_EXPIRED, self._lapsed(now)))
        elif status:
            conditions.append(Invitation.status == status)

        total_result = await self.db.execute(
            select(func.count(Invitation.id)).where(*conditions)
        )
        total = total_result.scalar() or 0

        offset = (page - 1) * limit
        result = await self.db.execute(
            select(Invitation)
            .where(*conditions)
            .order_by(Invitation.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def count_by_status(self, *, invited_by: Optional[str] = None) -> Dict[str, int]:
        """Counts per effective status."""
        effective = self._effective_status(self.clock()).label("effective_status")
        query = select(effective, func.count(Invitation.id)).group_by(effective)
        if invited_by:
            query = query.where(Invitation.invited_by == invited_by)
        result = await self.db.execute(query)

        counts = {name: 0 for name in INVITATION_STATUSES}
        for name, count in result.all():
            counts[name] = count
        return counts
