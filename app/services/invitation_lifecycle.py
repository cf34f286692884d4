"""
Invitation lifecycle.

    pending -> accepted | declined | expired

Terminal states are absorbing; ``resend`` is the single exception and puts
a declined or expired invitation back to pending with a fresh token.
Cancelling stores the invitation as expired.

Every operation takes the acting user explicitly, commits its state change,
and returns an ``Outcome``: the response to hand back plus the side effects
(emails, notifications) to run after the commit.
"""

import logging
from dataclasses import dataclass, field
from math import ceil
from typing import Any, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import (
    Forbidden,
    InvalidTransition,
    NotFound,
    NotFoundOrExpired,
    UserAlreadyExists,
    ValidationError,
)
from app.models.invitation import (
    STATUS_ACCEPTED,
    STATUS_DECLINED,
    STATUS_EXPIRED,
    Invitation,
)
from app.models.project import Project
from app.models.user import User
from app.schemas.auth import AccountSummary, UserSummary
from app.schemas.invitation import (
    AcceptInvitationRequest,
    AcceptInvitationResponse,
    InvitationCreate,
    InvitationLinkResponse,
    InvitationListResponse,
    InvitationResponse,
    InvitationStats,
    ProjectSummary,
)
from app.schemas.user_notification import NotificationCreate
from app.services.auth import AccountProvisioner
from app.services.effects import Effect, Notify, SendInvitationEmail
from app.services.email import InvitationEmail
from app.services.invitation_store import InvitationStore
from app.services.membership import MembershipService
from app.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)
settings = get_settings()

INVITER_ROLES = ("admin", "manager")
MAX_PAGE_SIZE = 100


@dataclass
class Outcome:
    """A committed state change and the effects it still owes."""
    value: Any
    effects: List[Effect] = field(default_factory=list)


class InvitationLifecycle:
    """Service for managing user invitations."""

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.store = InvitationStore(db, clock)
        self.accounts = AccountProvisioner(db)
        self.membership = MembershipService(db)

    def _require_inviter(self, actor: User) -> None:
        if actor.role not in INVITER_ROLES:
            raise Forbidden()

    def _require_owner(self, invitation: Invitation, actor: User) -> None:
        """Admins may manage any invitation; everyone else only their own."""
        if actor.role != "admin" and invitation.invited_by != actor.id:
            raise Forbidden()

    async def _get_managed(self, invitation_id: str, actor: User) -> Invitation:
        self._require_inviter(actor)
        invitation = await self.store.get(invitation_id)
        if not invitation:
            raise NotFound("Invitation not found")
        self._require_owner(invitation, actor)
        return invitation

    async def build_view(self, invitation: Invitation) -> InvitationResponse:
        """Compose the invitation with its inviter, acceptor and project."""
        inviter = await self.db.get(User, invitation.invited_by)
        accepted_by = None
        if invitation.accepted_by:
            accepted_by = await self.db.get(User, invitation.accepted_by)
        project = None
        if invitation.project_id:
            project = await self.db.get(Project, invitation.project_id)

        return InvitationResponse(
            id=invitation.id,
            email=invitation.email,
            role=invitation.role,
            department=invitation.department,
            message=invitation.message,
            status=invitation.effective_status(self.clock()),
            expires_at=invitation.expires_at,
            created_at=invitation.created_at,
            accepted_at=invitation.accepted_at,
            invited_by=UserSummary.model_validate(inviter),
            accepted_by=UserSummary.model_validate(accepted_by) if accepted_by else None,
            project=ProjectSummary.model_validate(project) if project else None,
        )

    async def _email_effect(self, invitation: Invitation, link: str) -> SendInvitationEmail:
        inviter = await self.db.get(User, invitation.invited_by)
        project = None
        if invitation.project_id:
            project = await self.db.get(Project, invitation.project_id)
        return SendInvitationEmail(
            invitation_id=invitation.id,
            email=InvitationEmail(
                to_email=invitation.email,
                invitation_link=link,
                role=invitation.role,
                inviter_name=inviter.name if inviter else "Your team",
                expires_at=invitation.expires_at,
                department=invitation.department,
                message=invitation.message,
                project_name=project.name if project else None,
            ),
        )

    async def _with_link(self, invitation: Invitation) -> Outcome:
        link = settings.invitation_link(invitation.token)
        view = await self.build_view(invitation)
        return Outcome(
            value=InvitationLinkResponse(data=view, invitation_link=link),
            effects=[await self._email_effect(invitation, link)],
        )

    async def invite(self, actor: User, data: InvitationCreate) -> Outcome:
        """
        Create a pending invitation and queue its email.

        Raises:
            Forbidden: The actor may not invite
            ValidationError: The referenced project does not exist
            UserAlreadyExists: The email already has an account
            DuplicateActiveInvitation: A live invitation exists for the email
        """
        self._require_inviter(actor)
        if data.project_id and not await self.membership.get_project(data.project_id):
            raise ValidationError("Project not found")

        invitation = await self.store.create(
            email=data.email,
            invited_by=actor.id,
            role=data.role,
            department=data.department,
            message=data.message,
            project_id=data.project_id,
        )
        logger.info(f"Invitation {invitation.id} created for {invitation.email} by {actor.id}")
        return await self._with_link(invitation)

    async def cancel(self, invitation_id: str, actor: User) -> Outcome:
        """Cancel a pending invitation. Stored as expired."""
        invitation = await self._get_managed(invitation_id, actor)
        await self.store.save(invitation, status=STATUS_EXPIRED)
        await self.store.commit(invitation)
        logger.info(f"Invitation {invitation.id} cancelled by {actor.id}")
        return Outcome(value=await self.build_view(invitation))

    async def resend(self, invitation_id: str, actor: User) -> Outcome:
        """
        Reissue an invitation with a new token and a full expiry window.

        Works from pending, declined and expired; the old token stops
        resolving immediately.

        Raises:
            InvalidTransition: The invitation was already accepted
            UserAlreadyExists: The email has since become an account
            DuplicateActiveInvitation: Another live invitation holds the email
        """
        invitation = await self._get_managed(invitation_id, actor)
        if invitation.status == STATUS_ACCEPTED:
            raise InvalidTransition("Invitation has already been accepted")
        if await self.accounts.email_exists(invitation.email):
            raise UserAlreadyExists()

        await self.store.reactivate(invitation)
        await self.store.commit(invitation)
        logger.info(f"Invitation {invitation.id} resent by {actor.id}")
        return await self._with_link(invitation)

    async def list_invitations(
        self,
        actor: User,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> InvitationListResponse:
        """Admins see every invitation, managers the ones they sent."""
        self._require_inviter(actor)
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        invitations, total = await self.store.list(
            invited_by=None if actor.role == "admin" else actor.id,
            status=status,
            page=page,
            limit=limit,
        )
        items = [await self.build_view(inv) for inv in invitations]
        return InvitationListResponse(
            count=len(items),
            total=total,
            page=page,
            pages=ceil(total / limit) if total else 0,
            data=items,
        )

    async def stats(self, actor: User) -> InvitationStats:
        self._require_inviter(actor)
        counts = await self.store.count_by_status(
            invited_by=None if actor.role == "admin" else actor.id,
        )
        return InvitationStats(total=sum(counts.values()), **counts)

    async def _resolve(self, token: str) -> Invitation:
        invitation = await self.store.find_by_token(token)
        if not invitation:
            raise NotFoundOrExpired()
        return invitation

    async def lookup(self, token: str) -> InvitationResponse:
        invitation = await self._resolve(token)
        return await self.build_view(invitation)

    async def accept(self, token: str, data: AcceptInvitationRequest) -> Outcome:
        """
        Turn a live invitation into an account.

        Creates the user, marks the invitation accepted and joins the project
        team in one commit; the inviter's notification runs afterwards.

        Raises:
            NotFoundOrExpired: The token does not resolve, or another accept
                of the same token committed first
            UserAlreadyExists: The email was registered outside this invitation
        """
        invitation = await self._resolve(token)
        now = self.clock()

        try:
            user = await self.accounts.create_account(
                name=data.name,
                email=invitation.email,
                password=data.password,
                role=invitation.role,
                department=invitation.department,
                now=now,
            )
        except UserAlreadyExists:
            await self.store.rollback()
            # A concurrent accept of this token created the account first
            if not await self.store.find_by_token(token):
                raise NotFoundOrExpired()
            raise
        try:
            await self.store.save(
                invitation,
                live_only=True,
                status=STATUS_ACCEPTED,
                accepted_at=now,
                accepted_by=user.id,
            )
        except InvalidTransition:
            await self.store.rollback()
            raise NotFoundOrExpired()

        if invitation.project_id:
            await self.membership.add_member(invitation.project_id, user.id, role="member", now=now)

        await self.store.commit(invitation, user)
        logger.info(f"Invitation {invitation.id} accepted by new user {user.id}")

        notify = Notify(
            NotificationCreate(
                user_id=invitation.invited_by,
                type="team_added",
                title="Invitation Accepted",
                message=f"{user.name} has accepted your invitation and joined the team",
                priority="medium",
                related_id=user.id,
                related_type="user",
                data={"invitation_id": invitation.id, "project_id": invitation.project_id},
            )
        )
        return Outcome(
            value=AcceptInvitationResponse(
                data=AccountSummary.model_validate(user),
                access_token=self.accounts.issue_session(user),
            ),
            effects=[notify],
        )

    async def decline(self, token: str) -> Outcome:
        invitation = await self._resolve(token)
        try:
            await self.store.save(invitation, live_only=True, status=STATUS_DECLINED)
        except InvalidTransition:
            await self.store.rollback()
            raise NotFoundOrExpired()
        await self.store.commit(invitation)
        logger.info(f"Invitation {invitation.id} declined")
        return Outcome(value=await self.build_view(invitation))

    async def sweep_expired(self) -> int:
        count = await self.store.sweep_expired()
        if count:
            logger.info(f"Marked {count} lapsed invitation(s) as expired")
        return count
