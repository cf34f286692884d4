"""
Invitations Router - API endpoints for user invitations.

Provides endpoints for:
- Creating, listing, cancelling and resending invitations (admin, manager)
- Resolving, accepting and declining by token (public, rate limited)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.config import get_settings
from app.core.db import get_db
from app.middleware.security import limiter
from app.models.user import User
from app.schemas.invitation import (
    AcceptInvitationRequest,
    AcceptInvitationResponse,
    InvitationActionResponse,
    InvitationCreate,
    InvitationDetailResponse,
    InvitationLinkResponse,
    InvitationListResponse,
    InvitationStats,
    InvitationStatus,
)
from app.services.effects import EffectRunner
from app.services.invitation_lifecycle import InvitationLifecycle

router = APIRouter()
settings = get_settings()

_inviter = deps.require_any_role(["admin", "manager"])


async def _service(db: AsyncSession = Depends(get_db)) -> InvitationLifecycle:
    return InvitationLifecycle(db)


@router.post("", response_model=InvitationLinkResponse, status_code=status.HTTP_201_CREATED)
async def create_invitation(
    data: InvitationCreate,
    service: InvitationLifecycle = Depends(_service),
    runner: EffectRunner = Depends(deps.get_effect_runner),
    current_user: User = Depends(_inviter),
) -> InvitationLinkResponse:
    """
    Create a new invitation and email the acceptance link.

    The invitation stands even if the email cannot be delivered; the link in
    the response can be shared by hand.
    """
    outcome = await service.invite(current_user, data)
    await runner.run(outcome.effects)
    return outcome.value


@router.get("", response_model=InvitationListResponse)
async def list_invitations(
    service: InvitationLifecycle = Depends(_service),
    status_filter: Optional[InvitationStatus] = Query(None, alias="status", description="Filter by status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(_inviter),
) -> InvitationListResponse:
    """List invitations, newest first. Managers only see the ones they sent."""
    return await service.list_invitations(current_user, status=status_filter, page=page, limit=limit)


@router.get("/stats", response_model=InvitationStats)
async def get_invitation_stats(
    service: InvitationLifecycle = Depends(_service),
    current_user: User = Depends(_inviter),
) -> InvitationStats:
    return await service.stats(current_user)


@router.get("/token/{token}", response_model=InvitationDetailResponse)
@limiter.limit(settings.public_rate_limit)
async def get_invitation_by_token(
    request: Request,
    token: str,
    service: InvitationLifecycle = Depends(_service),
) -> InvitationDetailResponse:
    """Public endpoint: show a live invitation to its recipient."""
    return InvitationDetailResponse(data=await service.lookup(token))


@router.post(
    "/accept/{token}",
    response_model=AcceptInvitationResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.public_rate_limit)
async def accept_invitation(
    request: Request,
    token: str,
    data: AcceptInvitationRequest,
    service: InvitationLifecycle = Depends(_service),
    runner: EffectRunner = Depends(deps.get_effect_runner),
) -> AcceptInvitationResponse:
    """
    Public endpoint: create the account for an invitation.

    Returns the new account and an access token.
    """
    outcome = await service.accept(token, data)
    await runner.run(outcome.effects)
    return outcome.value


@router.post("/decline/{token}", response_model=InvitationActionResponse)
@limiter.limit(settings.public_rate_limit)
async def decline_invitation(
    request: Request,
    token: str,
    service: InvitationLifecycle = Depends(_service),
) -> InvitationActionResponse:
    outcome = await service.decline(token)
    return InvitationActionResponse(message="Invitation declined", data=outcome.value)


@router.delete("/{invitation_id}", response_model=InvitationActionResponse)
async def cancel_invitation(
    invitation_id: str,
    service: InvitationLifecycle = Depends(_service),
    current_user: User = Depends(_inviter),
) -> InvitationActionResponse:
    """Cancel a pending invitation. Only admins and the original inviter may cancel."""
    outcome = await service.cancel(invitation_id, current_user)
    return InvitationActionResponse(message="Invitation cancelled", data=outcome.value)


@router.post("/{invitation_id}/resend", response_model=InvitationLinkResponse)
async def resend_invitation(
    invitation_id: str,
    service: InvitationLifecycle = Depends(_service),
    runner: EffectRunner = Depends(deps.get_effect_runner),
    current_user: User = Depends(_inviter),
) -> InvitationLinkResponse:
    """Issue a fresh token and expiry, and email the new link."""
    outcome = await service.resend(invitation_id, current_user)
    await runner.run(outcome.effects)
    return outcome.value
