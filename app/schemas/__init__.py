"""Pydantic schemas."""

from app.schemas.auth import AccountSummary, AuthSessionResponse, UserLogin, UserSummary  # noqa: F401
from app.schemas.invitation import (  # noqa: F401
    AcceptInvitationRequest,
    AcceptInvitationResponse,
    InvitationActionResponse,
    InvitationCreate,
    InvitationDetailResponse,
    InvitationLinkResponse,
    InvitationListResponse,
    InvitationResponse,
    InvitationStats,
    ProjectSummary,
)
from app.schemas.user_notification import (  # noqa: F401
    NotificationActionResponse,
    NotificationCreate,
    NotificationDetailResponse,
    NotificationListResponse,
    NotificationResponse,
    NotificationStats,
)
