"""
Invitation schemas for API requests/responses.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.schemas.auth import AccountSummary, Role, UserSummary

InvitationStatus = Literal["pending", "accepted", "declined", "expired"]


class InvitationCreate(BaseModel):
    """Request schema for creating a new invitation."""
    email: EmailStr
    role: Role = "member"
    department: Optional[str] = Field(None, max_length=100)
    message: Optional[str] = Field(None, max_length=500)
    project_id: Optional[str] = Field(None, alias="projectId")

    model_config = {"populate_by_name": True}

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("department", "message")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None


class ProjectSummary(BaseModel):
    id: str
    name: str

    model_config = {"from_attributes": True}


class InvitationResponse(BaseModel):
    """
    Composed read view of an invitation.

    ``status`` is the effective status: a pending row whose expiry passed
    is reported as ``expired``.
    """
    id: str
    email: str
    role: Role
    department: Optional[str] = None
    message: Optional[str] = None
    status: InvitationStatus
    expires_at: datetime
    created_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    invited_by: UserSummary
    accepted_by: Optional[UserSummary] = None
    project: Optional[ProjectSummary] = None


class InvitationLinkResponse(BaseModel):
    """Returned by create and resend: the invitation plus its shareable link."""
    success: bool = True
    data: InvitationResponse
    invitation_link: str


class InvitationListResponse(BaseModel):
    """Paginated list of invitations."""
    success: bool = True
    count: int
    total: int
    page: int
    pages: int
    data: List[InvitationResponse]


class AcceptInvitationRequest(BaseModel):
    """Request schema for accepting an invitation."""
    name: str = Field(..., min_length=2, max_length=50)
    password: str = Field(..., min_length=6)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value


class AcceptInvitationResponse(BaseModel):
    """Created account plus a session credential."""
    success: bool = True
    data: AccountSummary
    access_token: str
    token_type: str = "bearer"


class InvitationStats(BaseModel):
    """Per-status invitation counts."""
    pending: int = 0
    accepted: int = 0
    declined: int = 0
    expired: int = 0
    total: int = 0


class InvitationDetailResponse(BaseModel):
    success: bool = True
    data: InvitationResponse


class InvitationActionResponse(BaseModel):
    """Result of decline and cancel."""
    success: bool = True
    message: str
    data: InvitationResponse
