"""
Invitation model for onboarding new team members.

Tracks invitations sent to prospective users with:
- Invitation details (email, role, department, optional project)
- Token for secure acceptance
- Status tracking (pending, accepted, declined, expired)
- Audit trail (invited_by, accepted_at, accepted_by)

A cancelled invitation is stored as ``expired``. Rows are never deleted.
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, func, text

from app.models.base import Base

STATUS_PENDING = "pending"
STATUS_ACCEPTED = "accepted"
STATUS_DECLINED = "declined"
STATUS_EXPIRED = "expired"

INVITATION_STATUSES = (STATUS_PENDING, STATUS_ACCEPTED, STATUS_DECLINED, STATUS_EXPIRED)


class Invitation(Base):
    """
    Invitation for a new account.

    Flow:
    1. Admin or manager creates invitation with email and role
    2. System sends email with unique token link
    3. Invitee opens the link, sets name and password, account created
    4. Invitation marked as accepted (or declined, or it lapses)
    """

    id = Column(String, primary_key=True)

    # Who is being invited
    email = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False, default="member")
    department = Column(String, nullable=True)

    # Who invited them, and optionally into which project
    invited_by = Column(String, ForeignKey("user.id"), nullable=False, index=True)
    project_id = Column(String, ForeignKey("project.id"), nullable=True)

    status = Column(String, nullable=False, default=STATUS_PENDING)

    # Secure token for acceptance
    token = Column(String, unique=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)

    # Acceptance details
    accepted_at = Column(DateTime, nullable=True)
    accepted_by = Column(String, ForeignKey("user.id"), nullable=True)

    # Optional note from inviter
    message = Column(String(500), nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_invitation_email_status", "email", "status"),
        # At most one pending row per email; the store retires lapsed pending
        # rows before inserting so this also covers "pending and unexpired".
        Index(
            "uq_invitation_pending_email",
            "email",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    def effective_status(self, now: datetime) -> str:
        """Stored status, with lapsed pending rows reported as expired."""
        if self.status == STATUS_PENDING and self.expires_at < now:
            return STATUS_EXPIRED
        return self.status
