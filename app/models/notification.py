from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, String, func

from app.models.base import Base

NOTIFICATION_PRIORITIES = ("low", "medium", "high")


class Notification(Base):
    """In-app notification. Created only as a side effect of a domain event."""

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)

    # Notification content
    type = Column(String, nullable=False, index=True)
    title = Column(String(100), nullable=False)
    message = Column(String(500), nullable=False)
    priority = Column(String, nullable=False, default="medium")

    # Related entity (task, project or user)
    related_id = Column(String, nullable=False)
    related_type = Column(String, nullable=False)

    # Status
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)

    data = Column(JSON, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)

    __table_args__ = (
        Index("ix_notification_user_is_read", "user_id", "is_read"),
    )
