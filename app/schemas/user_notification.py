from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


NotificationType = Literal[
    "task_assigned",
    "task_updated",
    "task_completed",
    "task_overdue",
    "project_created",
    "project_updated",
    "deadline_reminder",
    "comment_added",
    "team_added",
]
NotificationPriority = Literal["low", "medium", "high"]
RelatedType = Literal["task", "project", "user"]


class NotificationBase(BaseModel):
    type: NotificationType
    title: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., min_length=1, max_length=500)
    priority: NotificationPriority = "medium"
    related_id: str
    related_type: RelatedType
    data: Optional[Dict[str, Any]] = None


class NotificationCreate(NotificationBase):
    """A domain event addressed to one recipient. Never accepted from clients."""
    user_id: str


class NotificationResponse(NotificationBase):
    """Notification response returned from API."""
    id: str
    user_id: str
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    """Paginated list of notifications."""
    success: bool = True
    count: int
    total: int
    unread_count: int
    page: int
    pages: int
    data: List[NotificationResponse]


class NotificationStats(BaseModel):
    total: int
    unread: int
    by_type: Dict[str, int]
    by_priority: Dict[str, int]


class NotificationDetailResponse(BaseModel):
    success: bool = True
    data: NotificationResponse


class NotificationActionResponse(BaseModel):
    success: bool = True
    message: str
    updated: Optional[int] = None
