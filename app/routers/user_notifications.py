from math import ceil
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.core.db import get_db
from app.models.user import User
from app.schemas.user_notification import (
    NotificationActionResponse,
    NotificationDetailResponse,
    NotificationListResponse,
    NotificationResponse,
    NotificationStats,
)
from app.services.user_notification import UserNotificationService

router = APIRouter()


def _service(db: AsyncSession = Depends(get_db)) -> UserNotificationService:
    return UserNotificationService(db)


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    is_read: Optional[bool] = Query(None, alias="isRead"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    service: UserNotificationService = Depends(_service),
) -> NotificationListResponse:
    """List notifications for the current user, newest first."""
    notifications, total, unread_count = await service.list_notifications(
        user.id,
        is_read=is_read,
        page=page,
        limit=limit,
    )
    return NotificationListResponse(
        count=len(notifications),
        total=total,
        unread_count=unread_count,
        page=page,
        pages=ceil(total / limit) if total else 0,
        data=[NotificationResponse.model_validate(n) for n in notifications],
    )


@router.get("/stats", response_model=NotificationStats)
async def get_notification_stats(
    user: User = Depends(get_current_user),
    service: UserNotificationService = Depends(_service),
) -> NotificationStats:
    return await service.get_stats(user.id)


@router.put("/read-all", response_model=NotificationActionResponse)
async def mark_all_notifications_read(
    user: User = Depends(get_current_user),
    service: UserNotificationService = Depends(_service),
) -> NotificationActionResponse:
    updated = await service.mark_all_as_read(user.id)
    return NotificationActionResponse(message="All notifications marked as read", updated=updated)


@router.put("/{notification_id}/read", response_model=NotificationDetailResponse)
async def mark_notification_read(
    notification_id: str,
    user: User = Depends(get_current_user),
    service: UserNotificationService = Depends(_service),
) -> NotificationDetailResponse:
    notification = await service.mark_as_read(user.id, notification_id)
    return NotificationDetailResponse(data=NotificationResponse.model_validate(notification))


@router.delete("/{notification_id}", response_model=NotificationActionResponse)
async def delete_notification(
    notification_id: str,
    user: User = Depends(get_current_user),
    service: UserNotificationService = Depends(_service),
) -> NotificationActionResponse:
    """Delete one of the current user's notifications."""
    await service.delete_notification(user.id, notification_id)
    return NotificationActionResponse(message="Notification deleted")
