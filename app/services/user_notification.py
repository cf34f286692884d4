import asyncio
import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import NotFound
from app.models.notification import NOTIFICATION_PRIORITIES, Notification
from app.schemas.user_notification import NotificationCreate, NotificationStats
from app.services.event_dispatcher import EventType, emit_event
from app.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)
settings = get_settings()


def notification_payload(notification: Notification) -> dict:
    """JSON-safe body pushed to live clients."""
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "priority": notification.priority,
        "related_id": notification.related_id,
        "related_type": notification.related_type,
        "data": notification.data,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }


class UserNotificationService:
    """
    In-app notifications, always scoped to the recipient.

    The stored row is the source of truth; the live push is best-effort.
    """

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    async def create_notification(self, payload: NotificationCreate) -> Notification:
        """Persist a notification for one recipient, then push it live."""
        notification = Notification(
            id=str(uuid.uuid4()),
            user_id=payload.user_id,
            type=payload.type,
            title=payload.title,
            message=payload.message,
            priority=payload.priority,
            related_id=payload.related_id,
            related_type=payload.related_type,
            data=payload.data,
            is_read=False,
            created_at=self.clock(),
        )
        self.db.add(notification)
        await self.db.commit()
        await self.db.refresh(notification)

        await self.push(notification)
        return notification

    async def push(self, notification: Notification) -> bool:
        """Emit the live event. Failures and timeouts are logged, never raised."""
        try:
            await asyncio.wait_for(
                emit_event(
                    EventType.NOTIFICATION_CREATED,
                    notification_payload(notification),
                    target_user_id=notification.user_id,
                ),
                timeout=settings.side_effect_timeout_seconds,
            )
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Live push timed out for notification {notification.id}")
        except Exception:
            logger.exception(f"Live push failed for notification {notification.id}")
        return False

    async def list_notifications(
        self,
        user_id: str,
        is_read: Optional[bool] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Notification], int, int]:
        """
        List notifications for a user, newest first.
        Returns: (notifications, total_count, unread_count)
        """
        query_filter = Notification.user_id == user_id
        if is_read is not None:
            query_filter = and_(query_filter, Notification.is_read == is_read)

        total_result = await self.db.execute(
            select(func.count()).select_from(Notification).where(query_filter)
        )
        total = total_result.scalar() or 0

        unread_count = await self.get_unread_count(user_id)

        result = await self.db.execute(
            select(Notification)
            .where(query_filter)
            .order_by(Notification.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total, unread_count

    async def get_unread_count(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
        return result.scalar() or 0

    async def _get_owned(self, user_id: str, notification_id: str) -> Notification:
        notification = await self.db.get(Notification, notification_id)
        # Someone else's notification looks exactly like a missing one
        if not notification or notification.user_id != user_id:
            raise NotFound("Notification not found")
        return notification

    async def mark_as_read(self, user_id: str, notification_id: str) -> Notification:
        notification = await self._get_owned(user_id, notification_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = self.clock()
            await self.db.commit()
            await self.db.refresh(notification)
        return notification

    async def mark_all_as_read(self, user_id: str) -> int:
        """Mark every unread notification of the user as read. Returns rows updated."""
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=self.clock())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def delete_notification(self, user_id: str, notification_id: str) -> None:
        notification = await self._get_owned(user_id, notification_id)
        await self.db.delete(notification)
        await self.db.commit()

    async def get_stats(self, user_id: str) -> NotificationStats:
        owned = Notification.user_id == user_id

        total_result = await self.db.execute(
            select(func.count()).select_from(Notification).where(owned)
        )
        total = total_result.scalar() or 0
        unread = await self.get_unread_count(user_id)

        type_result = await self.db.execute(
            select(Notification.type, func.count()).where(owned).group_by(Notification.type)
        )
        by_type = {name: count for name, count in type_result.all()}

        priority_result = await self.db.execute(
            select(Notification.priority, func.count()).where(owned).group_by(Notification.priority)
        )
        by_priority = {name: 0 for name in NOTIFICATION_PRIORITIES}
        by_priority.update({name: count for name, count in priority_result.all()})

        return NotificationStats(total=total, unread=unread, by_type=by_type, by_priority=by_priority)
