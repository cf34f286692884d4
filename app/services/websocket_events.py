"""
Bridges the event dispatcher to connected WebSocket clients.
"""
import logging

from app.services.event_dispatcher import Event, EventType, subscribe
from app.services.websocket_manager import manager

logger = logging.getLogger(__name__)


async def handle_notification_event(event: Event) -> None:
    """Deliver a freshly stored notification to every socket of its recipient."""
    if not event.target_user_id:
        logger.warning(f"Notification event missing target user: {event.type.value}")
        return

    message = {"type": "notification", "data": event.data}
    delivered = await manager.send_personal_message(message, event.target_user_id)
    logger.debug(f"Pushed notification to {delivered} socket(s) of user {event.target_user_id}")


def register_websocket_handlers() -> None:
    """Register all WebSocket event handlers. Called once at application startup."""
    subscribe(EventType.NOTIFICATION_CREATED, handle_notification_event)
    logger.info("WebSocket event handlers registered")
