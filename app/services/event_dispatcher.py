"""
In-process publish/subscribe for committed domain events.

Services publish once their transaction is durable; delivery layers (the
WebSocket bridge) subscribe. A handler that fails is logged and skipped, so
publishing never raises.

    await emit_event(
        EventType.NOTIFICATION_CREATED,
        notification_payload(notification),
        target_user_id=notification.user_id,
    )
"""
import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    NOTIFICATION_CREATED = "notification.created"


@dataclass
class Event:
    type: EventType
    data: Dict[str, Any]
    target_user_id: Optional[str] = None
    timestamp: str = field(default_factory=lambda: utcnow().isoformat())


EventHandler = Callable[[Event], Union[None, Awaitable[None]]]


class EventDispatcher:
    """Handler registry keyed by event type."""

    def __init__(self) -> None:
        self._handlers: Dict[EventType, List[EventHandler]] = {}

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        handlers = self._handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    async def _invoke(self, handler: EventHandler, event: Event) -> None:
        try:
            result = handler(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Handler {getattr(handler, '__name__', handler)!r} failed on {event.type.value}")

    async def emit(self, event: Event) -> None:
        handlers = list(self._handlers.get(event.type, []))
        if not handlers:
            logger.debug(f"No subscribers for {event.type.value}")
            return
        await asyncio.gather(*(self._invoke(h, event) for h in handlers))


_dispatcher = EventDispatcher()


def get_dispatcher() -> EventDispatcher:
    return _dispatcher


async def emit_event(
    event_type: EventType,
    data: Dict[str, Any],
    target_user_id: Optional[str] = None,
) -> None:
    """Publish ``data`` to every subscriber of ``event_type``."""
    await _dispatcher.emit(Event(type=event_type, data=data, target_user_id=target_user_id))


def subscribe(event_type: EventType, handler: EventHandler) -> None:
    _dispatcher.subscribe(event_type, handler)
