"""
Post-commit side effects of invitation transitions.

Lifecycle operations return the effects they want performed; the
``EffectRunner`` executes them once the transition is durable. Each effect
runs on its own with a time limit, and a failed effect is logged and
reported without affecting the others or the committed state.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from app.core.config import get_settings
from app.schemas.user_notification import NotificationCreate
from app.services.email import EmailService, InvitationEmail
from app.services.user_notification import UserNotificationService

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class SendInvitationEmail:
    invitation_id: str
    email: InvitationEmail


@dataclass(frozen=True)
class Notify:
    notification: NotificationCreate


Effect = Union[SendInvitationEmail, Notify]


class EffectRunner:
    def __init__(
        self,
        notifications: UserNotificationService,
        email_service: EmailService,
        timeout: Optional[float] = None,
    ):
        self.notifications = notifications
        self.email_service = email_service
        self.timeout = timeout if timeout is not None else settings.side_effect_timeout_seconds

    async def run(self, effects: Sequence[Effect]) -> List[bool]:
        """Run effects in order. Returns one success flag per effect."""
        results = []
        for effect in effects:
            results.append(await self.run_one(effect))
        return results

    async def run_one(self, effect: Effect) -> bool:
        try:
            return await asyncio.wait_for(self._perform(effect), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{type(effect).__name__} timed out after {self.timeout}s")
        except Exception:
            logger.exception(f"{type(effect).__name__} failed")
        if isinstance(effect, Notify):
            await self.notifications.db.rollback()
        return False

    async def _perform(self, effect: Effect) -> bool:
        if isinstance(effect, SendInvitationEmail):
            sent = await asyncio.to_thread(self.email_service.send_invitation_email, effect.email)
            if not sent:
                logger.warning(f"Invitation email for {effect.invitation_id} was not delivered")
            return sent
        if isinstance(effect, Notify):
            await self.notifications.create_notification(effect.notification)
            return True
        raise TypeError(f"Unknown effect: {effect!r}")
