"""
Notification emitter for waitlist and booking events.

Delivery is fire-and-forget: the reservation core hands the event to the
fan-out (Celery task publishing on the user's Redis channel) and never waits
for, retries, or fails on delivery.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

logger = logging.getLogger(__name__)


class NotificationEvent(str, Enum):
    """Events pushed to a user's live channel."""
    WAITLIST_ADDED = "waitlist:added"
    WAITLIST_PROMOTED = "waitlist:promoted"
    BOOKING_CANCELLED = "booking:cancelled"


@dataclass
class Notification:
    """A single event addressed to one user."""
    event: NotificationEvent
    user_id: UUID
    slot_id: UUID
    payload: Dict[str, Any] = field(default_factory=dict)
    emitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_message(self) -> Dict[str, Any]:
        """Serialize to the JSON message published on the channel."""
        return {
            "event": self.event.value,
            "userId": str(self.user_id),
            "slotId": str(self.slot_id),
            "payload": self.payload,
            "emittedAt": self.emitted_at.isoformat(),
        }


class NotificationEmitter:
    """Base emitter. Subclasses implement ``_deliver``."""

    async def emit(
        self,
        event: NotificationEvent,
        user_id: UUID,
        slot_id: UUID,
        payload: Optional[Dict[str, Any]] = None
    ) -> None:
        """Hand an event to the fan-out. Failures are logged, never raised."""
        notification = Notification(
            event=event,
            user_id=user_id,
            slot_id=slot_id,
            payload=payload or {}
        )
        try:
            await self._deliver(notification)
            logger.info(f"Notification {event.value} queued for user {user_id} on slot {slot_id}")
        except Exception as e:
            logger.warning(f"Failed to queue {event.value} notification for user {user_id}: {e}")

    async def _deliver(self, notification: Notification) -> None:
        raise NotImplementedError


class CeleryNotificationEmitter(NotificationEmitter):
    """Queues delivery on the Celery worker that publishes to Redis."""

    async def _deliver(self, notification: Notification) -> None:
        from ..tasks.notification_tasks import deliver_notification_task
        deliver_notification_task.delay(notification.to_message())


_emitter: Optional[NotificationEmitter] = None


def get_notification_emitter() -> NotificationEmitter:
    """FastAPI dependency / accessor for the process-wide emitter."""
    global _emitter
    if _emitter is None:
        _emitter = CeleryNotificationEmitter()
    return _emitter
