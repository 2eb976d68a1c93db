"""
Celery tasks for notification delivery.
"""

import asyncio
import logging
from typing import Any, Dict

from .celery_app import celery_app
from ..realtime import RealtimeChannel

logger = logging.getLogger(__name__)


async def publish_notification(message: Dict[str, Any], channel: RealtimeChannel | None = None) -> int:
    """
    Publish a notification message on the addressed user's channel.

    Args:
        message: Serialized notification (see ``Notification.to_message``)
        channel: Connected channel to reuse; a short-lived one is opened otherwise

    Returns:
        Number of live subscribers that received the message
    """
    owns_channel = channel is None
    channel = channel or RealtimeChannel()

    if owns_channel:
        await channel.initialize()

    try:
        receivers = await channel.publish_to_user(message["userId"], message)
        logger.info(
            f"Delivered {message['event']} to user {message['userId']} "
            f"({receivers} live subscribers)"
        )
        return receivers
    finally:
        if owns_channel:
            await channel.close()


@celery_app.task(name="deliver_notification_task")
def deliver_notification_task(message: Dict[str, Any]):
    """
    Task to push a waitlist or booking notification to a user.

    Args:
        message: Serialized notification
    """

    async def _deliver():
        try:
            receivers = await publish_notification(message)
            return {"event": message.get("event"), "status": "sent", "receivers": receivers}
        except Exception as e:
            logger.error(f"Error delivering {message.get('event')} notification: {e}")
            return {"event": message.get("event"), "status": "error", "error": str(e)}

    # Run the async function
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_deliver())
    finally:
        loop.close()
