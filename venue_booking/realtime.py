"""
Redis pub/sub channel used to push notifications to connected users.
"""

import json
import logging
from typing import Any, Optional
from uuid import UUID

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError
from redis.exceptions import ConnectionError as RedisConnectionError

from .config import get_settings

logger = logging.getLogger(__name__)


def user_channel(user_id: UUID | str) -> str:
    """Build the pub/sub channel name for a user's live notifications."""
    return f"{get_settings().notification_channel_prefix}:{user_id}"


class RealtimeChannel:
    """Redis publisher with connection handling."""

    def __init__(self, client: Optional[Redis] = None):
        self.client: Optional[Redis] = client
        self.pool: Optional[redis.ConnectionPool] = None

    async def initialize(self) -> None:
        """Initialize Redis connection pool and client."""
        if self.client is not None:
            return

        settings = get_settings()

        try:
            self.pool = redis.ConnectionPool.from_url(
                settings.redis_url,
                max_connections=settings.redis_max_connections,
                retry_on_timeout=True,
                health_check_interval=30
            )
            self.client = Redis(connection_pool=self.pool)
            await self.client.ping()
            logger.info("Realtime channel connected to Redis")

        except RedisConnectionError as e:
            logger.error("Failed to connect to Redis: %s", e)
            raise

    async def close(self) -> None:
        """Close Redis connections."""
        if self.client:
            await self.client.aclose()
        if self.pool:
            await self.pool.disconnect()
        logger.debug("Realtime channel connections closed")

    async def publish(self, channel: str, message: Any) -> int:
        """
        Publish a JSON message.

        Returns:
            Number of subscribers that received it (0 when the user is offline
            or the publish failed)
        """
        if not self.client:
            logger.warning("Redis client not initialized")
            return 0

        try:
            return await self.client.publish(channel, json.dumps(message, default=str))
        except (RedisError, TypeError) as e:
            logger.warning("Failed to publish on %s: %s", channel, e)
            return 0

    async def publish_to_user(self, user_id: UUID | str, message: Any) -> int:
        """Publish on the user's notification channel."""
        return await self.publish(user_channel(user_id), message)
