"""Redis service for cross-worker pub/sub.

Each worker only holds its own WebSocket connections. When Redis is
configured, broadcasts are published here and every worker (including
the publisher) delivers them to its local connections.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as aioredis
from redis.asyncio.client import PubSub

from ..config import settings

logger = logging.getLogger(__name__)

MessageHandler = Callable[[dict], Awaitable[None]]


class RedisService:
    """
    Async Redis pub/sub service for multi-worker deployment.

    Features:
    - Connection pooling
    - Channel subscriptions with async handlers
    - JSON publish
    - Background listener task
    """

    def __init__(self) -> None:
        """Initialize the Redis service (not connected yet)."""
        self._redis: Optional[aioredis.Redis] = None
        self._pubsub: Optional[PubSub] = None
        self._listener_task: Optional[asyncio.Task] = None
        self._handlers: dict[str, list[MessageHandler]] = {}
        self._running = False

    async def connect(self, url: Optional[str] = None) -> None:
        """Initialize Redis connection with connection pooling."""
        self._redis = aioredis.from_url(
            url or settings.redis_url,
            max_connections=settings.redis_max_connections,
            socket_timeout=settings.redis_socket_timeout,
            decode_responses=True,
        )
        try:
            await self._redis.ping()
        except Exception:
            await self._redis.aclose()
            self._redis = None
            raise
        logger.info("Redis connected successfully")

    async def disconnect(self) -> None:
        """Close Redis connection and cleanup resources."""
        self._running = False
        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None
        if self._pubsub:
            await self._pubsub.aclose()
            self._pubsub = None
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis disconnected")

    @property
    def client(self) -> aioredis.Redis:
        """Get Redis client instance."""
        if self._redis is None:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._redis

    @property
    def is_connected(self) -> bool:
        """Check if Redis is connected."""
        return self._redis is not None

    async def subscribe(self, channel: str, handler: MessageHandler) -> None:
        """
        Subscribe to a channel with a message handler.

        Args:
            channel: The channel name to subscribe to
            handler: Async function to call with each decoded message
        """
        if channel not in self._handlers:
            self._handlers[channel] = []
            if self._pubsub:
                await self._pubsub.subscribe(channel)
        self._handlers[channel].append(handler)
        logger.debug(f"Subscribed to channel: {channel}")

    async def publish(self, channel: str, message: dict[str, Any]) -> int:
        """
        Publish a message to a channel.

        Args:
            channel: The channel name to publish to
            message: The message dictionary to publish

        Returns:
            Number of subscribers that received the message
        """
        return await self.client.publish(channel, json.dumps(message))

    async def start_listening(self) -> None:
        """Start the pub/sub listener background task."""
        if self._running and self._listener_task is not None:
            logger.debug("Pub/sub listener already running")
            return

        self._pubsub = self.client.pubsub()
        self._running = True

        for channel in self._handlers:
            await self._pubsub.subscribe(channel)

        self._listener_task = asyncio.create_task(self._listen_loop())
        logger.info("Redis pub/sub listener started")

    async def _listen_loop(self) -> None:
        """Background task to receive and route pub/sub messages."""
        while self._running:
            try:
                if self._pubsub is None:
                    break
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=1.0,
                )
                if message and message["type"] == "message":
                    await self.dispatch(message["channel"], message["data"])
            except asyncio.CancelledError:
                break
            except Exception as e:
                if self._running:
                    logger.error(f"Pub/sub listener error: {e}")
                    await asyncio.sleep(1)
                else:
                    break

    async def dispatch(self, channel: str, raw: str) -> None:
        """Decode a raw pub/sub payload and call every handler for the channel."""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Dropping non-JSON pub/sub payload on {channel}")
            return

        for handler in self._handlers.get(channel, []):
            try:
                await handler(data)
            except Exception as e:
                logger.error(f"Handler error on {channel}: {e}")

    async def health_check(self) -> dict[str, Any]:
        """
        Get Redis health status.

        Returns:
            Dictionary with connection status and memory info
        """
        try:
            if not self.is_connected:
                return {"status": "disconnected"}

            info = await self.client.info("memory")
            return {
                "status": "healthy",
                "used_memory_human": info.get("used_memory_human", "unknown"),
            }
        except Exception as e:
            return {"status": "error", "error": str(e)}


# Global singleton instance
redis_service = RedisService()


__all__ = [
    "RedisService",
    "redis_service",
]
