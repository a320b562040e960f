# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Redis client used to relay discussion events between API processes.

The client is created and connected in the application lifespan when
DISCUSSION_REDIS_FANOUT is enabled, and handed to the room broadcaster.

Example:
    client = RedisClient(settings)
    await client.connect()

    await client.publish_json("discussion:program:42", {"event": "message"})

    pubsub = client.pubsub()
    await pubsub.psubscribe("discussion:program:*")

    await client.close()
"""

import json
from typing import TYPE_CHECKING, Any, Optional

from redis.asyncio import ConnectionPool, Redis
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError as BaseRedisError

if TYPE_CHECKING:
    from src.core.config.settings import Settings


class RedisError(Exception):
    """Exception raised for Redis operation failures.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying Redis error.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class RedisClient:
    """Async Redis client wrapper with JSON publish and pub/sub access.

    Attributes:
        _settings: Application settings.
        _pool: The Redis connection pool.
        _redis: The connected client.
    """

    def __init__(self, settings: "Settings") -> None:
        self._settings = settings
        self._pool: Optional[ConnectionPool] = None
        self._redis: Optional[Redis] = None

    async def connect(self) -> None:
        """Create the Redis connection pool and verify it.

        Raises:
            RedisError: If connection fails.
        """
        try:
            self._pool = ConnectionPool.from_url(
                self._settings.redis.url,
                max_connections=self._settings.redis.max_connections,
                decode_responses=True,
            )
            self._redis = Redis(connection_pool=self._pool)

            await self._redis.ping()
        except BaseRedisError as e:
            raise RedisError("Failed to connect to Redis", e) from e

    async def close(self) -> None:
        """Close the Redis connection pool."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None

    def _ensure_connected(self) -> Redis:
        if self._redis is None:
            raise RedisError("Redis client not connected. Call connect() first.")
        return self._redis

    # ========== Pub/Sub operations ==========

    async def publish(self, channel: str, message: str) -> int:
        """Publish a message to a channel.

        Args:
            channel: The channel name.
            message: The message to publish.

        Returns:
            Number of subscribers that received the message.

        Raises:
            RedisError: If the operation fails.
        """
        redis = self._ensure_connected()
        try:
            return await redis.publish(channel, message)
        except BaseRedisError as e:
            raise RedisError(f"Failed to publish to channel: {channel}", e) from e

    async def publish_json(self, channel: str, payload: dict[str, Any]) -> int:
        """Serialize a payload as JSON and publish it.

        Raises:
            RedisError: If the operation fails.
        """
        return await self.publish(channel, json.dumps(payload, ensure_ascii=False, default=str))

    def pubsub(self) -> PubSub:
        """Create a pub/sub handle sharing this client's pool.

        Raises:
            RedisError: If not connected.
        """
        return self._ensure_connected().pubsub(ignore_subscribe_messages=True)

    # ========== Health check ==========

    async def ping(self) -> bool:
        """Check if Redis is reachable."""
        try:
            redis = self._ensure_connected()
            await redis.ping()
            return True
        except (RedisError, BaseRedisError):
            return False
