# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Redis pub/sub relay between broadcaster processes.

Each process tags the frames it forwards with its own origin id and
ignores frames carrying that id when they come back, so local members
never receive a frame twice.

Channels are ``{prefix}:program:{program_id}``.
"""

import asyncio
import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from redis.asyncio.client import PubSub

from src.infrastructure.cache import RedisClient

logger = logging.getLogger(__name__)

LocalDelivery = Callable[[str, dict[str, Any]], Awaitable[int]]


class RedisRoomRelay:
    """Forwards room frames through Redis and relays foreign ones locally.

    Attributes:
        origin_id: Identifier of this process in forwarded envelopes.
    """

    def __init__(self, redis: RedisClient, channel_prefix: str = "discussion") -> None:
        self._redis = redis
        self._prefix = channel_prefix
        self.origin_id = uuid.uuid4().hex
        self._pubsub: PubSub | None = None
        self._task: asyncio.Task[None] | None = None
        self._deliver: LocalDelivery | None = None

    def channel(self, program_id: str) -> str:
        """Return the Redis channel of a program room."""
        return f"{self._prefix}:program:{program_id}"

    def program_id_from_channel(self, channel: str) -> str | None:
        """Extract the program id from a room channel name."""
        head = f"{self._prefix}:program:"
        if not channel.startswith(head):
            return None
        return channel[len(head):] or None

    async def start(self, deliver: LocalDelivery) -> None:
        """Subscribe to every room channel and start the listener task.

        Args:
            deliver: Callback delivering a frame to local room members.
        """
        self._deliver = deliver
        self._pubsub = self._redis.pubsub()
        await self._pubsub.psubscribe(f"{self._prefix}:program:*")
        self._task = asyncio.create_task(self._listen())
        logger.info("Room relay listening: origin=%s", self.origin_id)

    async def stop(self) -> None:
        """Cancel the listener and release the subscription."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._pubsub is not None:
            await self._pubsub.punsubscribe()
            await self._pubsub.aclose()
            self._pubsub = None

    async def forward(self, program_id: str, frame: dict[str, Any]) -> None:
        """Publish a frame for the other processes."""
        await self._redis.publish_json(
            self.channel(program_id),
            {"origin": self.origin_id, "frame": frame},
        )

    async def handle_message(self, message: dict[str, Any]) -> bool:
        """Relay one pub/sub message to local members.

        Returns:
            True if the frame was relayed, False if it was skipped.
        """
        if message.get("type") not in ("message", "pmessage"):
            return False

        program_id = self.program_id_from_channel(str(message.get("channel", "")))
        if program_id is None:
            return False

        try:
            envelope = json.loads(message["data"])
        except (TypeError, ValueError) as e:
            logger.warning("Discarding malformed relay message: %s", e)
            return False

        if not isinstance(envelope, dict) or envelope.get("origin") == self.origin_id:
            return False

        frame = envelope.get("frame")
        if not isinstance(frame, dict) or self._deliver is None:
            return False

        await self._deliver(program_id, frame)
        return True

    async def _listen(self) -> None:
        assert self._pubsub is not None
        while True:
            try:
                async for message in self._pubsub.listen():
                    await self.handle_message(message)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Room relay listener failed, retrying: %s", e)
                await asyncio.sleep(1.0)
