# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Client-side discussion room.

A room keeps a local copy of a program's messages keyed by id, so a
message that arrives both from the server echo and from polling is only
shown once. Messages are displayed in created_at order.

Sending persists the message over REST first, appends the stored record
locally, and only then asks the live channel to relay it. Liking is
optimistic: the counter moves immediately and is rolled back if the
server rejects the like, in which case nothing is relayed.

While the live channel is down the room polls the REST endpoint.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import ValidationError

from src.client.api import DiscussionAPI
from src.client.live import LiveChannel
from src.client.policy import ConnectionPolicy
from src.models.discussion import DiscussionMessageResponse
from src.utils.datetime import ensure_utc

logger = logging.getLogger(__name__)


class LikeState(str, Enum):
    """Lifecycle of an optimistic like."""

    TENTATIVE = "tentative"
    COMMITTED = "committed"
    BROADCAST = "broadcast"
    ROLLED_BACK = "rolled_back"


class InvalidLikeTransitionError(Exception):
    """Raised when a like is moved to a state it cannot reach."""

    pass


@dataclass
class PendingLike:
    """An optimistic like.

    TENTATIVE -> COMMITTED -> BROADCAST, or TENTATIVE -> ROLLED_BACK.
    A committed like whose broadcast failed stays COMMITTED.

    Attributes:
        message_id: Liked message.
        state: Current state.
        likes: Server-confirmed like count, once committed.
        error: Failure reason, once rolled back.
    """

    message_id: str
    state: LikeState = LikeState.TENTATIVE
    likes: int | None = None
    error: str | None = None

    def commit(self, likes: int) -> None:
        self._require(LikeState.TENTATIVE, LikeState.COMMITTED)
        self.state = LikeState.COMMITTED
        self.likes = likes

    def mark_broadcast(self) -> None:
        self._require(LikeState.COMMITTED, LikeState.BROADCAST)
        self.state = LikeState.BROADCAST

    def roll_back(self, error: str) -> None:
        self._require(LikeState.TENTATIVE, LikeState.ROLLED_BACK)
        self.state = LikeState.ROLLED_BACK
        self.error = error

    def _require(self, expected: LikeState, target: LikeState) -> None:
        if self.state is not expected:
            raise InvalidLikeTransitionError(
                f"Cannot move like of {self.message_id} from {self.state.value} to {target.value}"
            )


def _sort_key(message: DiscussionMessageResponse) -> tuple[datetime, str]:
    return ensure_utc(message.created_at), message.id


class DiscussionRoom:
    """Local view of one program's discussion room.

    Args:
        program_id: Program whose room is shown.
        api: REST client.
        channel: Live channel, or None to rely on polling only.
        policy: Connection policy. By default a POLLING policy using
            DISCUSSION_POLL_INTERVAL.
    """

    def __init__(
        self,
        program_id: str,
        api: DiscussionAPI,
        channel: LiveChannel | None = None,
        policy: ConnectionPolicy | None = None,
    ) -> None:
        self.program_id = program_id
        self._api = api
        self._channel = channel
        self.policy = policy or ConnectionPolicy.from_settings()
        self._messages: dict[str, DiscussionMessageResponse] = {}
        # Likes sent but not yet answered, re-applied over polled counts
        self._pending_likes: dict[str, int] = {}
        self._poll_task: asyncio.Task[None] | None = None

    @property
    def messages(self) -> list[DiscussionMessageResponse]:
        """Messages in display order."""
        return sorted(self._messages.values(), key=_sort_key)

    def get(self, message_id: str) -> DiscussionMessageResponse | None:
        return self._messages.get(message_id)

    # ========== Lifecycle ==========

    async def open(self) -> None:
        """Load history, subscribe to live events and start polling."""
        if self._channel is not None:
            self._channel.on("message", self.handle_message_event)
            self._channel.on("message-liked", self.handle_liked_event)
            self._channel.on_state(self.handle_connection_state)
            if self._channel.connected:
                self.policy.mark_live()
            await self._channel.join(self.program_id)

        try:
            await self.refresh()
        except Exception as e:
            logger.warning("Initial load of room %s failed: %s", self.program_id, e)

        self._poll_task = asyncio.create_task(self._poll_loop())

    async def close(self) -> None:
        """Stop polling and leave the live room."""
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        if self._channel is not None:
            self._channel.off("message", self.handle_message_event)
            self._channel.off("message-liked", self.handle_liked_event)
            self._channel.off_state(self.handle_connection_state)
            try:
                await self._channel.leave(self.program_id)
            except Exception as e:
                logger.debug("Leaving room %s failed: %s", self.program_id, e)

    # ========== Actions ==========

    async def refresh(self) -> None:
        """Replace the local copy with the server's latest messages."""
        records = await self._api.list_messages(self.program_id)
        self._messages = {record.id: record for record in records}
        for message_id, pending in self._pending_likes.items():
            self._adjust_likes(message_id, pending)

    async def send(self, text: str) -> DiscussionMessageResponse:
        """Persist a message, show it, then relay it to the room.

        Raises:
            DiscussionAPIError: If the server rejects the message. Nothing
                is shown or relayed in that case.
        """
        record = await self._api.post_message(self.program_id, text.strip())
        self._messages[record.id] = record

        await self._relay("new-message", record.model_dump(mode="json", by_alias=True))
        return record

    async def like(self, message_id: str) -> PendingLike:
        """Like a message optimistically.

        Returns:
            The like in its final state: BROADCAST, COMMITTED if the relay
            failed, or ROLLED_BACK if the server rejected it.
        """
        pending = PendingLike(message_id)
        self._pending_likes[message_id] = self._pending_likes.get(message_id, 0) + 1
        self._adjust_likes(message_id, +1)

        try:
            result = await self._api.like_message(message_id)
        except Exception as e:
            self._settle_like(message_id)
            self._adjust_likes(message_id, -1)
            pending.roll_back(str(e))
            logger.warning("Like of %s rolled back: %s", message_id, e)
            return pending

        remaining = self._settle_like(message_id)
        pending.commit(result.likes)
        self._set_likes(message_id, result.likes + remaining)

        if await self._relay("like-message", {"messageId": message_id, "programId": self.program_id}):
            pending.mark_broadcast()
        return pending

    # ========== Live events ==========

    async def handle_message_event(self, data: Any) -> None:
        """Apply a relayed message. Duplicates and other rooms are ignored."""
        try:
            record = DiscussionMessageResponse.model_validate(data)
        except ValidationError as e:
            logger.warning("Ignoring malformed message event: %s", e)
            return

        if record.program_id != self.program_id or record.id in self._messages:
            return
        self._messages[record.id] = record

    async def handle_liked_event(self, data: Any) -> None:
        """Apply a like made by another member."""
        if isinstance(data, dict) and data.get("messageId"):
            self._adjust_likes(str(data["messageId"]), +1)

    async def handle_connection_state(self, connected: bool) -> None:
        if connected:
            self.policy.mark_live()
        else:
            self.policy.mark_polling()

    # ========== Internals ==========

    async def _relay(self, event: str, data: dict[str, Any]) -> bool:
        """Ask the live channel to relay an event. Failures are absorbed."""
        if self._channel is None or not self.policy.is_live:
            return False
        try:
            await self._channel.emit(event, data)
        except Exception as e:
            logger.warning("Relay of %s in room %s failed: %s", event, self.program_id, e)
            return False
        return True

    def _settle_like(self, message_id: str) -> int:
        """Drop one pending like and return how many are still in flight."""
        remaining = self._pending_likes.get(message_id, 0) - 1
        if remaining > 0:
            self._pending_likes[message_id] = remaining
        else:
            self._pending_likes.pop(message_id, None)
            remaining = 0
        return remaining

    def _adjust_likes(self, message_id: str, delta: int) -> None:
        message = self._messages.get(message_id)
        if message is not None:
            self._set_likes(message_id, max(0, message.likes + delta))

    def _set_likes(self, message_id: str, likes: int) -> None:
        message = self._messages.get(message_id)
        if message is not None:
            self._messages[message_id] = message.model_copy(update={"likes": likes})

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.policy.poll_interval)
            if not self.policy.should_poll:
                continue
            try:
                await self.refresh()
            except Exception as e:
                logger.warning("Polling room %s failed: %s", self.program_id, e)
