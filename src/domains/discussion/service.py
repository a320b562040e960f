# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Discussion service for program rooms.

Messages are persisted here; live delivery to connected learners is the
job of the room broadcaster, which only relays records that were already
stored by this service.
"""

import logging

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import DiscussionSettings, get_settings
from src.core.exceptions import (
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    ProgramNotFoundError,
)
from src.infrastructure.database.models import DiscussionMessage, Learner, Program
from src.infrastructure.events import EventBus, EventTypes, get_event_bus
from src.models.common import LearnerRole
from src.models.discussion import (
    ClearRoomResponse,
    DiscussionAuthor,
    DiscussionMessageResponse,
    LikeResponse,
)

logger = logging.getLogger(__name__)


class MessageNotFoundError(NotFoundError):
    """Raised when a discussion message is not found."""

    pass


class EmptyMessageError(InvalidInputError):
    """Raised when a message is empty after trimming."""

    pass


class MessageTooLongError(InvalidInputError):
    """Raised when a message exceeds the configured length."""

    pass


class DiscussionService:
    """Service for reading and writing discussion room messages."""

    def __init__(
        self,
        db: AsyncSession,
        event_bus: EventBus | None = None,
        settings: DiscussionSettings | None = None,
    ) -> None:
        self.db = db
        self._event_bus = event_bus or get_event_bus()
        self._settings = settings or get_settings().discussion

    async def list_messages(
        self,
        program_id: str,
        limit: int | None = None,
    ) -> list[DiscussionMessageResponse]:
        """List the most recent messages of a room, oldest first.

        Args:
            program_id: Program whose room is read.
            limit: Maximum number of messages. Defaults to the configured
                history limit.

        Returns:
            Messages in display order.
        """
        limit = limit or self._settings.history_limit

        result = await self.db.execute(
            select(DiscussionMessage)
            .where(DiscussionMessage.program_id == program_id)
            .order_by(DiscussionMessage.created_at.desc(), DiscussionMessage.id.desc())
            .limit(limit)
        )
        messages = list(result.unique().scalars().all())
        messages.reverse()

        return [self._to_response(m, m.learner) for m in messages]

    async def post_message(
        self,
        learner_id: str,
        program_id: str,
        message: str,
    ) -> DiscussionMessageResponse:
        """Persist a message in a program room.

        Args:
            learner_id: Author of the message.
            program_id: Program whose room receives the message.
            message: Message text. Surrounding whitespace is removed.

        Returns:
            The stored message with its author.

        Raises:
            EmptyMessageError: If the text is empty after trimming.
            MessageTooLongError: If the text exceeds the configured length.
            ProgramNotFoundError: If the program does not exist.
        """
        text = (message or "").strip()
        if not text:
            raise EmptyMessageError("Message is required")
        if len(text) > self._settings.max_message_length:
            raise MessageTooLongError(
                "Message is too long",
                details={"max_length": self._settings.max_message_length},
            )

        result = await self.db.execute(select(Program.id).where(Program.id == program_id))
        if result.scalar_one_or_none() is None:
            raise ProgramNotFoundError(f"Program {program_id} not found")

        result = await self.db.execute(select(Learner).where(Learner.id == learner_id))
        author = result.scalar_one_or_none()

        record = DiscussionMessage(
            program_id=program_id,
            learner_id=learner_id,
            message=text,
            likes=0,
        )
        self.db.add(record)
        await self.db.commit()

        logger.info(
            "Message posted: program=%s, learner=%s, message=%s",
            program_id,
            learner_id,
            record.id,
        )

        await self._event_bus.publish(
            EventTypes.Discussion.MESSAGE_POSTED,
            {"program_id": program_id, "learner_id": learner_id, "message_id": record.id},
        )

        return self._to_response(record, author)

    async def like_message(self, message_id: str) -> LikeResponse:
        """Increment a message's like counter.

        The increment is done by the database so concurrent likes are
        never lost.

        Raises:
            MessageNotFoundError: If the message does not exist.
        """
        liked = await self.db.execute(
            update(DiscussionMessage)
            .where(DiscussionMessage.id == message_id)
            .values(likes=DiscussionMessage.likes + 1)
            .execution_options(synchronize_session=False)
        )
        if liked.rowcount == 0:
            await self.db.rollback()
            raise MessageNotFoundError(f"Message {message_id} not found")

        result = await self.db.execute(
            select(DiscussionMessage.likes, DiscussionMessage.program_id).where(
                DiscussionMessage.id == message_id
            )
        )
        likes, program_id = result.one()
        await self.db.commit()

        logger.debug("Message liked: message=%s, likes=%d", message_id, likes)

        await self._event_bus.publish(
            EventTypes.Discussion.MESSAGE_LIKED,
            {"program_id": program_id, "message_id": message_id, "likes": likes},
        )

        return LikeResponse(id=message_id, likes=likes)

    async def clear_room(self, program_id: str, requested_by_role: str) -> ClearRoomResponse:
        """Delete every message of a program room.

        Raises:
            ForbiddenError: If the caller is not an admin.
        """
        if requested_by_role != LearnerRole.ADMIN.value:
            raise ForbiddenError("Only admins can clear discussion rooms")

        result = await self.db.execute(
            delete(DiscussionMessage)
            .where(DiscussionMessage.program_id == program_id)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        deleted = result.rowcount or 0
        logger.info("Room cleared: program=%s, deleted=%d", program_id, deleted)

        await self._event_bus.publish(
            EventTypes.Discussion.ROOM_CLEARED,
            {"program_id": program_id, "deleted": deleted},
        )

        return ClearRoomResponse(program_id=program_id, deleted=deleted)

    @staticmethod
    def _to_response(
        record: DiscussionMessage,
        author: Learner | None,
    ) -> DiscussionMessageResponse:
        return DiscussionMessageResponse(
            id=record.id,
            program_id=record.program_id,
            learner_id=record.learner_id,
            message=record.message,
            likes=record.likes,
            created_at=record.created_at,
            user=DiscussionAuthor(id=author.id, name=author.name, avatar=author.avatar)
            if author is not None
            else None,
        )
