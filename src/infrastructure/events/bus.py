# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory event bus for QuestLMS.

Domain services publish informational events (enrollment completed, quiz
graded, reward claimed, ...) here. Subscribers are activity hooks such as
the structured activity log; no invariant depends on delivery.

The EventBus supports:
- Exact event type matching (e.g., "enrollment.completed")
- Wildcard pattern matching (e.g., "discussion.*", "*.claimed")
- Async handlers, several per event type

Example:
    from src.infrastructure.events import get_event_bus, EventTypes

    event_bus = get_event_bus()

    async def on_completed(event):
        print(event.payload["program_id"])

    event_bus.subscribe(EventTypes.Enrollment.COMPLETED, on_completed)

    await event_bus.publish(
        EventTypes.Enrollment.COMPLETED,
        {"learner_id": "123", "program_id": "456"},
    )
"""

import asyncio
import fnmatch
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable
from uuid import uuid4

from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

EventHandler = Callable[["EventData"], Awaitable[None]]


@dataclass
class EventData:
    """Container for event data with metadata.

    Attributes:
        event_type: The event type string.
        payload: The event payload data.
        event_id: Unique event identifier.
        timestamp: When the event was published.
    """

    event_type: str
    payload: dict[str, Any]
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
        }


def _is_pattern(event_type: str) -> bool:
    return "*" in event_type or "?" in event_type


class EventBus:
    """In-memory async event bus with pattern matching support.

    Designed for single-threaded async use inside one process.
    Cross-process delivery of discussion events is handled separately
    by the room broadcaster's Redis relay.

    Attributes:
        _handlers: Dictionary mapping event types to handler lists.
        _pattern_handlers: Dictionary mapping patterns to handler lists.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._pattern_handlers: dict[str, list[EventHandler]] = {}
        self._event_count = 0

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe a handler to an event type or pattern.

        Args:
            event_type: Event type string or pattern with wildcards.
            handler: Async function to call when event is published.
        """
        registry = self._pattern_handlers if _is_pattern(event_type) else self._handlers
        registry.setdefault(event_type, []).append(handler)
        logger.debug("Subscribed handler to: %s", event_type)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """Unsubscribe a handler from an event type or pattern.

        Returns:
            True if handler was found and removed, False otherwise.
        """
        registry = self._pattern_handlers if _is_pattern(event_type) else self._handlers
        handlers = registry.get(event_type)
        if not handlers or handler not in handlers:
            return False

        handlers.remove(handler)
        if not handlers:
            del registry[event_type]
        return True

    async def publish(self, event_type: str, payload: dict[str, Any]) -> EventData:
        """Publish an event to all matching subscribers.

        Handlers run concurrently. A failing handler is logged and does
        not affect the others or the publisher.

        Args:
            event_type: The event type string.
            payload: Event data dictionary.

        Returns:
            EventData object with event metadata.
        """
        event = EventData(event_type=event_type, payload=payload)
        self._event_count += 1

        handlers_to_call: list[EventHandler] = list(self._handlers.get(event_type, []))
        for pattern, pattern_handlers in self._pattern_handlers.items():
            if fnmatch.fnmatch(event_type, pattern):
                handlers_to_call.extend(pattern_handlers)

        if not handlers_to_call:
            logger.debug("No handlers for event: %s", event_type)
            return event

        logger.debug("Publishing event %s to %d handlers", event_type, len(handlers_to_call))

        async def safe_call(handler: EventHandler) -> None:
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    "Handler error for event %s: %s",
                    event_type,
                    str(e),
                    exc_info=True,
                )

        await asyncio.gather(*[safe_call(handler) for handler in handlers_to_call])

        return event

    def clear(self) -> None:
        """Remove all subscriptions."""
        self._handlers.clear()
        self._pattern_handlers.clear()

    def get_stats(self) -> dict[str, Any]:
        """Get subscription and event counts."""
        exact_count = sum(len(h) for h in self._handlers.values())
        pattern_count = sum(len(h) for h in self._pattern_handlers.values())

        return {
            "total_handlers": exact_count + pattern_count,
            "events_published": self._event_count,
            "event_types": list(self._handlers.keys()),
            "patterns": list(self._pattern_handlers.keys()),
        }


_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the process-wide event bus instance."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Reset the event bus singleton. Used by tests."""
    global _event_bus
    if _event_bus is not None:
        _event_bus.clear()
    _event_bus = None
