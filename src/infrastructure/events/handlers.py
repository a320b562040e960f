# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Default event subscribers.

The activity log writes one structured line per domain event so learner
activity can be followed from the application logs.
"""

from src.infrastructure.events.bus import EventBus, EventData
from src.infrastructure.events.types import EventPatterns
from src.utils.logging import get_logger

activity_logger = get_logger("questlms.activity")


async def log_activity(event: EventData) -> None:
    """Write a domain event to the activity log."""
    activity_logger.info(
        event.event_type,
        event_id=event.event_id,
        **event.payload,
    )


def register_default_handlers(event_bus: EventBus) -> None:
    """Attach the default subscribers to an event bus."""
    event_bus.subscribe(EventPatterns.ALL, log_activity)
