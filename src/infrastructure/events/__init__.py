# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event infrastructure module for QuestLMS.

Components:
- EventBus: In-memory pub/sub with pattern matching
- EventTypes: Centralized event type constants
- register_default_handlers: Attaches the activity log subscriber

Quick Start:
    from src.infrastructure.events import get_event_bus, EventTypes

    event_bus = get_event_bus()
    await event_bus.publish(
        EventTypes.Reward.CLAIMED,
        {"learner_id": "123", "program_id": "456", "xp_points": 1100},
    )
"""

from src.infrastructure.events.bus import (
    EventBus,
    EventData,
    EventHandler,
    get_event_bus,
    reset_event_bus,
)
from src.infrastructure.events.handlers import log_activity, register_default_handlers
from src.infrastructure.events.types import EventPatterns, EventTypes

__all__ = [
    # Event Bus
    "EventBus",
    "EventData",
    "EventHandler",
    "get_event_bus",
    "reset_event_bus",
    # Event Types
    "EventTypes",
    "EventPatterns",
    # Handlers
    "log_activity",
    "register_default_handlers",
]
