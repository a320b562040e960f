# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Connection policy: live delivery or polling."""

import logging
from enum import Enum

from src.core.config import get_settings
from src.core.config.settings import DiscussionSettings

logger = logging.getLogger(__name__)


class ConnectionMode(str, Enum):
    """How a room receives updates."""

    LIVE = "live"
    POLLING = "polling"


class ConnectionPolicy:
    """Two-state switch between live delivery and REST polling.

    Starts in POLLING and only turns LIVE once the live channel has
    confirmed the connection.
    """

    def __init__(self, poll_interval: float = 4.0) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.poll_interval = poll_interval
        self._mode = ConnectionMode.POLLING

    @classmethod
    def from_settings(cls, settings: DiscussionSettings | None = None) -> "ConnectionPolicy":
        """Build a policy polling at DISCUSSION_POLL_INTERVAL."""
        settings = settings or get_settings().discussion
        return cls(poll_interval=settings.poll_interval)

    @property
    def mode(self) -> ConnectionMode:
        return self._mode

    @property
    def is_live(self) -> bool:
        return self._mode is ConnectionMode.LIVE

    @property
    def should_poll(self) -> bool:
        return self._mode is ConnectionMode.POLLING

    def mark_live(self) -> None:
        if self._mode is not ConnectionMode.LIVE:
            logger.info("Live channel connected, polling stopped")
        self._mode = ConnectionMode.LIVE

    def mark_polling(self) -> None:
        if self._mode is not ConnectionMode.POLLING:
            logger.info("Live channel lost, polling every %.1fs", self.poll_interval)
        self._mode = ConnectionMode.POLLING
