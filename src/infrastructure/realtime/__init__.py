# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Realtime delivery infrastructure for QuestLMS.

Components:
- RoomBroadcaster: Per-process registry of program rooms and live connections
- WebSocketConnection: Connection adapter for FastAPI WebSockets
- RedisRoomRelay: Optional Redis pub/sub fan-out between processes
"""

from src.infrastructure.realtime.broadcaster import (
    Connection,
    RoomBroadcaster,
    WebSocketConnection,
    room_name,
)
from src.infrastructure.realtime.relay import RedisRoomRelay

__all__ = [
    "Connection",
    "RoomBroadcaster",
    "WebSocketConnection",
    "RedisRoomRelay",
    "room_name",
]
