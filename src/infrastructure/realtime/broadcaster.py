# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Room broadcaster for live discussion delivery.

The broadcaster keeps, per program room, the set of live transport
connections and relays frames to them. It holds no message state: every
relayed message was persisted before it is published.

One broadcaster is created per process at application startup and kept on
``app.state``. With a relay attached, publishes are also forwarded to the
other processes serving the same rooms.

Frames have the shape ``{"event": <name>, "data": <payload>}``.

Example:
    broadcaster = RoomBroadcaster()
    broadcaster.join(connection, program_id)
    await broadcaster.publish(program_id, "message", record, exclude=connection)
"""

import logging
import uuid
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from fastapi import WebSocket

    from src.infrastructure.realtime.relay import RedisRoomRelay

logger = logging.getLogger(__name__)


def room_name(program_id: str) -> str:
    """Return the room name of a program."""
    return f"program:{program_id}"


class Connection(Protocol):
    """A live transport connection that can receive JSON frames."""

    connection_id: str

    async def send_json(self, message: dict[str, Any]) -> None: ...


class WebSocketConnection:
    """Connection backed by a FastAPI WebSocket.

    Attributes:
        websocket: The accepted WebSocket.
        learner_id: Authenticated learner owning the connection.
        connection_id: Unique identifier used in logs.
    """

    def __init__(self, websocket: "WebSocket", learner_id: str) -> None:
        self.websocket = websocket
        self.learner_id = learner_id
        self.connection_id = uuid.uuid4().hex

    async def send_json(self, message: dict[str, Any]) -> None:
        await self.websocket.send_json(message)

    def __repr__(self) -> str:
        return f"<WebSocketConnection {self.connection_id} learner={self.learner_id}>"


class RoomBroadcaster:
    """Registry of room memberships with fan-out delivery.

    Attributes:
        _rooms: Room name to member connections.
        _memberships: Connection to the rooms it joined.
        _relay: Optional cross-process relay.
    """

    def __init__(self, relay: "RedisRoomRelay | None" = None) -> None:
        self._rooms: dict[str, set[Connection]] = {}
        self._memberships: dict[Connection, set[str]] = {}
        self._relay = relay
        self._closed = False

    async def start(self) -> None:
        """Start the relay listener, if a relay is attached."""
        if self._relay is not None:
            await self._relay.start(self.deliver_local)
        logger.info("Room broadcaster started: relay=%s", self._relay is not None)

    async def close(self) -> None:
        """Stop the relay and forget every membership."""
        self._closed = True
        if self._relay is not None:
            await self._relay.stop()
        self._rooms.clear()
        self._memberships.clear()
        logger.info("Room broadcaster closed")

    # ========== Membership ==========

    def join(self, connection: Connection, program_id: str) -> None:
        """Add a connection to a program room. Joining twice is a no-op."""
        room = room_name(program_id)
        self._rooms.setdefault(room, set()).add(connection)
        self._memberships.setdefault(connection, set()).add(room)
        logger.debug("Connection %s joined %s", connection.connection_id, room)

    def leave(self, connection: Connection, program_id: str) -> None:
        """Remove a connection from a program room."""
        self._remove(connection, room_name(program_id))

    def disconnect(self, connection: Connection) -> None:
        """Remove a connection from every room it joined."""
        for room in list(self._memberships.get(connection, ())):
            self._remove(connection, room)
        self._memberships.pop(connection, None)

    def members(self, program_id: str) -> set[Connection]:
        """Return a copy of a room's members."""
        return set(self._rooms.get(room_name(program_id), ()))

    def rooms_of(self, connection: Connection) -> set[str]:
        """Return the rooms a connection has joined."""
        return set(self._memberships.get(connection, ()))

    def _remove(self, connection: Connection, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._rooms[room]

        joined = self._memberships.get(connection)
        if joined is not None:
            joined.discard(room)
            if not joined:
                del self._memberships[connection]

    # ========== Delivery ==========

    async def publish(
        self,
        program_id: str,
        event: str,
        data: Any,
        exclude: Connection | None = None,
    ) -> int:
        """Deliver an event to a room and forward it to other processes.

        Args:
            program_id: Program whose room receives the event.
            event: Event name.
            data: JSON-serializable payload.
            exclude: Connection that must not receive the event, usually
                the sender.

        Returns:
            Number of local connections that received the frame.
        """
        frame = {"event": event, "data": data}
        delivered = await self.deliver_local(program_id, frame, exclude=exclude)

        if self._relay is not None:
            try:
                await self._relay.forward(program_id, frame)
            except Exception as e:
                logger.warning("Relay forward failed for %s: %s", room_name(program_id), e)

        return delivered

    async def deliver_local(
        self,
        program_id: str,
        frame: dict[str, Any],
        exclude: Connection | None = None,
    ) -> int:
        """Send a frame to the local members of a room.

        Connections that fail to receive are dropped from every room.
        """
        if self._closed:
            return 0

        room = room_name(program_id)
        delivered = 0
        dead: list[Connection] = []

        for connection in list(self._rooms.get(room, ())):
            if connection is exclude:
                continue
            try:
                await connection.send_json(frame)
                delivered += 1
            except Exception as e:
                logger.warning(
                    "Dropping connection %s from %s after failed delivery: %s",
                    connection.connection_id,
                    room,
                    e,
                )
                dead.append(connection)

        for connection in dead:
            self.disconnect(connection)

        return delivered

    def get_stats(self) -> dict[str, Any]:
        """Get room and connection counts."""
        return {
            "rooms": len(self._rooms),
            "connections": len(self._memberships),
            "relay": self._relay is not None,
        }
