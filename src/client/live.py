# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Live channel to the discussion WebSocket.

The channel is an injected resource: whoever creates it owns its
lifecycle, and rooms receive it explicitly. It reconnects on its own
after a drop and rejoins the rooms it had joined.

Example:
    channel = LiveChannel("ws://localhost:3000/api/v1/discussion/ws", token)
    channel.on("message", handle_message)
    await channel.start()
    await channel.join(program_id)
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], Awaitable[None]]
StateHandler = Callable[[bool], Awaitable[None]]


class ChannelNotConnectedError(Exception):
    """Raised when emitting on a channel that is not connected."""

    pass


class LiveChannel:
    """Reconnecting WebSocket channel with event dispatch.

    Attributes:
        url: WebSocket endpoint without the token.
        learner_id: Learner id confirmed by the server, once connected.
    """

    def __init__(
        self,
        url: str,
        token: str,
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 30.0,
    ) -> None:
        self.url = url
        self._token = token
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_delay = max_reconnect_delay
        self._handlers: dict[str, list[EventHandler]] = {}
        self._state_handlers: list[StateHandler] = []
        self._rooms: set[str] = set()
        self._ws: Any = None
        self._connected = False
        self._task: asyncio.Task[None] | None = None
        self._closing = False
        self.learner_id: str | None = None

    @property
    def connected(self) -> bool:
        return self._connected

    # ========== Subscriptions ==========

    def on(self, event: str, handler: EventHandler) -> None:
        """Register a handler for a server event."""
        self._handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def on_state(self, handler: StateHandler) -> None:
        """Register a handler called with True on connect and False on disconnect."""
        self._state_handlers.append(handler)

    def off_state(self, handler: StateHandler) -> None:
        if handler in self._state_handlers:
            self._state_handlers.remove(handler)

    # ========== Lifecycle ==========

    async def start(self) -> None:
        """Start the connection loop in the background."""
        if self._task is None:
            self._closing = False
            self._task = asyncio.create_task(self._run())

    async def close(self) -> None:
        """Disconnect and stop reconnecting."""
        self._closing = True
        if self._ws is not None:
            await self._ws.close()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self._set_connected(False)

    # ========== Outgoing ==========

    async def emit(self, event: str, data: Any) -> None:
        """Send an event to the server.

        Raises:
            ChannelNotConnectedError: If the channel is not connected.
        """
        if not self._connected or self._ws is None:
            raise ChannelNotConnectedError(f"Cannot emit {event}: channel not connected")
        try:
            await self._ws.send(json.dumps({"event": event, "data": data}, default=str))
        except ConnectionClosed as e:
            raise ChannelNotConnectedError(f"Cannot emit {event}: {e}") from e

    async def join(self, program_id: str) -> None:
        """Join a program room now, and again after every reconnect."""
        self._rooms.add(program_id)
        if self._connected:
            await self.emit("join-program", program_id)

    async def leave(self, program_id: str) -> None:
        self._rooms.discard(program_id)
        if self._connected:
            await self.emit("leave-program", program_id)

    # ========== Incoming ==========

    async def dispatch(self, frame: dict[str, Any]) -> None:
        """Hand a server frame to its handlers.

        Handler failures are logged and do not stop other handlers.
        """
        event = frame.get("event")
        data = frame.get("data")

        if event == "connected":
            if isinstance(data, dict):
                self.learner_id = data.get("learnerId")
            await self._set_connected(True)
            for program_id in sorted(self._rooms):
                await self.emit("join-program", program_id)
            return

        if event == "error":
            logger.warning("Live channel error: %s", data)

        for handler in list(self._handlers.get(str(event), ())):
            try:
                await handler(data)
            except Exception:
                logger.exception("Live channel handler for %s failed", event)

    async def _set_connected(self, connected: bool) -> None:
        if connected == self._connected:
            return
        self._connected = connected
        for handler in list(self._state_handlers):
            try:
                await handler(connected)
            except Exception:
                logger.exception("Live channel state handler failed")

    async def _run(self) -> None:
        delay = self._reconnect_delay
        while not self._closing:
            try:
                async with websockets.connect(f"{self.url}?token={self._token}") as ws:
                    self._ws = ws
                    delay = self._reconnect_delay
                    async for raw in ws:
                        try:
                            frame = json.loads(raw)
                        except ValueError:
                            logger.warning("Discarding malformed live frame")
                            continue
                        if isinstance(frame, dict):
                            await self.dispatch(frame)
            except (ConnectionClosed, WebSocketException, OSError) as e:
                logger.info("Live channel disconnected: %s", e)
            finally:
                self._ws = None
                await self._set_connected(False)

            if self._closing:
                break
            await asyncio.sleep(delay)
            delay = min(delay * 2, self._max_reconnect_delay)
