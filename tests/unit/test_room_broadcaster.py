# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the room broadcaster and the Redis relay."""

import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.api.v1.discussion import handle_client_event
from src.infrastructure.realtime import RedisRoomRelay, RoomBroadcaster, room_name


class FakeConnection:
    """Connection recording the frames it receives."""

    def __init__(self, connection_id: str, fail: bool = False) -> None:
        self.connection_id = connection_id
        self.fail = fail
        self.frames: list[dict[str, Any]] = []

    async def send_json(self, message: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.frames.append(message)


@pytest.fixture
def broadcaster() -> RoomBroadcaster:
    return RoomBroadcaster()


class TestMembership:
    """Tests for joining and leaving rooms."""

    def test_room_name(self) -> None:
        assert room_name("abc") == "program:abc"

    def test_join_is_idempotent(self, broadcaster: RoomBroadcaster) -> None:
        conn = FakeConnection("a")

        broadcaster.join(conn, "p1")
        broadcaster.join(conn, "p1")

        assert broadcaster.members("p1") == {conn}
        assert broadcaster.rooms_of(conn) == {"program:p1"}

    def test_disconnect_leaves_every_room(self, broadcaster: RoomBroadcaster) -> None:
        conn = FakeConnection("a")
        broadcaster.join(conn, "p1")
        broadcaster.join(conn, "p2")

        broadcaster.disconnect(conn)

        assert broadcaster.members("p1") == set()
        assert broadcaster.rooms_of(conn) == set()
        assert broadcaster.get_stats() == {"rooms": 0, "connections": 0, "relay": False}

    def test_leave_one_room(self, broadcaster: RoomBroadcaster) -> None:
        conn = FakeConnection("a")
        broadcaster.join(conn, "p1")
        broadcaster.join(conn, "p2")

        broadcaster.leave(conn, "p1")

        assert broadcaster.rooms_of(conn) == {"program:p2"}


class TestPublish:
    """Tests for delivery."""

    @pytest.mark.asyncio
    async def test_publish_skips_sender_and_other_rooms(self, broadcaster: RoomBroadcaster) -> None:
        sender, peer, outsider = FakeConnection("s"), FakeConnection("p"), FakeConnection("o")
        broadcaster.join(sender, "p1")
        broadcaster.join(peer, "p1")
        broadcaster.join(outsider, "p2")

        delivered = await broadcaster.publish("p1", "message", {"id": "m1"}, exclude=sender)

        assert delivered == 1
        assert peer.frames == [{"event": "message", "data": {"id": "m1"}}]
        assert sender.frames == []
        assert outsider.frames == []

    @pytest.mark.asyncio
    async def test_failed_connection_is_dropped(self, broadcaster: RoomBroadcaster) -> None:
        healthy, broken = FakeConnection("h"), FakeConnection("b", fail=True)
        broadcaster.join(healthy, "p1")
        broadcaster.join(broken, "p1")
        broadcaster.join(broken, "p2")

        delivered = await broadcaster.publish("p1", "message", {"id": "m1"})

        assert delivered == 1
        assert broadcaster.members("p1") == {healthy}
        assert broadcaster.rooms_of(broken) == set()

    @pytest.mark.asyncio
    async def test_closed_broadcaster_delivers_nothing(self, broadcaster: RoomBroadcaster) -> None:
        conn = FakeConnection("a")
        broadcaster.join(conn, "p1")
        await broadcaster.close()

        assert await broadcaster.deliver_local("p1", {"event": "x", "data": None}) == 0
        assert conn.frames == []

    @pytest.mark.asyncio
    async def test_publish_forwards_to_relay(self) -> None:
        relay = MagicMock()
        relay.forward = AsyncMock()
        broadcaster = RoomBroadcaster(relay=relay)

        await broadcaster.publish("p1", "message-liked", {"messageId": "m1"})

        relay.forward.assert_awaited_once_with(
            "p1", {"event": "message-liked", "data": {"messageId": "m1"}}
        )

    @pytest.mark.asyncio
    async def test_relay_failure_does_not_break_local_delivery(self) -> None:
        relay = MagicMock()
        relay.forward = AsyncMock(side_effect=ConnectionError("redis down"))
        broadcaster = RoomBroadcaster(relay=relay)
        conn = FakeConnection("a")
        broadcaster.join(conn, "p1")

        assert await broadcaster.publish("p1", "message", {"id": "m1"}) == 1


class TestClientEvents:
    """Tests for the socket event handling."""

    @pytest.mark.asyncio
    async def test_join_accepts_bare_id_and_object(self, broadcaster: RoomBroadcaster) -> None:
        conn = FakeConnection("a")

        assert await handle_client_event(broadcaster, conn, "join-program", "p1") is True
        assert await handle_client_event(broadcaster, conn, "join-program", {"programId": "p2"}) is True

        assert broadcaster.rooms_of(conn) == {"program:p1", "program:p2"}

    @pytest.mark.asyncio
    async def test_new_message_relays_record_as_is(self, broadcaster: RoomBroadcaster) -> None:
        sender, peer = FakeConnection("s"), FakeConnection("p")
        broadcaster.join(sender, "p1")
        broadcaster.join(peer, "p1")
        record = {"id": "m1", "programId": "p1", "message": "hi", "likes": 0}

        await handle_client_event(broadcaster, sender, "new-message", record)

        assert peer.frames == [{"event": "message", "data": record}]
        assert sender.frames == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "data",
        [{"message": "hi"}, {"programId": "p1"}, {"programId": "p1", "message": ""}, "p1", None],
    )
    async def test_incomplete_new_message_is_ignored(
        self,
        broadcaster: RoomBroadcaster,
        data: Any,
    ) -> None:
        sender, peer = FakeConnection("s"), FakeConnection("p")
        broadcaster.join(peer, "p1")

        assert await handle_client_event(broadcaster, sender, "new-message", data) is True
        assert peer.frames == []

    @pytest.mark.asyncio
    async def test_like_message_relays_only_message_id(self, broadcaster: RoomBroadcaster) -> None:
        sender, peer = FakeConnection("s"), FakeConnection("p")
        broadcaster.join(sender, "p1")
        broadcaster.join(peer, "p1")

        await handle_client_event(
            broadcaster, sender, "like-message", {"messageId": "m1", "programId": "p1"}
        )

        assert peer.frames == [{"event": "message-liked", "data": {"messageId": "m1"}}]
        assert sender.frames == []

    @pytest.mark.asyncio
    async def test_unknown_event(self, broadcaster: RoomBroadcaster) -> None:
        assert await handle_client_event(broadcaster, FakeConnection("a"), "shout", {}) is False


class TestRedisRoomRelay:
    """Tests for the Redis relay message handling."""

    @pytest.fixture
    def redis(self) -> MagicMock:
        redis = MagicMock()
        redis.publish_json = AsyncMock()
        return redis

    @pytest.fixture
    def relay(self, redis: MagicMock) -> RedisRoomRelay:
        relay = RedisRoomRelay(redis, channel_prefix="discussion")
        relay._deliver = AsyncMock(return_value=1)
        return relay

    def _message(self, channel: str, envelope: Any) -> dict[str, Any]:
        data = envelope if isinstance(envelope, str) else json.dumps(envelope)
        return {"type": "pmessage", "channel": channel, "data": data}

    def test_channel_names(self, relay: RedisRoomRelay) -> None:
        assert relay.channel("p1") == "discussion:program:p1"
        assert relay.program_id_from_channel("discussion:program:p1") == "p1"
        assert relay.program_id_from_channel("other:program:p1") is None
        assert relay.program_id_from_channel("discussion:program:") is None

    @pytest.mark.asyncio
    async def test_forward_tags_origin(self, relay: RedisRoomRelay, redis: MagicMock) -> None:
        frame = {"event": "message", "data": {"id": "m1"}}

        await relay.forward("p1", frame)

        redis.publish_json.assert_awaited_once_with(
            "discussion:program:p1",
            {"origin": relay.origin_id, "frame": frame},
        )

    @pytest.mark.asyncio
    async def test_foreign_frame_is_delivered(self, relay: RedisRoomRelay) -> None:
        frame = {"event": "message", "data": {"id": "m1"}}
        message = self._message("discussion:program:p1", {"origin": "elsewhere", "frame": frame})

        assert await relay.handle_message(message) is True
        relay._deliver.assert_awaited_once_with("p1", frame)

    @pytest.mark.asyncio
    async def test_own_frame_is_skipped(self, relay: RedisRoomRelay) -> None:
        message = self._message(
            "discussion:program:p1",
            {"origin": relay.origin_id, "frame": {"event": "message", "data": {}}},
        )

        assert await relay.handle_message(message) is False
        relay._deliver.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "message",
        [
            {"type": "psubscribe", "channel": "discussion:program:*", "data": 1},
            {"type": "pmessage", "channel": "discussion:other", "data": "{}"},
            {"type": "pmessage", "channel": "discussion:program:p1", "data": "not json"},
            {"type": "pmessage", "channel": "discussion:program:p1", "data": '{"origin": "x", "frame": 3}'},
        ],
    )
    async def test_unusable_messages_are_skipped(
        self,
        relay: RedisRoomRelay,
        message: dict[str, Any],
    ) -> None:
        assert await relay.handle_message(message) is False
        relay._deliver.assert_not_awaited()
