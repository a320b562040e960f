# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Discussion room API endpoints.

REST endpoints persist and read messages:
- GET /?programId= - Room history, oldest first
- POST / - Post a message
- POST /{message_id}/like - Like a message
- DELETE /?programId= - Clear a room (admin)

The WebSocket endpoint relays already persisted records to the other
members of a room:
- WebSocket /ws?token= - Live room events

Frames in both directions have the shape {"event": name, "data": payload}.

Client events:
    join-program     data: programId (string or {"programId": ...})
    leave-program    data: programId (string or {"programId": ...})
    new-message      data: <persisted record> (needs programId and message)
    like-message     data: {"messageId": ..., "programId": ...}
    ping             data: ignored

Server events:
    connected        data: {"connectionId": ..., "learnerId": ...}
    message          data: <persisted record>
    message-liked    data: {"messageId": ...}
    pong / error

Example:
    const ws = new WebSocket(`wss://api.example.com/api/v1/discussion/ws?token=${jwt}`);
    ws.send(JSON.stringify({event: "join-program", data: programId}));
"""

import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, require_admin, require_auth
from src.api.middleware.auth import CurrentUser, authenticate_token
from src.api.middleware.rate_limit import (
    RATE_LIMIT_DISCUSSION_LIKE,
    RATE_LIMIT_DISCUSSION_POST,
    limiter,
)
from src.domains.discussion import DiscussionService
from src.infrastructure.realtime import RoomBroadcaster, WebSocketConnection
from src.models.discussion import (
    ClearRoomResponse,
    DiscussionListResponse,
    DiscussionMessageResponse,
    LikeResponse,
    PostMessageRequest,
)
from src.utils.datetime import format_iso, utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

# WebSocket close code for policy violations (RFC 6455)
WS_POLICY_VIOLATION = 1008


def _get_service(db: AsyncSession) -> DiscussionService:
    return DiscussionService(db=db)


# =========================================================================
# REST
# =========================================================================


@router.get(
    "",
    response_model=DiscussionListResponse,
    summary="List room messages",
)
async def list_messages(
    program_id: Annotated[str, Query(alias="programId", min_length=1)],
    limit: Annotated[int | None, Query(ge=1, le=500)] = None,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> DiscussionListResponse:
    """List the most recent messages of a room in display order."""
    items = await _get_service(db).list_messages(program_id, limit=limit)
    return DiscussionListResponse(items=items, total=len(items))


@router.post(
    "",
    response_model=DiscussionMessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Post message",
    description="Persist a message. Live delivery is requested by the client afterwards.",
)
@limiter.limit(RATE_LIMIT_DISCUSSION_POST)
async def post_message(
    request: Request,
    data: PostMessageRequest,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> DiscussionMessageResponse:
    return await _get_service(db).post_message(current_user.id, data.program_id, data.message)


@router.post(
    "/{message_id}/like",
    response_model=LikeResponse,
    summary="Like message",
)
@limiter.limit(RATE_LIMIT_DISCUSSION_LIKE)
async def like_message(
    request: Request,
    message_id: str,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> LikeResponse:
    return await _get_service(db).like_message(message_id)


@router.delete(
    "",
    response_model=ClearRoomResponse,
    summary="Clear room",
    description="Delete every message of a room. Requires admin access.",
)
async def clear_room(
    program_id: Annotated[str, Query(alias="programId", min_length=1)],
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> ClearRoomResponse:
    logger.info("Room clear requested by %s: program=%s", current_user.id, program_id)
    return await _get_service(db).clear_room(program_id, requested_by_role=current_user.role)


# =========================================================================
# WebSocket
# =========================================================================


def _program_id_from(data: Any) -> str | None:
    """Accept a bare program id or an object carrying programId."""
    if isinstance(data, str):
        return data or None
    if isinstance(data, dict):
        value = data.get("programId")
        return str(value) if value else None
    return None


async def _send_error(websocket: WebSocket, code: str, message: str) -> None:
    await websocket.send_json({"event": "error", "data": {"code": code, "message": message}})


async def handle_client_event(
    broadcaster: RoomBroadcaster,
    connection: WebSocketConnection,
    event: str | None,
    data: Any,
) -> bool:
    """Apply one client event.

    Returns:
        False if the event name is unknown, True otherwise. Events
        missing their required fields are ignored.
    """
    if event == "join-program":
        program_id = _program_id_from(data)
        if program_id:
            broadcaster.join(connection, program_id)
        return True

    if event == "leave-program":
        program_id = _program_id_from(data)
        if program_id:
            broadcaster.leave(connection, program_id)
        return True

    if event == "new-message":
        if not isinstance(data, dict) or not data.get("programId") or not data.get("message"):
            logger.debug("Ignoring new-message without programId or message")
            return True
        await broadcaster.publish(
            str(data["programId"]),
            "message",
            data,
            exclude=connection,
        )
        return True

    if event == "like-message":
        if not isinstance(data, dict) or not data.get("programId") or not data.get("messageId"):
            logger.debug("Ignoring like-message without programId or messageId")
            return True
        await broadcaster.publish(
            str(data["programId"]),
            "message-liked",
            {"messageId": data["messageId"]},
            exclude=connection,
        )
        return True

    return False


@router.websocket("/ws")
async def discussion_websocket(websocket: WebSocket) -> None:
    """WebSocket endpoint for live discussion rooms.

    Authenticates via the token query parameter.
    """
    await websocket.accept()

    # FastAPI Query doesn't work for WebSocket
    user = authenticate_token(websocket.query_params.get("token"))
    if not user:
        await _send_error(websocket, "AUTH_FAILED", "Invalid or expired token")
        await websocket.close(code=WS_POLICY_VIOLATION)
        return

    broadcaster: RoomBroadcaster | None = getattr(websocket.app.state, "broadcaster", None)
    if broadcaster is None:
        await _send_error(websocket, "UNAVAILABLE", "Live discussion is not available")
        await websocket.close()
        return

    connection = WebSocketConnection(websocket, user.id)
    await websocket.send_json({
        "event": "connected",
        "data": {"connectionId": connection.connection_id, "learnerId": user.id},
    })
    logger.info("Discussion socket connected: %r", connection)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))

            raw = message.get("text")
            if raw is None:
                await _send_error(websocket, "INVALID_FRAME", "Frames must be JSON text")
                continue
            try:
                frame = json.loads(raw)
            except ValueError:
                await _send_error(websocket, "INVALID_FRAME", "Frames must be JSON objects")
                continue
            if not isinstance(frame, dict):
                await _send_error(websocket, "INVALID_FRAME", "Frames must be JSON objects")
                continue

            event = frame.get("event")
            if event == "ping":
                await websocket.send_json({"event": "pong", "data": {"timestamp": format_iso(utc_now())}})
                continue

            handled = await handle_client_event(broadcaster, connection, event, frame.get("data"))
            if not handled:
                await _send_error(websocket, "UNKNOWN_EVENT", f"Unknown event: {event}")

    except WebSocketDisconnect:
        logger.debug("Discussion socket disconnected: %r", connection)

    finally:
        broadcaster.disconnect(connection)
