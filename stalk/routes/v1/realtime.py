# stalk/routes/v1/realtime.py
"""
Realtime WebSocket endpoint - API v1.

Clients connect to /api/v1/ws?token=<bearer token>, then send
``join_user_room`` to start receiving their events. Malformed frames are
answered with an ``error`` frame; the socket stays open.
"""

import asyncio
import logging
from typing import Any, Optional
import uuid

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from ...api.dependencies.auth import load_user
from ...auth import user_id_from_token
from ...models.user import User
from ...services.realtime.context import RealtimeContext
from ...services.realtime.events import (
    ClientEventType,
    build_error_event,
    build_room_joined_event,
)
from ...services.realtime.transport import OutboundConnection

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime-v1"])

WRITER_SHUTDOWN_TIMEOUT = 5.0


def _reject(realtime: RealtimeContext, connection_id: str, reason: str) -> None:
    realtime.hub.send_to(connection_id, build_error_event(reason))


def handle_client_frame(
    realtime: RealtimeContext, connection_id: str, user: User, frame: Any
) -> None:
    """Apply one inbound frame; runs on the event loop without awaiting."""
    if not isinstance(frame, dict):
        _reject(realtime, connection_id, "Frame must be a JSON object")
        return
    payload = frame.get("payload") or {}
    if not isinstance(payload, dict):
        _reject(realtime, connection_id, "Frame payload must be an object")
        return

    event_type = frame.get("type")
    if event_type == ClientEventType.JOIN_USER_ROOM.value:
        requested = payload.get("userId", user.id)
        try:
            requested_id = int(requested)
        except (TypeError, ValueError):
            _reject(realtime, connection_id, "userId must be an integer")
            return
        if requested_id != user.id:
            _reject(realtime, connection_id, "Cannot join another user's room")
            return
        became_online = realtime.router.join(connection_id, user.id)
        realtime.hub.send_to(connection_id, build_room_joined_event(user.id))
        if became_online:
            realtime.record_presence(user.id)
        return

    if event_type in (ClientEventType.TYPING_START.value, ClientEventType.TYPING_STOP.value):
        if realtime.presence.user_for(connection_id) != user.id:
            _reject(realtime, connection_id, "Join your room before sending typing events")
            return
        realtime.router.publish_typing(
            user.id,
            event_type == ClientEventType.TYPING_START.value,
            user_name=user.display_name,
            exclude_connection=connection_id,
        )
        return

    _reject(realtime, connection_id, f"Unknown event type: {event_type}")


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, token: Optional[str] = Query(default=None)) -> None:
    realtime: Optional[RealtimeContext] = getattr(websocket.app.state, "realtime", None)
    user_id = user_id_from_token(token)
    if realtime is None or user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    user = await asyncio.to_thread(load_user, realtime, user_id)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    connection_id = uuid.uuid4().hex
    connection = OutboundConnection(connection_id, websocket)
    realtime.hub.attach(connection)
    writer = asyncio.create_task(connection.run_writer(), name=f"ws-writer-{connection_id}")
    logger.info(
        "[REALTIME] Connection opened",
        extra={"connection_id": connection_id, "user_id": user.id},
    )

    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except WebSocketDisconnect:
                break
            except (ValueError, KeyError):
                _reject(realtime, connection_id, "Frame must be valid JSON text")
                continue
            handle_client_frame(realtime, connection_id, user, frame)
    finally:
        _, became_offline = realtime.router.leave(connection_id)
        realtime.hub.detach(connection_id)
        if became_offline:
            realtime.record_presence(user.id)
        try:
            await asyncio.wait_for(writer, timeout=WRITER_SHUTDOWN_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("[REALTIME] Writer did not stop in time", extra={"connection_id": connection_id})
        logger.info(
            "[REALTIME] Connection closed",
            extra={"connection_id": connection_id, "user_id": user.id},
        )
