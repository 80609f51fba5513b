"""WebSocket endpoint for spot and direct chat."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Dict, TypeVar

from fastapi import APIRouter, WebSocket, status
from fastapi.exceptions import HTTPException
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from app.config import get_settings
from app.core.security import identity_from_token
from spotlink.realtime import get_lifecycle
from spotlink.realtime.connection import TrustedIdentity
from spotlink.realtime.rooms import safe_send_json

router = APIRouter(prefix="/ws", tags=["ws"])

settings = get_settings()

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Returned by _resolve_identity when the socket has already been closed.
_REJECTED = object()


async def iter_keepalive_messages(
    websocket: WebSocket,
    receiver: Callable[[], Awaitable[T]],
    *,
    timeout_seconds: float | int | None,
    ping_interval_seconds: float | int | None,
    ping_payload: Dict[str, Any] | None = None,
) -> AsyncIterator[T]:
    """Yield messages from *receiver* while sending keepalive pings when idle."""

    ping_payload = ping_payload or {"event": "ping"}
    timeout = float(timeout_seconds) if timeout_seconds else 0.0
    interval = float(ping_interval_seconds) if ping_interval_seconds else 0.0
    last_activity = time.monotonic()
    last_ping_sent: float | None = None

    while True:
        try:
            if timeout > 0:
                message = await asyncio.wait_for(receiver(), timeout=timeout)
            else:
                message = await receiver()
        except asyncio.TimeoutError:
            if websocket.application_state != WebSocketState.CONNECTED:
                break

            now = time.monotonic()
            should_ping = interval <= 0 or (
                now - last_activity >= interval
                and (last_ping_sent is None or now - last_ping_sent >= interval)
            )
            if should_ping:
                if not await safe_send_json(websocket, ping_payload):
                    break
                last_ping_sent = now
            continue
        except asyncio.CancelledError:  # pragma: no cover - cooperative cancellation
            raise
        except (RuntimeError, WebSocketDisconnect):
            break
        else:
            last_activity = time.monotonic()
            last_ping_sent = None
            yield message


async def _resolve_identity(websocket: WebSocket) -> TrustedIdentity | None | object:
    token = websocket.query_params.get("token")
    if not token:
        auth_header = websocket.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header.removeprefix("Bearer ").strip()
    if not token:
        if settings.realtime_require_token:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Missing token")
            return _REJECTED
        return None

    try:
        return identity_from_token(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return _REJECTED


def _parse_frame(raw_message: str) -> tuple[str, Any] | None:
    try:
        payload = json.loads(raw_message)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    event = payload.get("event")
    if not isinstance(event, str) or not event:
        return None
    return event, payload.get("data")


@router.websocket("/chat")
async def websocket_chat(websocket: WebSocket) -> None:
    """Carry spot and direct chat events for one client connection."""

    identity = await _resolve_identity(websocket)
    if identity is _REJECTED:
        return

    lifecycle = get_lifecycle()
    await websocket.accept()
    state = await lifecycle.connect(websocket, identity)  # type: ignore[arg-type]
    try:
        async for raw_message in iter_keepalive_messages(
            websocket,
            websocket.receive_text,
            timeout_seconds=settings.websocket_keepalive_timeout_seconds,
            ping_interval_seconds=settings.websocket_keepalive_ping_interval_seconds,
        ):
            frame = _parse_frame(raw_message)
            if frame is None:
                await safe_send_json(
                    websocket, {"event": "error", "data": {"message": "Invalid message format"}}
                )
                continue
            event, data = frame
            if event == "pong":
                continue
            try:
                await lifecycle.handle(state, event, data)
            except Exception:
                logger.exception("Unexpected error while handling %s from %s", event, state.connection_id)
                await safe_send_json(
                    websocket, {"event": "error", "data": {"message": "Internal error"}}
                )
    finally:
        await lifecycle.disconnect(state)
