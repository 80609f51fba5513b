"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import sys
from pathlib import Path
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Iterator

import jwt
import pytest
from fastapi.testclient import TestClient
from fastapi.websockets import WebSocketState

ROOT_DIR = Path(__file__).resolve().parents[1]
for path in (ROOT_DIR, ROOT_DIR / "src"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from app.config import get_settings
from app.main import app
from app.monitoring.registry import registry
from spotlink.realtime import RealtimeServices, configure_realtime
from spotlink.realtime.connection import ConnectionState, TrustedIdentity


class DummyWebSocket:
    """Records every frame the server sends to it."""

    def __init__(self) -> None:
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[dict[str, Any]] = []

    async def send_json(self, payload: dict[str, Any]) -> None:
        self.sent.append(payload)

    def events(self, name: str | None = None) -> list[dict[str, Any]]:
        return [frame for frame in self.sent if name is None or frame.get("event") == name]

    def data(self, name: str) -> list[Any]:
        return [frame.get("data") for frame in self.events(name)]

    def close(self) -> None:
        self.application_state = WebSocketState.DISCONNECTED


OpenConnection = Callable[..., Awaitable[tuple[ConnectionState, DummyWebSocket]]]


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_metrics() -> Iterator[None]:
    for metric in registry._metrics.values():
        metric.clear()
    yield


@pytest.fixture(autouse=True)
def realtime() -> RealtimeServices:
    """Fresh in-memory realtime services for every test."""

    return configure_realtime()


@pytest.fixture()
def socket_factory() -> Callable[[], DummyWebSocket]:
    return DummyWebSocket


@pytest.fixture()
def open_connection(realtime: RealtimeServices) -> OpenConnection:
    """Attach a dummy socket through the lifecycle handler and clear its outbox."""

    async def _open(
        user_id: str | None = None,
        nickname: str | None = None,
        *,
        identity: TrustedIdentity | None = None,
    ) -> tuple[ConnectionState, DummyWebSocket]:
        websocket = DummyWebSocket()
        state = await realtime.lifecycle.connect(websocket, identity)
        if user_id or nickname:
            await realtime.lifecycle.set_nickname(state, {"nickname": nickname, "userId": user_id})
        websocket.sent.clear()
        return state, websocket

    return _open


@pytest.fixture()
def client() -> Iterator[TestClient]:
    """Yield a FastAPI TestClient sharing one event loop across requests."""

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def make_token() -> Callable[..., str]:
    """Sign access tokens the way the identity service issues them."""

    settings = get_settings()

    def _make(user_id: str, nickname: str | None = None, *, expires_in: timedelta = timedelta(minutes=5)) -> str:
        claims: dict[str, Any] = {"sub": user_id, "exp": datetime.now(timezone.utc) + expires_in}
        if nickname:
            claims["nickname"] = nickname
        return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    return _make
