"""Pytest configuration and shared fixtures for all tests.

This module provides:
- In-memory client transports and a connector producing them
- A fake server-side websocket for Room / registry tests
- Registry fixtures wired with the built-in session types
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Optional, Union

import pytest
from fastapi.websockets import WebSocketState
from websockets.exceptions import ConnectionClosed
from websockets.frames import Close

from roomsync.behaviors import register_builtin_types
from roomsync.client import ReconnectPolicy
from roomsync.server import ParticipantConnection, RoomRegistry, SessionTypeRegistry

# ============================================================================
# CLIENT TRANSPORT FAKES
# ============================================================================


class FakeTransport:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self):
        self.sent: list[str] = []
        self.close_code: Optional[int] = None
        self.closed = False
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, message: str) -> None:
        if self.closed:
            raise ConnectionClosed(Close(1006, ""), None)
        self.sent.append(message)

    async def recv(self) -> Union[str, bytes]:
        item = await self._inbox.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.drop(code, reason)

    def feed(self, message: Any) -> None:
        """Queue an inbound message (dicts are JSON-encoded)."""
        self._inbox.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def drop(self, code: int = 1006, reason: str = "") -> None:
        """Close from the server side with code."""
        if self.closed:
            return
        self.closed = True
        self.close_code = code
        self._inbox.put_nowait(ConnectionClosed(Close(code, reason), None))

    def sent_messages(self) -> list[dict]:
        return [json.loads(m) for m in self.sent]


class FakeConnector:
    """Connector returning FakeTransports; can be told to refuse attempts."""

    def __init__(self):
        self.calls = 0
        self.transports: list[FakeTransport] = []
        self.fail_next = 0
        self.fail_always = False

    async def __call__(self, url: str) -> FakeTransport:
        self.calls += 1
        if self.fail_always or self.fail_next > 0:
            self.fail_next = max(0, self.fail_next - 1)
            raise ConnectionRefusedError(f"connection to {url} refused")
        transport = FakeTransport()
        self.transports.append(transport)
        return transport

    @property
    def latest(self) -> FakeTransport:
        return self.transports[-1]


class RecordingPolicy(ReconnectPolicy):
    """Reconnect policy that records nominal-scale delays and sleeps 1000x shorter."""

    requested: list[float]

    def delay(self, attempt: int) -> float:
        real = super().delay(attempt)
        self.requested.append(real)
        return real / 1000


def make_policy(max_attempts: int = 10) -> RecordingPolicy:
    policy = RecordingPolicy(max_attempts=max_attempts, rng=lambda: 0.5)
    policy.requested = []
    return policy


async def settle(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def policy() -> RecordingPolicy:
    return make_policy()


# ============================================================================
# SERVER WEBSOCKET FAKES
# ============================================================================


class FakeWebSocket:
    """The part of a Starlette WebSocket a ParticipantConnection touches."""

    def __init__(self, fail: bool = False):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[str] = []
        self.fail = fail

    async def send_text(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("socket write failed")
        self.sent.append(text)

    def close(self) -> None:
        self.client_state = WebSocketState.DISCONNECTED

    def messages(self) -> list[dict]:
        return [json.loads(t) for t in self.sent]

    def of_type(self, type_: str) -> list[dict]:
        return [m for m in self.messages() if m.get("type") == type_]


def make_connection(fail: bool = False) -> ParticipantConnection:
    return ParticipantConnection(FakeWebSocket(fail=fail))


@pytest.fixture
def session_types() -> SessionTypeRegistry:
    return register_builtin_types(SessionTypeRegistry())


@pytest.fixture
def registry(session_types: SessionTypeRegistry) -> RoomRegistry:
    return RoomRegistry(session_types)
