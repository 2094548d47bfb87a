"""
Custom exceptions for the roomsync system.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from websockets.exceptions import ConnectionClosed, InvalidHandshake


class RoomSyncError(Exception):
    """Base exception for all roomsync errors."""
    pass


class FrameError(RoomSyncError):
    """Raised when an inbound frame cannot be decoded or validated."""

    def __init__(self, message: str, raw: Any = None):
        self.raw = raw
        super().__init__(message)


class SessionTypeError(RoomSyncError):
    """Raised when a session type registration is invalid."""

    def __init__(self, type_id: Optional[str], missing: list[str]):
        self.type_id = type_id
        self.missing = missing
        super().__init__(
            f"Session type '{type_id or '?'}' missing required metadata: {', '.join(missing)}"
        )


class TransportError(RoomSyncError):
    """
    Normalized transport failure.

    Whatever the websocket library raises (OSError, handshake errors,
    timeouts, closed connections) is folded into one shape with a short
    machine-readable `kind` and a human-readable `detail`.
    """

    NOT_CONNECTED = "not_connected"
    TIMEOUT = "timeout"
    REFUSED = "refused"
    HANDSHAKE = "handshake"
    CLOSED = "closed"
    UNKNOWN = "unknown"

    def __init__(self, kind: str, detail: str = ""):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind}: {detail}" if detail else kind)

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "detail": self.detail}

    @classmethod
    def from_exception(cls, exc: BaseException) -> TransportError:
        """Map an arbitrary exception raised by the transport to a TransportError."""
        if isinstance(exc, TransportError):
            return exc

        if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
            return cls(cls.TIMEOUT, str(exc) or "connection attempt timed out")
        if isinstance(exc, ConnectionClosed):
            return cls(cls.CLOSED, str(exc))
        if isinstance(exc, InvalidHandshake):
            return cls(cls.HANDSHAKE, str(exc))
        if isinstance(exc, ConnectionRefusedError):
            return cls(cls.REFUSED, str(exc))
        if isinstance(exc, OSError):
            return cls(cls.REFUSED, str(exc) or exc.__class__.__name__)
        return cls(cls.UNKNOWN, f"{exc.__class__.__name__}: {exc}")
