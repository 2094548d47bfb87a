"""Tests for the roomsync exception hierarchy."""

from __future__ import annotations

import asyncio

from websockets.exceptions import ConnectionClosed
from websockets.frames import Close

from roomsync.core import FrameError, RoomSyncError, SessionTypeError, TransportError


class TestTransportError:
    """Test normalization of transport exceptions."""

    def test_timeout(self) -> None:
        """Test timeouts map to the timeout kind."""
        assert TransportError.from_exception(asyncio.TimeoutError()).kind == TransportError.TIMEOUT

    def test_refused(self) -> None:
        """Test refused connections and OS errors map to refused."""
        assert TransportError.from_exception(ConnectionRefusedError("nope")).kind == TransportError.REFUSED
        assert TransportError.from_exception(OSError("unreachable")).kind == TransportError.REFUSED

    def test_closed(self) -> None:
        """Test closed connections map to closed."""
        error = TransportError.from_exception(ConnectionClosed(Close(1006, ""), None))
        assert error.kind == TransportError.CLOSED

    def test_unknown(self) -> None:
        """Test anything else maps to unknown with the exception name in detail."""
        error = TransportError.from_exception(ValueError("bad"))

        assert error.kind == TransportError.UNKNOWN
        assert "ValueError" in error.detail

    def test_passthrough_and_dict(self) -> None:
        """Test an existing TransportError is returned unchanged."""
        original = TransportError(TransportError.NOT_CONNECTED, "offline")

        assert TransportError.from_exception(original) is original
        assert original.to_dict() == {"kind": "not_connected", "detail": "offline"}
        assert str(original) == "not_connected: offline"


def test_hierarchy() -> None:
    """Test every error derives from RoomSyncError."""
    for error in (FrameError("x"), SessionTypeError("t", ["description"]), TransportError("closed")):
        assert isinstance(error, RoomSyncError)


def test_session_type_error_message() -> None:
    """Test the message names the missing fields."""
    error = SessionTypeError("scores", ["display_name", "description"])

    assert error.missing == ["display_name", "description"]
    assert "display_name, description" in str(error)
