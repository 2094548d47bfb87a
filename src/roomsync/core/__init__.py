"""
Core building blocks shared by the client and the server.

Provides:
- Wire frames (Frame, JoinRequest) and their codec
- The roomsync exception hierarchy
"""

from __future__ import annotations

from .errors import FrameError, RoomSyncError, SessionTypeError, TransportError
from .frames import (
    Frame,
    FrameKind,
    JoinRequest,
    MessageType,
    decode,
    encode,
    error_message,
    room_channel_name,
    room_message,
)

__all__ = [
    # Errors
    "RoomSyncError",
    "FrameError",
    "SessionTypeError",
    "TransportError",
    # Frames
    "Frame",
    "FrameKind",
    "JoinRequest",
    "MessageType",
    "decode",
    "encode",
    "error_message",
    "room_channel_name",
    "room_message",
]
