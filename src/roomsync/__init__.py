"""
roomsync - real-time room synchronization over a single WebSocket.

Clients keep one reconnecting connection to the broker and multiplex named
channels over it. The broker groups connections into Rooms keyed by a
session id; a session type plugs behavior into its Rooms.

Usage (server):
    from roomsync import create_app

    app = create_app()          # uvicorn roomsync.server.app:create_app --factory

Usage (client):
    from roomsync import ConnectionManager

    manager = ConnectionManager("ws://localhost:3001/ws")
    await manager.connect({"userId": "A", "sessionId": "s1", "sessionType": "dotgame"})

    room = manager.room_channel
    room.subscribe("dot_update", lambda data: print(data["position"]))
    await manager.send({"type": "update_position", "data": {"x": 10, "y": 20}})
"""

from __future__ import annotations

__version__ = "0.1.0"

from .behaviors import (
    CanvasBehavior,
    DotGameBehavior,
    RelayBehavior,
    register_builtin_types,
)
from .client import (
    Channel,
    ChannelRegistry,
    ConnectionManager,
    ConnectionState,
    Identity,
    PublishResult,
    ReconnectPolicy,
)
from .config import Settings, get_settings
from .core import (
    Frame,
    FrameError,
    FrameKind,
    JoinRequest,
    MessageType,
    RoomSyncError,
    SessionTypeError,
    TransportError,
)
from .server import (
    ParticipantConnection,
    Room,
    RoomBehavior,
    RoomRegistry,
    SessionTypeEntry,
    SessionTypeRegistry,
)
from .server.app import configure_logging, create_app

__all__ = [
    "__version__",
    # Client
    "ConnectionManager",
    "ConnectionState",
    "Identity",
    "Channel",
    "ChannelRegistry",
    "PublishResult",
    "ReconnectPolicy",
    # Server
    "create_app",
    "configure_logging",
    "ParticipantConnection",
    "Room",
    "RoomBehavior",
    "RoomRegistry",
    "SessionTypeEntry",
    "SessionTypeRegistry",
    # Session types
    "DotGameBehavior",
    "CanvasBehavior",
    "RelayBehavior",
    "register_builtin_types",
    # Core
    "Frame",
    "FrameKind",
    "JoinRequest",
    "MessageType",
    "RoomSyncError",
    "FrameError",
    "SessionTypeError",
    "TransportError",
    # Config
    "Settings",
    "get_settings",
]
