"""
Room broker server.

Provides:
- ParticipantConnection: one accepted client websocket
- Broadcaster: fan-out of one message to many connections
- Room / RoomBehavior: session participants, state and behavior strategy
- SessionTypeRegistry: session type id -> behavior factory
- RoomRegistry: session id -> live Room
- RoomRouter: websocket frame routing

The FastAPI app factory lives in roomsync.server.app.
"""

from .broadcast import Broadcaster, BroadcastResult
from .connection import ParticipantConnection
from .room import Room, RoomBehavior
from .session_types import SessionTypeEntry, SessionTypeRegistry
from .registry import RoomRegistry
from .router import RoomRouter

__all__ = [
    # Connections
    "ParticipantConnection",
    "Broadcaster",
    "BroadcastResult",
    # Rooms
    "Room",
    "RoomBehavior",
    "RoomRegistry",
    # Session types
    "SessionTypeEntry",
    "SessionTypeRegistry",
    # Routing
    "RoomRouter",
]
