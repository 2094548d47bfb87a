"""
Client side of roomsync.

Provides:
- ConnectionManager: one reconnecting websocket per client
- Channel / ChannelRegistry: named topics multiplexed over it
- Dispatcher: inbound frame routing
- ReconnectPolicy: exponential backoff with jitter
"""

from __future__ import annotations

from .backoff import Backoff, ReconnectPolicy
from .channel import Channel, ChannelRegistry, PublishResult
from .connection import ConnectionManager, Identity, Transport, websocket_connector
from .dispatcher import Dispatcher
from .state import ConnectionState, ConnectionStateMachine

__all__ = [
    # Connection
    "ConnectionManager",
    "Identity",
    "Transport",
    "websocket_connector",
    # State
    "ConnectionState",
    "ConnectionStateMachine",
    # Backoff
    "Backoff",
    "ReconnectPolicy",
    # Channels
    "Channel",
    "ChannelRegistry",
    "PublishResult",
    "Dispatcher",
]
