"""
Named logical topics multiplexed over one connection.

Usage:
    manager = ConnectionManager("ws://localhost:3001/ws")
    channel = manager.get_channel("dotgame-s1")

    @channel.on("dot_update")
    def handle_dot(data: dict):
        print(data)

    result = await channel.publish("update_position", {"x": 10, "y": 20})
    if not result.ok:
        print(result.error.kind)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, Optional, Set

from ..core.errors import TransportError
from ..core.frames import Frame

if TYPE_CHECKING:
    from .connection import ConnectionManager

logger = logging.getLogger(__name__)

Callback = Callable[[Any], Any]


@dataclass
class PublishResult:
    """Outcome of Channel.publish."""
    ok: bool
    error: Optional[TransportError] = None

    def __bool__(self) -> bool:
        return self.ok


class Channel:
    """
    One named topic.

    Holds event name -> set of callbacks. Subscriptions belong to the
    channel, not to the transient connection: they survive reconnects.
    """

    def __init__(self, name: str, manager: ConnectionManager):
        self.name = name
        self._manager = manager
        self._handlers: Dict[str, Set[Callback]] = {}

    def __repr__(self) -> str:
        return f"Channel(name={self.name!r}, events={sorted(self._handlers)})"

    @property
    def events(self) -> list[str]:
        return list(self._handlers.keys())

    def handlers(self, event: str) -> Set[Callback]:
        return set(self._handlers.get(event, set()))

    def subscribe(self, event: str, callback: Callback) -> None:
        """Register callback for event. Sync and async callbacks are supported."""
        self._handlers.setdefault(event, set()).add(callback)
        logger.debug(f"Subscribed to '{event}' on channel '{self.name}'")

    def on(self, event: str):
        """
        Decorator form of subscribe.

        Usage:
            @channel.on("user_joined")
            async def handle_join(data: dict):
                pass
        """
        def decorator(func: Callback) -> Callback:
            self.subscribe(event, func)
            return func
        return decorator

    def unsubscribe(self, event: str, callback: Optional[Callback] = None) -> None:
        """Remove one callback, or every callback for event when callback is None."""
        if event not in self._handlers:
            return

        if callback is None:
            del self._handlers[event]
            return

        self._handlers[event].discard(callback)
        if not self._handlers[event]:
            del self._handlers[event]

    async def publish(self, event: str, data: Any = None) -> PublishResult:
        """
        Send a publish frame for this channel.

        Fails (without queuing) when the connection is not open.
        """
        frame = Frame.publish(self.name, event, data)
        if not await self._manager.send(frame):
            if self._manager.is_connected:
                error = self._manager.last_error or TransportError(TransportError.CLOSED, "write failed")
            else:
                error = TransportError(TransportError.NOT_CONNECTED, "WebSocket not connected")
            logger.warning(f"Publish '{event}' on '{self.name}' failed: {error}")
            return PublishResult(ok=False, error=error)
        return PublishResult(ok=True)

    async def send_subscription(self) -> bool:
        """Tell the server this client is interested in the channel."""
        sent = await self._manager.send(Frame.subscribe(self.name))
        if sent:
            logger.debug(f"Subscribed to channel: {self.name}")
        return sent

    async def dispatch(self, event: str, data: Any) -> int:
        """
        Invoke every callback registered for event with data.

        Each callback is isolated: an exception is logged and the remaining
        callbacks still run.

        Returns:
            Number of callbacks that completed without raising
        """
        handlers = list(self._handlers.get(event, ()))
        if not handlers:
            return 0

        delivered = 0
        for handler in handlers:
            try:
                result = handler(data)
                if asyncio.iscoroutine(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.error(f"Error in handler for '{event}' on channel '{self.name}': {e}", exc_info=True)
        return delivered


class ChannelRegistry:
    """Channel name -> Channel. One instance per name."""

    def __init__(self, manager: ConnectionManager):
        self._manager = manager
        self._channels: Dict[str, Channel] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._channels

    def __iter__(self) -> Iterator[Channel]:
        return iter(list(self._channels.values()))

    def __len__(self) -> int:
        return len(self._channels)

    def get(self, name: str) -> Optional[Channel]:
        """Existing channel or None. Never creates."""
        return self._channels.get(name)

    def get_channel(self, name: str) -> Channel:
        """Existing channel for name, or a new one (subscribed right away if connected)."""
        channel = self._channels.get(name)
        if channel is not None:
            return channel

        channel = Channel(name, self._manager)
        self._channels[name] = channel
        logger.info(f"Channel created: {name}")

        if self._manager.is_connected:
            self._manager.spawn(channel.send_subscription())
        return channel

    def clear(self) -> None:
        self._channels.clear()
