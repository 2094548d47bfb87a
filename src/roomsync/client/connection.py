"""
Client connection manager with automatic reconnection.

One ConnectionManager owns exactly one websocket to the server and the
channel registry multiplexed over it. A single driver task runs the whole
lifecycle; its only suspension points are the connect attempt, the
receive call and the backoff wait.

Usage:
    manager = ConnectionManager("ws://localhost:3001/ws")
    manager.on_state_change(lambda state: print(state.value))

    await manager.connect()
    await manager.join_room("s1", user_id="A", session_type="dotgame")

    room = manager.get_channel("dotgame-s1")
    room.subscribe("dot_update", print)
    await room.publish("update_position", {"x": 10, "y": 20})

    await manager.disconnect()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Coroutine, Optional, Protocol, Set, Union

import websockets
from websockets.exceptions import ConnectionClosed

from ..config import Settings
from ..core.errors import TransportError
from ..core.frames import Frame, JoinRequest, MessageType, encode, room_channel_name, room_message
from .backoff import Backoff, ReconnectPolicy
from .channel import Channel, ChannelRegistry
from .dispatcher import Dispatcher
from .state import ConnectionState, ConnectionStateMachine, StateListener

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006

CLOSE_CODE_MEANINGS = {
    1006: "Connection closed abnormally",
    1011: "Server error",
    1012: "Service restart",
    1013: "Try again later",
}


class Transport(Protocol):
    """The part of a websockets client connection the manager relies on."""

    close_code: Optional[int]

    async def send(self, message: str) -> None: ...

    async def recv(self) -> Union[str, bytes]: ...

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None: ...


Connector = Callable[[str], Awaitable[Transport]]


async def websocket_connector(url: str) -> Transport:
    """Open a client websocket with the websockets library."""
    return await websockets.connect(url, open_timeout=None)


@dataclass
class Identity:
    """Who this client is and, optionally, which session it is in."""
    user_id: str
    session_id: Optional[str] = None
    session_type: Optional[str] = None
    parent_context_id: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def coerce(cls, value: Union[Identity, dict[str, Any]]) -> Identity:
        if isinstance(value, Identity):
            return value
        data = dict(value)
        return cls(
            user_id=str(data.pop("userId", data.pop("user_id", ""))),
            session_id=data.pop("sessionId", data.pop("session_id", None)),
            session_type=data.pop("sessionType", data.pop("session_type", None)),
            parent_context_id=data.pop("parentContextId", data.pop("parent_context_id", None)),
            extra=data,
        )

    def join_request(self) -> Optional[JoinRequest]:
        if not self.session_id or not self.user_id:
            return None
        return JoinRequest(
            session_id=self.session_id,
            user_id=self.user_id,
            session_type=self.session_type,
            parent_context_id=self.parent_context_id,
        )


class ConnectionManager:
    """
    Owns one persistent websocket and reconnects it with exponential backoff.

    Lifecycle:
    - DISCONNECTED -> CONNECTING -> CONNECTED on a successful open
    - CONNECTED -> DISCONNECTED on close; a reconnect is scheduled unless
      the close code was 1000
    - CONNECTING -> DISCONNECTED on a failed attempt, then a reconnect, or
      FAILED once the attempt budget is spent

    ``send`` never queues: it returns False when not connected.
    """

    def __init__(
        self,
        url: str,
        *,
        policy: Optional[ReconnectPolicy] = None,
        connector: Optional[Connector] = None,
        open_timeout: float = 10.0,
    ):
        """
        Initialize connection manager.

        Args:
            url: Server websocket URL
            policy: Reconnect delay schedule (default: 1s base, x1.5, 10 attempts)
            connector: Coroutine function opening a transport for a URL
            open_timeout: Seconds allowed for one connect attempt
        """
        self.url = url
        self.policy = policy or ReconnectPolicy()
        self.open_timeout = open_timeout
        self.identity: Optional[Identity] = None
        self.last_error: Optional[TransportError] = None

        self._connector = connector or websocket_connector
        self._backoff = Backoff(self.policy)
        self._state = ConnectionStateMachine()
        self.channels = ChannelRegistry(self)
        self.dispatcher = Dispatcher(self.channels)

        self._transport: Optional[Transport] = None
        self._driver: Optional[asyncio.Task] = None
        self._closing = False
        self._reconnect_pending = False
        self._attempt_waiters: list[asyncio.Future] = []
        self._tasks: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> ConnectionManager:
        return cls(
            settings.server_url,
            policy=ReconnectPolicy.from_settings(settings.reconnect),
            open_timeout=settings.reconnect.open_timeout,
            **kwargs,
        )

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        return self._state.state

    @property
    def is_connected(self) -> bool:
        return self._state.state == ConnectionState.CONNECTED and self._transport is not None

    @property
    def attempts(self) -> int:
        """Reconnect attempts made since the last successful open."""
        return self._backoff.attempts

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_pending

    @property
    def state_history(self):
        return self._state.history

    def on_state_change(self, listener: StateListener) -> StateListener:
        """Register a state listener. Returns it, so it can be used as a decorator."""
        self._state.add_listener(listener)
        return listener

    def remove_state_listener(self, listener: StateListener) -> None:
        self._state.remove_listener(listener)

    async def wait_for_state(self, *states: ConnectionState, timeout: Optional[float] = None) -> ConnectionState:
        """Wait until the manager enters one of states (returns at once if already there)."""
        if self.state in states:
            return self.state

        loop = asyncio.get_running_loop()
        reached: asyncio.Future = loop.create_future()

        def listener(state: ConnectionState) -> None:
            if state in states and not reached.done():
                reached.set_result(state)

        self._state.add_listener(listener)
        try:
            return await asyncio.wait_for(reached, timeout)
        finally:
            self._state.remove_listener(listener)

    # =========================================================================
    # Channels
    # =========================================================================

    def get_channel(self, name: str) -> Channel:
        """Channel for name; the same instance on every call."""
        return self.channels.get_channel(name)

    @property
    def room_channel(self) -> Optional[Channel]:
        """Channel receiving the joined session's room events."""
        name = self.dispatcher.room_channel
        return self.channels.get(name) if name else None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(
        self,
        identity: Optional[Union[Identity, dict[str, Any]]] = None,
        *,
        wait: bool = True,
    ) -> bool:
        """
        Start (or restart) the connection.

        A pending reconnect wait is cancelled and replaced by an immediate
        attempt. When the identity names a session, the join request is sent
        after every successful open, and right away if already connected
        and the session changed.

        Args:
            identity: User identity (and optional session) for this client
            wait: Wait for the outcome of the first attempt

        Returns:
            True if connected when this call returns
        """
        previous = self.identity.join_request() if self.identity else None
        if identity is not None:
            self.identity = Identity.coerce(identity)
            if self.identity.session_id:
                self._bind_room(self.identity.session_type, self.identity.session_id)

        if self._driver is not None and not self._driver.done():
            if self.is_connected:
                request = self.identity.join_request() if self.identity else None
                if request is not None and request != previous:
                    logger.info(
                        f"Joining room: {request.session_type or 'lobby'} in session "
                        f"{request.session_id} as user {request.user_id}"
                    )
                    await self.send(request.to_wire())
                return True
            if self._reconnect_pending:
                logger.info("Connect requested while reconnect pending; connecting now")
                await self._stop_driver()
            elif not wait:
                return False
            else:
                return await self._wait_attempt()

        self._closing = False
        self._backoff.reset()
        self._driver = asyncio.create_task(self._run(), name=f"roomsync-connection:{self.url}")
        if not wait:
            return False
        return await self._wait_attempt()

    async def disconnect(self, code: int = NORMAL_CLOSURE, reason: str = "Normal closure") -> None:
        """Close the connection on purpose; no reconnect follows."""
        self._closing = True
        transport = self._transport
        self._transport = None

        if transport is not None:
            try:
                await transport.close(code, reason)
            except Exception as e:
                logger.debug(f"Error while closing websocket: {e}")

        await self._stop_driver()

        for task in list(self._tasks):
            task.cancel()

        self._state.transition_to(ConnectionState.DISCONNECTED, reason="disconnect requested")
        logger.info("WebSocket connection closed")

    async def reset(self, *, wait: bool = True) -> bool:
        """Reset the attempt counter and connect again (the way out of FAILED)."""
        logger.info("Resetting reconnect attempts")
        self._backoff.reset()
        if self.is_connected:
            return True
        return await self.connect(wait=wait)

    async def send(self, frame: Union[Frame, dict, str]) -> bool:
        """
        Send one frame.

        Returns:
            Whether the frame was written; False when not connected
        """
        transport = self._transport
        if self.state != ConnectionState.CONNECTED or transport is None:
            logger.debug("Cannot send message - not connected")
            return False

        try:
            await transport.send(encode(frame))
            return True
        except Exception as e:
            self.last_error = TransportError.from_exception(e)
            logger.warning(f"Failed to send frame: {self.last_error}")
            return False

    # =========================================================================
    # Rooms
    # =========================================================================

    async def join_room(
        self,
        session_id: str,
        user_id: Optional[str] = None,
        session_type: Optional[str] = None,
        parent_context_id: Optional[str] = None,
    ) -> bool:
        """
        Join a session. The join is remembered and repeated after reconnects.

        Returns:
            Whether the join request was sent now
        """
        user_id = user_id or (self.identity.user_id if self.identity else None)
        if not user_id:
            raise ValueError("user_id is required to join a room")

        self.identity = Identity(
            user_id=user_id,
            session_id=session_id,
            session_type=session_type,
            parent_context_id=parent_context_id,
            extra=self.identity.extra if self.identity else {},
        )
        self._bind_room(session_type, session_id)

        request = self.identity.join_request()
        logger.info(f"Joining room: {session_type or 'lobby'} in session {session_id} as user {user_id}")
        sent = await self.send(request.to_wire())
        if not sent:
            logger.warning("Cannot join room now: WebSocket not connected; will join on connect")
        return sent

    async def leave_room(self) -> bool:
        """Leave the current session."""
        if self.identity is not None:
            self.identity.session_id = None
        self.dispatcher.room_channel = None
        return await self.send(room_message(MessageType.LEAVE_ROOM))

    def _bind_room(self, session_type: Optional[str], session_id: str) -> None:
        name = room_channel_name(session_type, session_id)
        self.dispatcher.room_channel = name
        self.get_channel(name)

    # =========================================================================
    # Driver
    # =========================================================================

    async def _run(self) -> None:
        """Connection lifecycle driver."""
        try:
            while not self._closing:
                if await self._open():
                    code = await self._read_loop()
                    if self._closing:
                        break
                    self._transport = None
                    self._state.transition_to(ConnectionState.DISCONNECTED, reason=f"closed ({code})")
                    if code == NORMAL_CLOSURE:
                        logger.info("WebSocket closed normally; not reconnecting")
                        break
                    logger.warning(
                        f"WebSocket closed: {code} - {CLOSE_CODE_MEANINGS.get(code, 'Unknown reason')}"
                    )
                else:
                    self._state.transition_to(ConnectionState.DISCONNECTED, reason=str(self.last_error))

                if not await self._wait_before_retry():
                    break
        finally:
            self._transport = None
            self._resolve_attempt(False)

    async def _open(self) -> bool:
        self._state.transition_to(ConnectionState.CONNECTING)
        logger.info(f"Connecting to WebSocket: {self.url}")

        try:
            transport = await asyncio.wait_for(self._connector(self.url), timeout=self.open_timeout)
        except Exception as e:
            self.last_error = TransportError.from_exception(e)
            logger.warning(f"WebSocket connection failed: {self.last_error}")
            self._resolve_attempt(False)
            return False

        self._transport = transport
        self.last_error = None
        self._backoff.reset()
        self._state.transition_to(ConnectionState.CONNECTED)
        logger.info("WebSocket connected successfully")

        await self._on_open()
        self._resolve_attempt(True)
        return True

    async def _on_open(self) -> None:
        """Resubscribe every channel, then rejoin the remembered session."""
        for channel in self.channels:
            await channel.send_subscription()
            logger.debug(f"Resubscribed to channel: {channel.name}")

        if self.identity is not None:
            request = self.identity.join_request()
            if request is not None:
                await self.send(request.to_wire())
                logger.info(f"Rejoined session {request.session_id} as {request.user_id}")

    async def _read_loop(self) -> int:
        """Receive until the transport closes. Returns the close code."""
        transport = self._transport
        try:
            while True:
                raw = await transport.recv()
                await self.dispatcher.dispatch_raw(raw)
        except ConnectionClosed as e:
            if e.rcvd is not None:
                code = e.rcvd.code
            else:
                code = transport.close_code or ABNORMAL_CLOSURE
            if code != NORMAL_CLOSURE:
                self.last_error = TransportError.from_exception(e)
            return code
        except Exception as e:
            self.last_error = TransportError.from_exception(e)
            logger.error(f"WebSocket receive error: {self.last_error}", exc_info=True)
            try:
                await transport.close(1011, "receive error")
            except Exception:
                logger.debug("Error while closing failed websocket", exc_info=True)
            return ABNORMAL_CLOSURE

    async def _wait_before_retry(self) -> bool:
        """Sleep for the next backoff delay. False when retries are exhausted or cancelled."""
        if self._backoff.exhausted:
            logger.error(f"Maximum reconnection attempts ({self.policy.max_attempts}) reached. Giving up.")
            self._state.transition_to(ConnectionState.FAILED, reason="reconnect attempts exhausted")
            return False

        delay = self._backoff.next_delay()
        logger.info(
            f"Attempting to reconnect in {delay:.2f}s "
            f"(attempt {self._backoff.attempts}/{self.policy.max_attempts})"
        )
        self._reconnect_pending = True
        try:
            await asyncio.sleep(delay)
        finally:
            self._reconnect_pending = False
        return not self._closing

    async def _stop_driver(self) -> None:
        driver = self._driver
        self._driver = None
        if driver is None or driver.done():
            return
        if driver is asyncio.current_task():
            # Called from a callback running inside the driver; the loop exits on its own
            return
        driver.cancel()
        try:
            await driver
        except asyncio.CancelledError:
            pass

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _wait_attempt(self) -> bool:
        if self.is_connected:
            return True
        waiter = asyncio.get_running_loop().create_future()
        self._attempt_waiters.append(waiter)
        return await waiter

    def _resolve_attempt(self, connected: bool) -> None:
        waiters, self._attempt_waiters = self._attempt_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(connected)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Run coro in the background, keeping a reference until it finishes."""
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background task failed: {task.exception()}")
