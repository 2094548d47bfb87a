"""
WebSocket router for the room broker.

Accepts client connections, decodes each inbound frame and routes it to
the registry (join/leave) or to the Room the connection is in.
"""

from __future__ import annotations

import logging
from typing import Any, Union

from fastapi import WebSocket, WebSocketDisconnect

from ..core.errors import FrameError
from ..core.frames import (
    Frame,
    FrameKind,
    JoinRequest,
    MessageType,
    decode,
    error_message,
    room_message,
)
from .connection import ParticipantConnection
from .registry import RoomRegistry

logger = logging.getLogger(__name__)


class RoomRouter:
    """
    WebSocket router for room sessions.

    Features:
    - join_room / leave_room membership handling
    - ping heartbeat
    - channel subscribe bookkeeping
    - publish frames and room events forwarded to the Room behavior
    """

    def __init__(self, registry: RoomRegistry):
        """
        Initialize router.

        Args:
            registry: Registry owning the live Rooms
        """
        self.registry = registry
        self._connections: dict[str, ParticipantConnection] = {}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def handle_connection(self, websocket: WebSocket):
        """
        Handle WebSocket connection from client.

        Flow:
        1. Accept connection and send a "connected" system frame
        2. Read frames until the client goes away
        3. Route every frame (errors are reported to this client only)
        4. Leave the Room on disconnect
        """
        await websocket.accept()
        connection = ParticipantConnection(websocket)
        self._connections[connection.connection_id] = connection
        logger.info(f"Client {connection.connection_id} connected")

        try:
            await connection.send_text(
                Frame.system("connected", connection_id=connection.connection_id).to_json()
            )

            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))

                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes") or b""
                await self._handle_raw(connection, raw)

        except WebSocketDisconnect:
            logger.info(f"Client {connection.connection_id} disconnected")
        except Exception as e:
            logger.error(f"Error in WebSocket connection {connection.connection_id}: {e}", exc_info=True)
        finally:
            self._connections.pop(connection.connection_id, None)
            await self.registry.leave(connection)

    async def _handle_raw(self, connection: ParticipantConnection, raw: Union[str, bytes]):
        try:
            message = decode(raw)
        except FrameError as e:
            logger.warning(f"Invalid frame from {connection.connection_id}: {e}")
            await self._reply(connection, error_message(str(e)))
            return

        if isinstance(message, Frame):
            await self._handle_frame(connection, message)
        else:
            await self._handle_message(connection, message)

    async def _handle_frame(self, connection: ParticipantConnection, frame: Frame):
        """
        Handle a channel frame.

        Supports:
        - subscribe: remember the channel on the connection
        - publish: hand over to the Room as {type: event, channel, data}
        """
        if frame.kind == FrameKind.SUBSCRIBE:
            if not frame.channel:
                await self._reply(connection, error_message("Subscribe requires a channel"))
                return
            connection.channels.add(frame.channel)
            logger.debug(f"Client {connection.connection_id} subscribed to {frame.channel}")

        elif frame.kind == FrameKind.PUBLISH:
            if not frame.event:
                await self._reply(connection, error_message("Publish requires an event"))
                return
            payload = {"type": frame.event, "channel": frame.channel, "data": frame.data}
            await self._forward(connection, payload)

        else:
            logger.debug(f"Ignoring {frame.kind.value} frame from {connection.connection_id}")

    async def _handle_message(self, connection: ParticipantConnection, message: dict):
        """
        Handle a room message.

        Supports:
        - join_room: enter a session
        - leave_room: leave the current session
        - ping: heartbeat
        - anything else: forwarded to the Room behavior
        """
        message_type = message.get("type")

        if message_type == MessageType.JOIN_ROOM.value:
            await self._handle_join(connection, message)

        elif message_type == MessageType.LEAVE_ROOM.value:
            await self.registry.leave(connection)

        elif message_type == MessageType.PING.value:
            await self._reply(connection, room_message(MessageType.PONG))

        else:
            await self._forward(connection, message)

    async def _handle_join(self, connection: ParticipantConnection, message: dict):
        """
        Handle join request.

        Message format:
        {
            "type": "join_room",
            "sessionId": "s1",
            "userId": "A",
            "sessionType": "dotgame"
        }
        """
        try:
            request = JoinRequest.parse(message)
        except FrameError as e:
            logger.warning(f"Join rejected for {connection.connection_id}: {e}")
            await self._reply(connection, error_message(str(e)))
            return

        await self.registry.join(
            connection,
            request.user_id,
            request.session_id,
            type_id=request.session_type,
            parent_context_id=request.parent_context_id,
        )

    async def _forward(self, connection: ParticipantConnection, payload: dict):
        room = self.registry.room_for(connection)
        if room is None:
            logger.warning(
                f"Dropping '{payload.get('type')}' from {connection.connection_id}: "
                f"no room for session {connection.session_id}"
            )
            return
        await room.handle_message(connection, payload)

    async def _reply(self, connection: ParticipantConnection, message: Any) -> bool:
        try:
            return await connection.send_json(message)
        except Exception as e:
            logger.warning(f"Failed to reply to {connection.connection_id}: {e}")
            return False
