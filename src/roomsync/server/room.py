"""
Room engine and the behavior strategy interface.

A Room holds the participants and the state of one session. What a
session *does* with joins, messages and leaves is supplied by a
RoomBehavior strategy, composed into the Room rather than subclassed.

Example:
    class ScoreBoard(RoomBehavior):
        type_id = "scores"
        display_name = "Score Board"
        description = "Shared score counter"

        def create_state(self) -> dict:
            return {"scores": {}}

        async def on_message(self, room, connection, payload):
            if payload.get("type") == "add_point":
                scores = room.state["scores"]
                scores[connection.user_id] = scores.get(connection.user_id, 0) + 1
                await room.broadcast({"type": "scores", "scores": scores})
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Iterable, Optional

from ..core.frames import MessageType, room_message
from .broadcast import Broadcaster, BroadcastResult
from .connection import ParticipantConnection

logger = logging.getLogger(__name__)


class RoomBehavior:
    """
    Strategy for the override points of a Room.

    The base implementation is the generic behavior: a joiner receives a
    full state snapshot, messages and leaves are ignored. Class attributes
    carry the metadata a session type is registered with.
    """

    type_id: ClassVar[Optional[str]] = None
    display_name: ClassVar[str] = "Lobby"
    description: ClassVar[str] = "Generic room without session-specific behavior"
    min_participants: ClassVar[int] = 1
    max_participants: ClassVar[int] = 10
    thumbnail: ClassVar[Optional[str]] = None

    def __init__(self, session_id: Optional[str] = None, parent_context_id: Optional[str] = None):
        self.session_id = session_id
        self.parent_context_id = parent_context_id

    def create_state(self) -> Any:
        """Initial state of a new Room. Its shape is private to the behavior."""
        return {}

    async def on_join(self, room: Room, connection: ParticipantConnection, user_id: str) -> None:
        await room.send_to(connection, room_message(MessageType.STATE_SYNC, state=room.state))

    async def on_message(self, room: Room, connection: ParticipantConnection, payload: dict) -> None:
        logger.debug(f"Room [{room.session_id}]: no handler for '{payload.get('type')}'")

    async def on_leave(self, room: Room, connection: ParticipantConnection, user_id: str) -> None:
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(session={self.session_id})"


class Room:
    """
    Participants and state of one session.

    Join, message and leave handling for one Room are serialized by the
    Room's lock, so a behavior never sees two of its hooks interleave.
    Rooms never coordinate with each other.
    """

    def __init__(
        self,
        session_id: str,
        behavior: Optional[RoomBehavior] = None,
        *,
        type_id: Optional[str] = None,
    ):
        self.session_id = session_id
        self.behavior = behavior or RoomBehavior(session_id)
        self.type_id = type_id if type_id is not None else self.behavior.type_id
        self.state: Any = self.behavior.create_state()
        self.broadcaster = Broadcaster(session_id)
        self.created_at = datetime.now(timezone.utc)
        self._participants: Dict[ParticipantConnection, str] = {}
        self._lock = asyncio.Lock()
        self.closed = False

    def __repr__(self) -> str:
        return f"Room(session={self.session_id}, type={self.type_id or 'lobby'}, participants={self.participant_count})"

    # === Participants ===

    @property
    def participants(self) -> list[ParticipantConnection]:
        return list(self._participants.keys())

    @property
    def participant_count(self) -> int:
        return len(self._participants)

    @property
    def is_empty(self) -> bool:
        return not self._participants

    @property
    def is_specialized(self) -> bool:
        return self.type_id is not None

    @property
    def user_ids(self) -> list[str]:
        return list(self._participants.values())

    def has_participant(self, connection: ParticipantConnection) -> bool:
        return connection in self._participants

    def adopt(self, participants: Iterable[ParticipantConnection]) -> None:
        """Take over participants from another Room (no hooks, no broadcasts)."""
        for connection in participants:
            self._participants[connection] = connection.user_id or ""

    def close(self) -> None:
        """Refuse further joins; the registry no longer serves this Room."""
        self.closed = True

    async def add_participant(self, connection: ParticipantConnection, user_id: str) -> bool:
        """
        Register connection, run the join hook, announce the joiner.

        The "user_joined" event goes to everyone except the joiner.

        Returns:
            False if the Room was closed before the join got its turn
        """
        async with self._lock:
            if self.closed:
                return False

            self._participants[connection] = user_id
            connection.bind(self.session_id, user_id)

            try:
                await self.behavior.on_join(self, connection, user_id)
            except Exception as e:
                logger.error(f"Room [{self.session_id}]: join handler failed for {user_id}: {e}", exc_info=True)

            await self.broadcast(
                room_message(
                    MessageType.USER_JOINED,
                    userId=user_id,
                    participantCount=self.participant_count,
                ),
                except_connection=connection,
            )
        logger.info(f"Room [{self.session_id}]: {user_id} joined ({self.participant_count} participants)")
        return True

    async def remove_participant(self, connection: ParticipantConnection) -> bool:
        """
        Unregister connection, run the leave hook, announce the departure.

        Returns:
            True if the room is now empty
        """
        async with self._lock:
            if connection not in self._participants:
                return False

            user_id = self._participants.pop(connection)
            connection.unbind()

            try:
                await self.behavior.on_leave(self, connection, user_id)
            except Exception as e:
                logger.error(f"Room [{self.session_id}]: leave handler failed for {user_id}: {e}", exc_info=True)

            await self.broadcast(
                room_message(
                    MessageType.USER_LEFT,
                    userId=user_id,
                    participantCount=self.participant_count,
                )
            )
            logger.info(f"Room [{self.session_id}]: {user_id} left ({self.participant_count} participants)")
            return self.is_empty

    # === Messages ===

    async def handle_message(self, connection: ParticipantConnection, payload: dict) -> bool:
        """
        Run the message hook for one inbound payload.

        Errors raised by the behavior are logged and contained here.

        Returns:
            True if the hook completed
        """
        async with self._lock:
            try:
                await self.behavior.on_message(self, connection, payload)
                return True
            except Exception as e:
                logger.error(
                    f"Room [{self.session_id}]: error handling '{payload.get('type')}' "
                    f"from {connection.user_id}: {e}",
                    exc_info=True,
                )
                return False

    async def broadcast(
        self,
        message: Any,
        except_connection: Optional[ParticipantConnection] = None,
    ) -> BroadcastResult:
        """Send message to every open participant except except_connection."""
        return await self.broadcaster.broadcast(self.participants, message, except_connection)

    async def send_to(self, connection: ParticipantConnection, message: Any) -> bool:
        """Send message to one participant only."""
        try:
            return await connection.send_json(message)
        except Exception as e:
            logger.warning(f"Room [{self.session_id}]: failed to send to {connection.connection_id}: {e}")
            return False

    def describe(self) -> dict[str, Any]:
        return {
            "typeId": self.type_id,
            "participantCount": self.participant_count,
            "createdAt": self.created_at.isoformat(),
        }
