"""Session id -> live Room."""

from __future__ import annotations

import logging
from typing import Dict, Iterator, Optional

from .connection import ParticipantConnection
from .room import Room
from .session_types import SessionTypeRegistry

logger = logging.getLogger(__name__)


class RoomRegistry:
    """
    Creates, addresses and tears down Rooms.

    A Room exists in the registry exactly while it has participants: it is
    created on the first join for a session id and removed when its last
    participant leaves. A later join for the same session id starts over
    with fresh state.
    """

    def __init__(self, session_types: Optional[SessionTypeRegistry] = None):
        self.session_types = session_types or SessionTypeRegistry()
        self._rooms: Dict[str, Room] = {}

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._rooms

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    def __len__(self) -> int:
        return len(self._rooms)

    def get(self, session_id: Optional[str]) -> Optional[Room]:
        if session_id is None:
            return None
        return self._rooms.get(session_id)

    def room_for(self, connection: ParticipantConnection) -> Optional[Room]:
        """Room the connection is currently in, if it still exists."""
        room = self.get(connection.session_id)
        if room is not None and room.has_participant(connection):
            return room
        return None

    def get_or_create_room(
        self,
        session_id: str,
        type_id: Optional[str] = None,
        existing_instance: Optional[Room] = None,
        parent_context_id: Optional[str] = None,
    ) -> Room:
        """
        Resolve the Room for a session.

        Args:
            session_id: Session identifier
            type_id: Session type to build when no Room exists yet
            existing_instance: Room to install as-is (replaces any current one)
            parent_context_id: Passed to the session type factory

        Returns:
            The Room now registered for session_id
        """
        if existing_instance is not None:
            self._rooms[session_id] = existing_instance
            return existing_instance

        room = self._rooms.get(session_id)
        if room is not None:
            return room

        room = self._build_room(session_id, type_id, parent_context_id)
        self._rooms[session_id] = room
        logger.info(f"Room created: {session_id} ({room.type_id or 'lobby'})")
        return room

    def _build_room(self, session_id: str, type_id: Optional[str], parent_context_id: Optional[str]) -> Room:
        if type_id and type_id in self.session_types:
            behavior = self.session_types.create(type_id, session_id, parent_context_id)
            if behavior is not None:
                return Room(session_id, behavior, type_id=type_id)
            logger.warning(f"Falling back to generic room for session {session_id}")
        elif type_id:
            logger.debug(f"Unknown session type '{type_id}', using generic room for {session_id}")
        return Room(session_id)

    def _upgrade_room(self, room: Room, type_id: str, parent_context_id: Optional[str]) -> Room:
        """Replace a generic Room by a specialized one, keeping its participants."""
        behavior = self.session_types.create(type_id, room.session_id, parent_context_id)
        if behavior is None:
            return room

        upgraded = Room(room.session_id, behavior, type_id=type_id)
        upgraded.adopt(room.participants)
        room.close()
        logger.info(f"Room upgraded: {room.session_id} lobby -> {type_id}")
        return self.get_or_create_room(room.session_id, existing_instance=upgraded)

    async def join(
        self,
        connection: ParticipantConnection,
        user_id: str,
        session_id: str,
        type_id: Optional[str] = None,
        parent_context_id: Optional[str] = None,
    ) -> Room:
        """
        Put connection into the Room of session_id.

        A connection already in another Room leaves it first. Joining the
        Room it is already in is a no-op. If the Room is removed or replaced
        while the join waits for its lock, the join goes to the Room that is
        registered now.
        """
        current = self.room_for(connection)
        if current is not None:
            if current.session_id == session_id:
                logger.debug(f"{user_id} already in room {session_id}")
                return current
            await self.leave(connection)

        while True:
            room = self.get(session_id)
            if room is not None and not room.is_specialized and type_id in self.session_types:
                room = self._upgrade_room(room, type_id, parent_context_id)
            else:
                room = self.get_or_create_room(session_id, type_id, parent_context_id=parent_context_id)

            if await room.add_participant(connection, user_id):
                return room
            logger.debug(f"Room {session_id} closed while {user_id} was joining, retrying")

    async def leave(self, connection: ParticipantConnection) -> bool:
        """
        Remove connection from its Room.

        Returns:
            True if that emptied the Room and it was removed from the registry
        """
        session_id = connection.session_id
        room = self.get(session_id)
        if room is None:
            return False

        is_empty = await room.remove_participant(connection)
        if is_empty and room.is_empty and self._rooms.get(session_id) is room:
            del self._rooms[session_id]
            room.close()
            logger.info(f"Room removed: {session_id}")
            return True
        return False

    def describe(self) -> dict[str, dict]:
        return {session_id: room.describe() for session_id, room in self._rooms.items()}
