"""
Session type registry.

Maps a session type id to a factory producing the RoomBehavior for a new
session of that type.

Usage:
    registry = SessionTypeRegistry()
    registry.register_behavior(DotGameBehavior)

    behavior = registry.create("dotgame", "session-1")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Type

from ..core.errors import SessionTypeError
from .room import RoomBehavior

logger = logging.getLogger(__name__)

BehaviorFactory = Callable[[str, Optional[str]], RoomBehavior]

REQUIRED_FIELDS = ("type_id", "display_name", "description")


@dataclass
class SessionTypeEntry:
    """Metadata and factory of one session type."""
    type_id: str
    display_name: str
    description: str
    factory: BehaviorFactory
    min_participants: int = 1
    max_participants: int = 10
    thumbnail: Optional[str] = None

    @classmethod
    def from_behavior(cls, behavior_cls: Type[RoomBehavior]) -> SessionTypeEntry:
        """Entry whose metadata is read from the behavior's class attributes."""
        return cls(
            type_id=behavior_cls.type_id,
            display_name=behavior_cls.display_name,
            description=behavior_cls.description,
            factory=behavior_cls,
            min_participants=behavior_cls.min_participants,
            max_participants=behavior_cls.max_participants,
            thumbnail=behavior_cls.thumbnail,
        )

    def to_dict(self) -> dict[str, Any]:
        """Metadata as exposed by the session type listing."""
        return {
            "typeId": self.type_id,
            "displayName": self.display_name,
            "description": self.description,
            "minParticipants": self.min_participants,
            "maxParticipants": self.max_participants,
            "thumbnail": self.thumbnail,
        }


class SessionTypeRegistry:
    """
    Session type id -> SessionTypeEntry.

    Registering a type id twice keeps the first registration and logs a
    warning.
    """

    def __init__(self):
        self._entries: Dict[str, SessionTypeEntry] = {}

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def register(self, entry: SessionTypeEntry) -> bool:
        """
        Register a session type.

        Returns:
            True if registered, False if the type id was already taken

        Raises:
            SessionTypeError: If type_id, display_name or description is missing
        """
        missing = [name for name in REQUIRED_FIELDS if not getattr(entry, name, None)]
        if missing:
            raise SessionTypeError(getattr(entry, "type_id", None), missing)

        if entry.type_id in self._entries:
            logger.warning(
                f"Session type with ID {entry.type_id} already registered. Skipping duplicate registration."
            )
            return False

        self._entries[entry.type_id] = entry
        logger.info(f"Registered session type: {entry.display_name} ({entry.type_id})")
        return True

    def register_behavior(self, behavior_cls: Type[RoomBehavior]) -> Type[RoomBehavior]:
        """
        Register a RoomBehavior class by its metadata. Usable as a decorator.

        Usage:
            @registry.register_behavior
            class Scores(RoomBehavior):
                type_id = "scores"
                ...
        """
        self.register(SessionTypeEntry.from_behavior(behavior_cls))
        return behavior_cls

    def get(self, type_id: Optional[str]) -> Optional[SessionTypeEntry]:
        if type_id is None:
            return None
        return self._entries.get(type_id)

    def list_types(self) -> list[dict[str, Any]]:
        """Metadata of every registered type, in registration order."""
        return [entry.to_dict() for entry in self._entries.values()]

    def create(
        self,
        type_id: str,
        session_id: str,
        parent_context_id: Optional[str] = None,
    ) -> Optional[RoomBehavior]:
        """
        Build the behavior for a new session.

        Returns:
            The behavior, or None if the type is unknown or its factory failed
        """
        entry = self._entries.get(type_id)
        if entry is None:
            logger.warning(f"Session type with ID {type_id} not found in registry")
            return None

        try:
            return entry.factory(session_id, parent_context_id)
        except Exception as e:
            logger.error(f"Error creating instance of session type {type_id}: {e}", exc_info=True)
            return None

    def clear(self) -> None:
        self._entries.clear()
