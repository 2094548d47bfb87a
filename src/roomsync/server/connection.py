"""Server-side representation of one client websocket."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Set
from uuid import uuid4

from fastapi.websockets import WebSocket, WebSocketState

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class ParticipantConnection:
    """
    One accepted websocket plus the room membership bound to it.

    A connection belongs to at most one room: ``session_id`` and
    ``user_id`` are set on join and cleared on leave.
    """
    websocket: WebSocket
    connection_id: str = field(default_factory=lambda: str(uuid4()))
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    channels: Set[str] = field(default_factory=set)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_open(self) -> bool:
        """True while both sides of the websocket are connected."""
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, text: str) -> None:
        await self.websocket.send_text(text)

    async def send_json(self, message: Any) -> bool:
        """Send one message to this connection only. Skipped when not open."""
        if not self.is_open:
            logger.debug(f"Skipping send to closed connection {self.connection_id}")
            return False
        await self.websocket.send_text(json.dumps(message, ensure_ascii=False))
        return True

    def bind(self, session_id: str, user_id: str) -> None:
        self.session_id = session_id
        self.user_id = user_id

    def unbind(self) -> None:
        self.session_id = None

    def __repr__(self) -> str:
        return f"ParticipantConnection(id={self.connection_id[:8]}..., user={self.user_id}, session={self.session_id})"

    def __hash__(self) -> int:
        return hash(self.connection_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParticipantConnection):
            return NotImplemented
        return self.connection_id == other.connection_id
