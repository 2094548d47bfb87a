"""
Dot game: every participant owns one colored dot.

Messages:
    {"type": "update_position", "data": {"x": 10, "y": 20, "color": "#FF5733"}}
        -> {"type": "dot_update", "userId": "A", "position": {...}} to the others
"""

from __future__ import annotations

import logging
from typing import Any

from ..server.connection import ParticipantConnection
from ..server.room import Room, RoomBehavior
from .palette import is_number, now_ms, random_color

logger = logging.getLogger(__name__)


class DotGameBehavior(RoomBehavior):
    type_id = "dotgame"
    display_name = "Dot Game"
    description = "Simple multiplayer dot visualization"
    min_participants = 1
    max_participants = 10
    thumbnail = "/thumbnails/dotgame.png"

    def create_state(self) -> dict[str, Any]:
        return {"lastUpdate": now_ms(), "positions": {}}

    async def on_message(self, room: Room, connection: ParticipantConnection, payload: dict) -> None:
        message_type = payload.get("type")

        if message_type == "update_position":
            position = payload.get("data") or payload.get("position")
            if not isinstance(position, dict) or not (is_number(position.get("x")) and is_number(position.get("y"))):
                logger.warning(f"DotGame [{room.session_id}]: invalid position from {connection.user_id}")
                return
            await self.update_position(room, connection, position)
        else:
            logger.debug(f"DotGame [{room.session_id}]: unknown message type: {message_type}")

    async def on_leave(self, room: Room, connection: ParticipantConnection, user_id: str) -> None:
        if room.state["positions"].pop(user_id, None) is not None:
            room.state["lastUpdate"] = now_ms()

    async def update_position(self, room: Room, connection: ParticipantConnection, position: dict) -> None:
        user_id = connection.user_id
        room.state["positions"][user_id] = {
            "x": position["x"],
            "y": position["y"],
            "color": position.get("color") or random_color(),
        }
        room.state["lastUpdate"] = now_ms()

        await room.broadcast(
            {"type": "dot_update", "userId": user_id, "position": room.state["positions"][user_id]},
            except_connection=connection,
        )
