"""
Collaborative canvas: participants drop circles on a shared board.

Messages:
    {"type": "add_circle", "data": {"x": 5, "y": 5, "radius": 10}}
        -> {"type": "circle_added", "circle": {...}} to everyone
    {"type": "clear_canvas"}
        -> {"type": "canvas_cleared", "clearedBy": "A", "timestamp": ...} to everyone
"""

from __future__ import annotations

import logging
from typing import Any

from ..server.connection import ParticipantConnection
from ..server.room import Room, RoomBehavior
from .palette import is_number, now_ms, random_color

logger = logging.getLogger(__name__)

DEFAULT_RADIUS = 20


class CanvasBehavior(RoomBehavior):
    type_id = "canvas"
    display_name = "Canvas Game"
    description = "A collaborative drawing canvas"
    min_participants = 1
    max_participants = 8
    thumbnail = "/thumbnails/canvas.png"

    def create_state(self) -> dict[str, Any]:
        return {"lastUpdate": now_ms(), "circles": []}

    async def on_message(self, room: Room, connection: ParticipantConnection, payload: dict) -> None:
        message_type = payload.get("type")

        if message_type == "add_circle":
            circle = payload.get("data") or payload.get("payload") or {}
            await self.add_circle(room, connection, circle)
        elif message_type == "clear_canvas":
            await self.clear_canvas(room, connection)
        else:
            logger.debug(f"Canvas [{room.session_id}]: unknown message type: {message_type}")

    async def add_circle(self, room: Room, connection: ParticipantConnection, data: dict) -> None:
        if not isinstance(data, dict) or not (is_number(data.get("x")) and is_number(data.get("y"))):
            logger.warning(f"Canvas [{room.session_id}]: invalid circle from {connection.user_id}")
            return

        circle = {
            "x": data["x"],
            "y": data["y"],
            "color": data.get("color") or random_color(),
            "radius": data.get("radius") or DEFAULT_RADIUS,
            "userId": connection.user_id,
            "timestamp": now_ms(),
        }
        room.state["circles"].append(circle)
        room.state["lastUpdate"] = now_ms()

        await room.broadcast({"type": "circle_added", "circle": circle})

    async def clear_canvas(self, room: Room, connection: ParticipantConnection) -> None:
        room.state["circles"] = []
        room.state["lastUpdate"] = now_ms()

        await room.broadcast({
            "type": "canvas_cleared",
            "clearedBy": connection.user_id,
            "timestamp": room.state["lastUpdate"],
        })
