"""Relay: re-broadcasts every published event to the other participants."""

from __future__ import annotations

from typing import Any

from ..core.frames import Frame
from ..server.connection import ParticipantConnection
from ..server.room import Room, RoomBehavior


class RelayBehavior(RoomBehavior):
    type_id = "relay"
    display_name = "Relay"
    description = "Forwards published events to every other participant"
    min_participants = 1
    max_participants = 10

    def create_state(self) -> dict[str, Any]:
        return {"relayed": 0}

    async def on_message(self, room: Room, connection: ParticipantConnection, payload: dict) -> None:
        channel = payload.get("channel")
        if not channel:
            # Plain room events are relayed unchanged
            await room.broadcast(payload, except_connection=connection)
        else:
            frame = Frame.publish(channel, payload["type"], payload.get("data"))
            await room.broadcast(frame, except_connection=connection)
        room.state["relayed"] += 1
