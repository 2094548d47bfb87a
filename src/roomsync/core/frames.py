"""
Wire frames exchanged over the single client/server connection.

Two envelope families share the socket:

- Channel frames, tagged by ``kind``:
    {"kind": "subscribe", "channel": "dotgame-s1"}
    {"kind": "publish", "channel": "dotgame-s1", "event": "update_position", "data": {...}}
    {"kind": "system", "message": "connected", ...}

- Room messages, tagged by ``type``:
    {"type": "join_room", "sessionId": "s1", "userId": "A", "sessionType": "dotgame"}
    {"type": "user_joined", "userId": "B", "participantCount": 2}
    {"type": "state_sync", "state": {...}}
    {"type": "error", "message": "..."}

Payloads (``data``, ``state``) are opaque to the core.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import FrameError


class FrameKind(str, Enum):
    """Channel frame kinds."""
    SUBSCRIBE = "subscribe"
    PUBLISH = "publish"
    SYSTEM = "system"


class MessageType(str, Enum):
    """Room message types understood by the broker itself."""
    JOIN_ROOM = "join_room"
    LEAVE_ROOM = "leave_room"
    PING = "ping"
    PONG = "pong"
    USER_JOINED = "user_joined"
    USER_LEFT = "user_left"
    STATE_SYNC = "state_sync"
    ERROR = "error"


class Frame(BaseModel):
    """
    Channel frame.

    Example:
    {
        "kind": "publish",
        "channel": "dotgame-s1",
        "event": "update_position",
        "data": {"x": 10, "y": 20}
    }
    """
    model_config = ConfigDict(extra="allow")

    kind: FrameKind
    channel: Optional[str] = None
    event: Optional[str] = None
    data: Any = None
    message: Optional[str] = None

    @classmethod
    def subscribe(cls, channel: str) -> Frame:
        return cls(kind=FrameKind.SUBSCRIBE, channel=channel)

    @classmethod
    def publish(cls, channel: str, event: str, data: Any = None) -> Frame:
        return cls(kind=FrameKind.PUBLISH, channel=channel, event=event, data=data)

    @classmethod
    def system(cls, message: str, **extra: Any) -> Frame:
        return cls(kind=FrameKind.SYSTEM, message=message, **extra)

    def to_wire(self) -> dict[str, Any]:
        """Dict form with unset optional fields removed."""
        return self.model_dump(mode="json", exclude_none=True)

    def to_json(self) -> str:
        return json.dumps(self.to_wire(), ensure_ascii=False)


class JoinRequest(BaseModel):
    """
    Join request sent by a client to enter a session.

    ``instanceId`` is accepted as an alias of ``sessionId``.
    """
    model_config = ConfigDict(populate_by_name=True)

    type: str = MessageType.JOIN_ROOM.value
    session_id: str = Field(alias="sessionId", min_length=1)
    user_id: str = Field(alias="userId", min_length=1)
    session_type: Optional[str] = Field(default=None, alias="sessionType")
    parent_context_id: Optional[str] = Field(default=None, alias="parentContextId")

    @classmethod
    def parse(cls, message: dict[str, Any]) -> JoinRequest:
        data = dict(message)
        if "sessionId" not in data and "instanceId" in data:
            data["sessionId"] = data["instanceId"]
        if "sessionType" not in data and "gameType" in data:
            data["sessionType"] = data["gameType"]
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise FrameError("Missing sessionId or userId", raw=message) from e

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


InboundMessage = Union[Frame, dict]


def decode(raw: Union[str, bytes]) -> InboundMessage:
    """
    Decode one raw wire message.

    Returns a Frame for ``kind``-tagged messages, the plain dict for
    ``type``-tagged room messages.

    Raises:
        FrameError: If the text is not JSON, not an object, or carries
            neither a valid ``kind`` nor a ``type``.
    """
    try:
        message = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise FrameError("Invalid message format", raw=raw) from e

    if not isinstance(message, dict):
        raise FrameError("Invalid message format", raw=raw)

    if "kind" in message:
        try:
            return Frame.model_validate(message)
        except ValidationError as e:
            raise FrameError(f"Invalid frame: {message.get('kind')!r}", raw=raw) from e

    if isinstance(message.get("type"), str) and message["type"]:
        return message

    raise FrameError("Message has no kind or type", raw=raw)


def encode(message: Union[Frame, dict, str]) -> str:
    """Serialize an outbound message once."""
    if isinstance(message, str):
        return message
    if isinstance(message, Frame):
        return message.to_json()
    return json.dumps(message, ensure_ascii=False)


def room_message(type_: Union[MessageType, str], **fields: Any) -> dict[str, Any]:
    """Build a ``type``-tagged room message."""
    value = type_.value if isinstance(type_, MessageType) else type_
    return {"type": value, **fields}


def error_message(message: str) -> dict[str, Any]:
    return room_message(MessageType.ERROR, message=message)


def room_channel_name(session_type: Optional[str], session_id: str) -> str:
    """Channel that carries a joined session's room events on the client."""
    return f"{session_type or 'lobby'}-{session_id}"
