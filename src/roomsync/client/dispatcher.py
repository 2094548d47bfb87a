"""Routes inbound frames to channel subscribers."""

from __future__ import annotations

import logging
from typing import Optional, Union

from ..core.errors import FrameError
from ..core.frames import Frame, FrameKind, decode
from .channel import ChannelRegistry

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Inbound frame router.

    - ``publish`` frames go to the named channel's subscribers for the event.
      A frame for a channel that does not exist locally is dropped.
    - ``type``-tagged room messages go to the room channel of the session
      this client joined, using ``type`` as the event name and the whole
      message as payload.
    - ``system`` frames are logged.
    """

    def __init__(self, channels: ChannelRegistry):
        self.channels = channels
        self.room_channel: Optional[str] = None
        self.dropped = 0

    async def dispatch_raw(self, raw: Union[str, bytes]) -> int:
        """Decode and dispatch one raw message. Undecodable input is logged and dropped."""
        try:
            message = decode(raw)
        except FrameError as e:
            self.dropped += 1
            logger.warning(f"Dropping undecodable frame: {e}")
            return 0
        return await self.dispatch(message)

    async def dispatch(self, message: Union[Frame, dict]) -> int:
        """
        Dispatch one decoded message.

        Returns:
            Number of callbacks that ran successfully
        """
        if isinstance(message, Frame):
            return await self._dispatch_frame(message)
        return await self._dispatch_room_message(message)

    async def _dispatch_frame(self, frame: Frame) -> int:
        if frame.kind == FrameKind.SYSTEM:
            logger.info(f"System message: {frame.message}")
            return 0

        if frame.kind != FrameKind.PUBLISH:
            logger.debug(f"Ignoring inbound '{frame.kind.value}' frame")
            return 0

        if not frame.channel or not frame.event:
            self.dropped += 1
            logger.warning("Dropping publish frame without channel or event")
            return 0

        channel = self.channels.get(frame.channel)
        if channel is None:
            self.dropped += 1
            logger.debug(f"No local channel '{frame.channel}', dropping '{frame.event}'")
            return 0

        return await channel.dispatch(frame.event, frame.data)

    async def _dispatch_room_message(self, message: dict) -> int:
        event = message["type"]

        if event == "error":
            logger.error(f"Error from server: {message.get('message')}")

        if self.room_channel is None:
            self.dropped += 1
            logger.debug(f"Not in a room, dropping '{event}' message")
            return 0

        channel = self.channels.get(self.room_channel)
        if channel is None:
            self.dropped += 1
            logger.debug(f"Room channel '{self.room_channel}' not requested locally, dropping '{event}'")
            return 0

        return await channel.dispatch(event, message)
