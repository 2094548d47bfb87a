"""Fan-out of one message to many participant connections."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..core.frames import encode
from .connection import ParticipantConnection

logger = logging.getLogger(__name__)


@dataclass
class BroadcastResult:
    """Who a broadcast reached."""
    delivered: list[str] = field(default_factory=list)
    skipped: int = 0
    failed: int = 0

    @property
    def recipients(self) -> int:
        return len(self.delivered)


class Broadcaster:
    """
    Serializes a message once and writes it to every open connection.

    Connections that are not open are skipped (counted, never queued or
    retried). A write that raises is logged and counted as failed; the
    remaining connections still receive the message.
    """

    def __init__(self, label: str = ""):
        self.label = label
        self.skipped_total = 0
        self.failed_total = 0

    async def broadcast(
        self,
        connections: Iterable[ParticipantConnection],
        message: Any,
        except_connection: Optional[ParticipantConnection] = None,
    ) -> BroadcastResult:
        text = encode(message)
        result = BroadcastResult()

        for connection in list(connections):
            if connection is except_connection:
                continue
            if not connection.is_open:
                result.skipped += 1
                continue
            try:
                await connection.send_text(text)
                result.delivered.append(connection.user_id or "unknown")
            except Exception as e:
                result.failed += 1
                logger.warning(f"Room [{self.label}]: failed to send to {connection.connection_id}: {e}")

        self.skipped_total += result.skipped
        self.failed_total += result.failed

        if result.delivered:
            logger.debug(f"Room [{self.label}]: broadcast to [{', '.join(result.delivered)}]")
        else:
            sender = except_connection.user_id if except_connection is not None else "N/A"
            logger.debug(f"Room [{self.label}]: no recipients for broadcast (sender: {sender})")
        return result
