"""Client connection lifecycle states.

    DISCONNECTED --connect--> CONNECTING --open--> CONNECTED
    CONNECTED --close--> DISCONNECTED (reconnect scheduled unless the close was normal)
    CONNECTING --error--> DISCONNECTED (reconnect scheduled) | FAILED (attempts exhausted)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Connection lifecycle states."""
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"


_VALID_TRANSITIONS: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING, ConnectionState.FAILED},
    ConnectionState.CONNECTING: {
        ConnectionState.CONNECTED,
        ConnectionState.DISCONNECTED,
        ConnectionState.FAILED,
    },
    ConnectionState.CONNECTED: {ConnectionState.DISCONNECTED},
    # Only an explicit reset leaves FAILED
    ConnectionState.FAILED: {ConnectionState.CONNECTING, ConnectionState.DISCONNECTED},
}

StateListener = Callable[[ConnectionState], None]


@dataclass
class StateTransition:
    """Record of a state transition."""
    from_state: ConnectionState
    to_state: ConnectionState
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    reason: Optional[str] = None


class ConnectionStateMachine:
    """
    Tracks the current state, validates transitions and notifies listeners.

    A listener that raises is logged and skipped; the remaining listeners
    still run.
    """

    def __init__(self, initial_state: ConnectionState = ConnectionState.DISCONNECTED):
        self._state = initial_state
        self._history: list[StateTransition] = []
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def history(self) -> list[StateTransition]:
        return self._history.copy()

    def add_listener(self, listener: StateListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def can_transition_to(self, new_state: ConnectionState) -> bool:
        return new_state in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, new_state: ConnectionState, reason: Optional[str] = None) -> bool:
        """
        Move to a new state and notify listeners.

        Returns:
            True if the transition happened, False if it was invalid or a no-op
        """
        if new_state == self._state:
            return False

        if not self.can_transition_to(new_state):
            logger.warning(f"Invalid state transition: {self._state.value} -> {new_state.value}")
            return False

        old_state = self._state
        self._state = new_state
        self._history.append(StateTransition(old_state, new_state, reason=reason))
        logger.debug(
            f"State transition: {old_state.value} -> {new_state.value}"
            + (f" ({reason})" if reason else "")
        )

        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception as e:
                logger.error(f"Error in connection state listener: {e}", exc_info=True)
        return True
