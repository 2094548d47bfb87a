"""Tests for the connection state machine."""

from __future__ import annotations

from roomsync.client import ConnectionState, ConnectionStateMachine


class TestConnectionStateMachine:
    """Test transitions and listeners."""

    def test_initial_state(self) -> None:
        """Test a new machine starts disconnected."""
        assert ConnectionStateMachine().state == ConnectionState.DISCONNECTED

    def test_connect_cycle(self) -> None:
        """Test the happy path is recorded in history."""
        machine = ConnectionStateMachine()

        assert machine.transition_to(ConnectionState.CONNECTING)
        assert machine.transition_to(ConnectionState.CONNECTED)
        assert machine.transition_to(ConnectionState.DISCONNECTED, reason="closed (1006)")

        history = machine.history
        assert [t.to_state for t in history] == [
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
            ConnectionState.DISCONNECTED,
        ]
        assert history[-1].reason == "closed (1006)"

    def test_invalid_transition(self) -> None:
        """Test an invalid transition is refused."""
        machine = ConnectionStateMachine()

        assert not machine.transition_to(ConnectionState.CONNECTED)
        assert machine.state == ConnectionState.DISCONNECTED

    def test_same_state_is_noop(self) -> None:
        """Test re-entering the current state does nothing."""
        machine = ConnectionStateMachine()
        calls = []
        machine.add_listener(calls.append)

        assert not machine.transition_to(ConnectionState.DISCONNECTED)
        assert calls == []

    def test_failed_only_left_by_connecting(self) -> None:
        """Test FAILED can be left toward CONNECTING but not CONNECTED."""
        machine = ConnectionStateMachine(ConnectionState.FAILED)

        assert not machine.can_transition_to(ConnectionState.CONNECTED)
        assert machine.can_transition_to(ConnectionState.CONNECTING)

    def test_listener_errors_are_isolated(self) -> None:
        """Test a raising listener does not stop the others."""
        machine = ConnectionStateMachine()
        seen = []

        def broken(state: ConnectionState) -> None:
            raise RuntimeError("listener bug")

        machine.add_listener(broken)
        machine.add_listener(seen.append)

        assert machine.transition_to(ConnectionState.CONNECTING)
        assert seen == [ConnectionState.CONNECTING]

    def test_remove_listener(self) -> None:
        """Test removed listeners are no longer notified."""
        machine = ConnectionStateMachine()
        seen = []
        machine.add_listener(seen.append)
        machine.remove_listener(seen.append)

        machine.transition_to(ConnectionState.CONNECTING)

        assert seen == []
