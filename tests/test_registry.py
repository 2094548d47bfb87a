"""Tests for the room registry."""

from __future__ import annotations

import asyncio

import pytest

from conftest import make_connection
from roomsync.server import RoomBehavior, RoomRegistry, SessionTypeEntry


class TestGetOrCreateRoom:
    """Test room resolution."""

    def test_specialized_room(self, registry: RoomRegistry) -> None:
        """Test a registered type builds a specialized room."""
        room = registry.get_or_create_room("s1", "dotgame")

        assert room.type_id == "dotgame"
        assert "positions" in room.state

    def test_unknown_type_falls_back_to_generic(self, registry: RoomRegistry) -> None:
        """Test an unregistered type yields a generic room."""
        room = registry.get_or_create_room("s1", "chess")

        assert not room.is_specialized
        assert room.state == {}

    def test_existing_room_is_returned(self, registry: RoomRegistry) -> None:
        """Test the current room is returned unchanged."""
        room = registry.get_or_create_room("s1", "dotgame")

        assert registry.get_or_create_room("s1", "dotgame") is room
        assert registry.get_or_create_room("s1", "canvas") is room

    def test_existing_instance_is_installed(self, registry: RoomRegistry) -> None:
        """Test an explicit instance replaces the current one."""
        first = registry.get_or_create_room("s1")
        second = registry.get_or_create_room("s1", "canvas")
        assert second is first

        replacement = type(first)("s1")
        assert registry.get_or_create_room("s1", existing_instance=replacement) is replacement
        assert registry.get("s1") is replacement

    def test_factory_failure_falls_back_to_generic(self, registry: RoomRegistry) -> None:
        """Test a failing factory yields a generic room."""
        def broken(session_id, parent_context_id):
            raise RuntimeError("factory bug")

        registry.session_types.register(
            SessionTypeEntry(type_id="broken", display_name="Broken", description="x", factory=broken)
        )

        assert not registry.get_or_create_room("s1", "broken").is_specialized


class TestJoinLeave:
    """Test membership through the registry."""

    @pytest.mark.asyncio
    async def test_room_exists_while_occupied(self, registry: RoomRegistry) -> None:
        """Test the room is removed when its last participant leaves."""
        a, b = make_connection(), make_connection()
        await registry.join(a, "A", "s1", "dotgame")
        await registry.join(b, "B", "s1", "dotgame")

        assert await registry.leave(a) is False
        assert "s1" in registry
        assert await registry.leave(b) is True
        assert "s1" not in registry
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_rejoin_after_empty_gets_fresh_state(self, registry: RoomRegistry) -> None:
        """Test a room recreated after deletion starts with fresh state."""
        a = make_connection()
        room = await registry.join(a, "A", "s1", "canvas")
        room.state["circles"].append({"x": 1, "y": 1})
        await registry.leave(a)

        fresh = await registry.join(make_connection(), "B", "s1", "canvas")

        assert fresh is not room
        assert fresh.state["circles"] == []

    @pytest.mark.asyncio
    async def test_same_type_join_returns_existing_instance(self, registry: RoomRegistry) -> None:
        """Test joining with the room's current type reuses it."""
        first = await registry.join(make_connection(), "A", "s1", "dotgame")
        second = await registry.join(make_connection(), "B", "s1", "dotgame")

        assert second is first
        assert first.participant_count == 2

    @pytest.mark.asyncio
    async def test_generic_room_upgrades(self, registry: RoomRegistry) -> None:
        """Test the first specialized join upgrades a generic room, keeping participants."""
        a, b = make_connection(), make_connection()
        generic = await registry.join(a, "A", "s1")

        upgraded = await registry.join(b, "B", "s1", "dotgame")

        assert upgraded is not generic
        assert upgraded.type_id == "dotgame"
        assert registry.get("s1") is upgraded
        assert set(upgraded.user_ids) == {"A", "B"}
        assert a.websocket.of_type("user_joined")[-1]["participantCount"] == 2
        assert generic.closed

    @pytest.mark.asyncio
    async def test_one_room_per_connection(self, registry: RoomRegistry) -> None:
        """Test joining another session leaves the previous one first."""
        a = make_connection()
        await registry.join(a, "A", "s1", "dotgame")

        await registry.join(a, "A", "s2", "canvas")

        assert "s1" not in registry
        assert registry.room_for(a).session_id == "s2"

    @pytest.mark.asyncio
    async def test_repeated_join_is_noop(self, registry: RoomRegistry) -> None:
        """Test joining the current room again changes nothing."""
        a = make_connection()
        room = await registry.join(a, "A", "s1", "dotgame")

        assert await registry.join(a, "A", "s1", "dotgame") is room
        assert room.participant_count == 1
        assert len(a.websocket.of_type("state_sync")) == 1

    @pytest.mark.asyncio
    async def test_leave_without_room(self, registry: RoomRegistry) -> None:
        """Test leaving when not in a room is harmless."""
        assert await registry.leave(make_connection()) is False

    @pytest.mark.asyncio
    async def test_describe(self, registry: RoomRegistry) -> None:
        """Test the rooms listing."""
        await registry.join(make_connection(), "A", "s1", "dotgame")

        assert registry.describe()["s1"]["typeId"] == "dotgame"
        assert registry.describe()["s1"]["participantCount"] == 1

    @pytest.mark.asyncio
    async def test_independent_registries(self, session_types) -> None:
        """Test two registries in one process share nothing."""
        first, second = RoomRegistry(session_types), RoomRegistry(session_types)
        await first.join(make_connection(), "A", "s1", "dotgame")

        assert "s1" in first
        assert "s1" not in second

    @pytest.mark.asyncio
    async def test_join_during_last_leave_gets_fresh_room(self, registry: RoomRegistry) -> None:
        """Test a join that waited on a Room being emptied lands in a new Room."""
        leaving_started = asyncio.Event()
        release = asyncio.Event()

        @registry.session_types.register_behavior
        class Tally(RoomBehavior):
            type_id = "tally"
            display_name = "Tally"
            description = "Counts marks"

            def create_state(self):
                return {"marks": []}

            async def on_leave(self, room, connection, user_id):
                leaving_started.set()
                await release.wait()

        a, b = make_connection(), make_connection()
        old = await registry.join(a, "A", "s1", "tally")
        old.state["marks"].append("A")

        leaving = asyncio.create_task(registry.leave(a))
        await leaving_started.wait()
        joining = asyncio.create_task(registry.join(b, "B", "s1", "tally"))
        await asyncio.sleep(0)
        release.set()
        removed, room = await asyncio.gather(leaving, joining)

        assert removed is True
        assert old.closed
        assert room is not old
        assert registry.get("s1") is room
        assert room.state == {"marks": []}
        assert room.user_ids == ["B"]
        assert registry.room_for(b) is room
