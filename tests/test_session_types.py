"""Tests for the session type registry."""

from __future__ import annotations

import pytest

from roomsync.behaviors import DotGameBehavior
from roomsync.core import SessionTypeError
from roomsync.server import RoomBehavior, SessionTypeEntry, SessionTypeRegistry


def make_entry(type_id: str = "scores", **kwargs) -> SessionTypeEntry:
    values = {
        "type_id": type_id,
        "display_name": "Score Board",
        "description": "Shared score counter",
        "factory": RoomBehavior,
    }
    values.update(kwargs)
    return SessionTypeEntry(**values)


class TestSessionTypeRegistry:
    """Test registration and factory resolution."""

    def test_register(self) -> None:
        """Test a complete entry is registered."""
        registry = SessionTypeRegistry()

        assert registry.register(make_entry())
        assert "scores" in registry
        assert len(registry) == 1

    def test_duplicate_keeps_first(self) -> None:
        """Test a second registration of a type id is ignored."""
        registry = SessionTypeRegistry()
        registry.register(make_entry(display_name="First"))

        assert not registry.register(make_entry(display_name="Second"))
        assert registry.get("scores").display_name == "First"

    @pytest.mark.parametrize("field", ["type_id", "display_name", "description"])
    def test_missing_metadata(self, field: str) -> None:
        """Test required metadata is enforced."""
        with pytest.raises(SessionTypeError) as exc_info:
            SessionTypeRegistry().register(make_entry(**{field: ""}))

        assert exc_info.value.missing == [field]

    def test_register_behavior_decorator(self) -> None:
        """Test behavior classes register from their class attributes."""
        registry = SessionTypeRegistry()

        @registry.register_behavior
        class Scores(RoomBehavior):
            type_id = "scores"
            display_name = "Scores"
            description = "Scores"
            max_participants = 4

        assert registry.get("scores").max_participants == 4
        assert isinstance(registry.create("scores", "s1"), Scores)

    def test_list_types(self) -> None:
        """Test the listing exposes camelCase metadata."""
        registry = SessionTypeRegistry()
        registry.register_behavior(DotGameBehavior)

        assert registry.list_types() == [{
            "typeId": "dotgame",
            "displayName": "Dot Game",
            "description": "Simple multiplayer dot visualization",
            "minParticipants": 1,
            "maxParticipants": 10,
            "thumbnail": "/thumbnails/dotgame.png",
        }]

    def test_create_passes_session_and_context(self) -> None:
        """Test the factory receives the session id and parent context id."""
        registry = SessionTypeRegistry()
        registry.register_behavior(DotGameBehavior)

        behavior = registry.create("dotgame", "s1", "guild-7")

        assert behavior.session_id == "s1"
        assert behavior.parent_context_id == "guild-7"

    def test_create_unknown_type(self) -> None:
        """Test an unknown type yields None."""
        assert SessionTypeRegistry().create("nope", "s1") is None

    def test_create_factory_failure(self) -> None:
        """Test a raising factory yields None."""
        def broken(session_id, parent_context_id):
            raise RuntimeError("factory bug")

        registry = SessionTypeRegistry()
        registry.register(make_entry(factory=broken))

        assert registry.create("scores", "s1") is None
