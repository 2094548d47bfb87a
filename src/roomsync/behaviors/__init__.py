"""
Built-in session types.

Provides:
- DotGameBehavior: per-user dot positions ("dotgame")
- CanvasBehavior: shared circle canvas ("canvas")
- RelayBehavior: event relay ("relay")

Usage:
    from roomsync.behaviors import register_builtin_types

    registry = SessionTypeRegistry()
    register_builtin_types(registry)
"""

from __future__ import annotations

from ..server.session_types import SessionTypeRegistry
from .canvas import CanvasBehavior
from .dotgame import DotGameBehavior
from .relay import RelayBehavior

BUILTIN_BEHAVIORS = (DotGameBehavior, CanvasBehavior, RelayBehavior)


def register_builtin_types(registry: SessionTypeRegistry) -> SessionTypeRegistry:
    """Register every built-in session type on registry."""
    for behavior_cls in BUILTIN_BEHAVIORS:
        registry.register_behavior(behavior_cls)
    return registry


__all__ = [
    "BUILTIN_BEHAVIORS",
    "CanvasBehavior",
    "DotGameBehavior",
    "RelayBehavior",
    "register_builtin_types",
]
