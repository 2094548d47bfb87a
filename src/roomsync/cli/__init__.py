"""
roomsync CLI - Command line tools for running the room broker.
"""

from __future__ import annotations

from .main import main, app

__all__ = ["main", "app"]
