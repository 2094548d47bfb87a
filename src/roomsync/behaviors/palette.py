"""Shared helpers for the built-in session types."""

from __future__ import annotations

import random
import time

COLORS = ("#FF5733", "#33FF57", "#3357FF", "#FF33F5", "#F5FF33", "#33FFF5")


def random_color(rng: random.Random | None = None) -> str:
    return (rng or random).choice(COLORS)


def now_ms() -> int:
    """Unix time in milliseconds."""
    return int(time.time() * 1000)


def is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
