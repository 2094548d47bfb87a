"""Exponential reconnect backoff with jitter."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..config import ReconnectSettings


@dataclass
class ReconnectPolicy:
    """
    Delay schedule for reconnection attempts.

    delay(n) = base_delay * growth_factor ** n * (0.9 + random() * 0.2)

    ``n`` is the number of attempts already made since the last successful
    open, so the first retry waits roughly ``base_delay``.
    """
    base_delay: float = 1.0
    growth_factor: float = 1.5
    max_attempts: int = 10
    jitter: float = 0.1
    rng: Callable[[], float] = field(default=random.random, repr=False)

    @classmethod
    def from_settings(cls, settings: ReconnectSettings) -> ReconnectPolicy:
        return cls(
            base_delay=settings.base_delay,
            growth_factor=settings.growth_factor,
            max_attempts=settings.max_attempts,
        )

    def nominal_delay(self, attempt: int) -> float:
        """Delay for ``attempt`` without jitter."""
        return self.base_delay * self.growth_factor ** attempt

    def delay(self, attempt: int) -> float:
        """Jittered delay in seconds for ``attempt`` (0-based)."""
        spread = (1.0 - self.jitter) + self.rng() * (2 * self.jitter)
        return self.nominal_delay(attempt) * spread

    def exhausted(self, attempt: int) -> bool:
        return attempt >= self.max_attempts


class Backoff:
    """Attempt counter bound to a policy."""

    def __init__(self, policy: Optional[ReconnectPolicy] = None):
        self.policy = policy or ReconnectPolicy()
        self.attempts = 0

    @property
    def exhausted(self) -> bool:
        return self.policy.exhausted(self.attempts)

    def next_delay(self) -> float:
        """Delay for the next attempt; increments the counter."""
        delay = self.policy.delay(self.attempts)
        self.attempts += 1
        return delay

    def reset(self) -> None:
        self.attempts = 0
