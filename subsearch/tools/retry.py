"""Retry/backoff policy applied to every upstream request."""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Callable


def uniform_jitter(ratio: float = 0.1) -> Callable[[float], float]:
    """Scale a delay by a random factor in ``[1 - ratio, 1 + ratio]``."""

    def apply(delay: float) -> float:
        return delay * random.uniform(1.0 - ratio, 1.0 + ratio)

    return apply


def no_jitter(delay: float) -> float:
    return delay


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    multiplier: float = 1.5
    max_delay: float = 30.0
    jitter: Callable[[float], float] = field(default_factory=uniform_jitter)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def next_delay(self, delay: float) -> float:
        """Un-jittered delay that follows ``delay`` in the backoff sequence."""
        return min(delay * self.multiplier, self.max_delay)

    def sleep_for(self, delay: float) -> float:
        """Jittered sleep duration for ``delay``, never above the cap."""
        return max(0.0, min(self.jitter(delay), self.max_delay))

    def delays(self) -> list[float]:
        """The un-jittered schedule between attempts, for logging and tests."""
        schedule: list[float] = []
        delay = self.base_delay
        for _ in range(self.max_retries):
            schedule.append(delay)
            delay = self.next_delay(delay)
        return schedule
