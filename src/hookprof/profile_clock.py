from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
import time

from hookprof.invariants import never

NS_PER_SECOND = 1_000_000_000


class ProfileClock(Protocol):
    def get_mark(self) -> int:
        """Return the current monotonic mark in nanoseconds."""


@dataclass(frozen=True)
class MonotonicClock:
    """Default wall-clock implementation used when no clock is injected."""

    def get_mark(self) -> int:
        return time.perf_counter_ns()


@dataclass
class ManualClock:
    """Deterministic clock that only moves when advanced."""

    current: int = 0
    step: int = 0

    def __post_init__(self) -> None:
        self.current = int(self.current)
        self.step = int(self.step)
        if self.current < 0:
            never("invalid manual clock current", current=self.current)
        if self.step < 0:
            never("invalid manual clock step", step=self.step)

    def advance(self, ticks: int) -> None:
        ticks_value = int(ticks)
        if ticks_value < 0:
            never("manual clock cannot run backwards", ticks=ticks)
        self.current += ticks_value

    def get_mark(self) -> int:
        mark = self.current
        # step > 0 makes every read observe a later instant
        self.current += self.step
        return mark


def ns_to_seconds(value: int) -> float:
    return value / NS_PER_SECOND
