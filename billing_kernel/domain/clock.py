"""
Clock -- injectable time source for the billing engine.

The scheduler computes every next billing instant from ``Clock.now()`` and
the invoice store stamps status writes with it.  Nothing in the engine
calls ``datetime.now()`` directly, so tests can place "now" anywhere
around a month boundary.

All clocks return timezone-aware datetimes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable


class Clock(ABC):
    """Source of the current instant."""

    @abstractmethod
    def now(self) -> datetime:
        """Current instant, timezone-aware."""

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)

    def now_in(self, zone: tzinfo) -> datetime:
        """Current instant as wall-clock time in ``zone``."""
        return self.now().astimezone(zone)


class SystemClock(Clock):
    """Wall clock, in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Frozen clock moved only by the test.

    ``now()`` keeps returning the same instant until ``advance()``,
    ``tick()`` or ``set_time()`` is called.
    """

    DEFAULT_START = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __init__(self, start: datetime | None = None):
        self._current = start or self.DEFAULT_START

    def now(self) -> datetime:
        return self._current

    def set_time(self, when: datetime) -> None:
        self._current = when

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Move one second forward and return the new instant."""
        self.advance(1)
        return self._current


class SequentialClock(Clock):
    """Replays a fixed series of instants, one per ``now()`` call.

    Once the series is used up the last instant is returned forever.

    Raises:
        ValueError: If the series is empty.
    """

    def __init__(self, instants: Iterable[datetime]):
        self._pending = list(instants)
        if not self._pending:
            raise ValueError("SequentialClock requires at least one time")
        self._pending.reverse()
        self._last = self._pending[-1]

    def now(self) -> datetime:
        if self._pending:
            self._last = self._pending.pop()
        return self._last
