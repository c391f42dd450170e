"""
Throttle controller and failure counter -- advisory shared counters.

Contract:
    ``ThrottleController`` holds a backoff level in ``[0, max_level]`` shared
    by every charge operation of a processor.  Network failures raise the
    level by one, successes lower it by one.  Callers pace requests by
    ``current_delay()`` = ``level * multiplier`` time units.

    ``FailureCounter`` counts invoices not left PAID, for reporting only.

Concurrency:
    Neither counter takes a lock.  Both are mutated from charge tasks on a
    single event loop, so updates do not interleave; if a caller mutates
    them from several threads a stale or off-by-one value is acceptable.
    The level is a congestion signal, not an accounting figure, and every
    update keeps it inside its bounds regardless of ordering.
"""

from __future__ import annotations

DEFAULT_THROTTLE_MULTIPLIER = 7
DEFAULT_MAX_THROTTLE = 5


class ThrottleController:
    """Additive-increase / additive-decrease backoff level."""

    def __init__(
        self,
        multiplier: int = DEFAULT_THROTTLE_MULTIPLIER,
        max_level: int = DEFAULT_MAX_THROTTLE,
    ):
        if multiplier < 0:
            raise ValueError(f"multiplier must be >= 0, got {multiplier}")
        if max_level < 0:
            raise ValueError(f"max_level must be >= 0, got {max_level}")
        self._multiplier = multiplier
        self._max_level = max_level
        self._level = 0

    @property
    def level(self) -> int:
        return self._level

    @property
    def multiplier(self) -> int:
        return self._multiplier

    @property
    def max_level(self) -> int:
        return self._max_level

    def current_delay(self) -> int:
        """Pacing delay in time units."""
        return self._level * self._multiplier

    def on_failure(self) -> int:
        """Raise the level by one, saturating at ``max_level``."""
        self._level = min(self._level + 1, self._max_level)
        return self._level

    def on_success(self) -> int:
        """Lower the level by one, floored at 0."""
        self._level = max(self._level - 1, 0)
        return self._level

    def reset(self) -> None:
        self._level = 0

    def __repr__(self) -> str:
        return (
            f"ThrottleController(level={self._level}, "
            f"max_level={self._max_level}, multiplier={self._multiplier})"
        )


class FailureCounter:
    """Running count of invoices that did not end PAID."""

    def __init__(self) -> None:
        self._value = 0

    @property
    def value(self) -> int:
        return self._value

    def increment(self) -> int:
        self._value += 1
        return self._value

    def reset(self) -> None:
        self._value = 0
