"""
Pure schedule evaluation for the monthly billing cycle.

Contract:
    ``compute_next_run(now, zone, run_hour)`` is PURE -- no I/O, no clock
    reads.  It returns the first day of the month following ``now`` (as
    seen in ``zone``) at ``run_hour:00`` local time.

    A fixed period is not used: the time between two consecutive
    first-of-month instants varies with month length and DST.

Guarantees:
    - Result is timezone-aware in ``zone``.
    - Result is strictly after ``now``.
    - Result is on day 1, at ``run_hour:00:00.000000`` local time.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Europe/Berlin"
DEFAULT_RUN_HOUR = 1


def next_month(year: int, month: int) -> tuple[int, int]:
    """Return (year, month) of the month after the given one."""
    if month == 12:
        return year + 1, 1
    return year, month + 1


def compute_next_run(
    now: datetime,
    zone: ZoneInfo | str = DEFAULT_TIMEZONE,
    run_hour: int = DEFAULT_RUN_HOUR,
) -> datetime:
    """Compute the next billing run instant.

    Args:
        now: Reference instant.  Naive values are taken as UTC.
        zone: Reference time zone (or its IANA name).
        run_hour: Local hour of the run on the 1st.

    Raises:
        ValueError: If run_hour is outside 0-23.
    """
    if not 0 <= run_hour <= 23:
        raise ValueError(f"run_hour must be within 0-23, got {run_hour}")
    if isinstance(zone, str):
        zone = ZoneInfo(zone)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    local_now = now.astimezone(zone)
    year, month = next_month(local_now.year, local_now.month)
    return datetime(year, month, 1, run_hour, 0, 0, tzinfo=zone)


def seconds_until(target: datetime, now: datetime) -> float:
    """Non-negative seconds from ``now`` to ``target``."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return max((target - now) / timedelta(seconds=1), 0.0)
