"""
Billing settings schema (``billing_config.schema``).

Responsibility
--------------
Defines ``BillingSettings``, the frozen, self-validating settings object
consumed by the throttle, charge pipeline, batch processor and scheduler.

Invariants enforced
-------------------
* Every field is range-checked on construction; violations raise
  ``InvalidBillingConfigError`` naming the offending field.
* ``timezone`` must resolve through ``zoneinfo``.

Units
-----
Throttle delays are expressed in abstract *time units*.
``time_unit_seconds`` converts them to seconds; the default of 0.001 makes
one unit a millisecond, so the maximum per-request pacing delay is 35 ms.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from billing_kernel.exceptions import InvalidBillingConfigError


@dataclass(frozen=True)
class BillingSettings:
    """Runtime settings of the billing engine."""

    # Immediate retries per invoice after a network failure
    max_retries: int = 3
    # Time units of delay per throttle level
    throttle_multiplier: int = 7
    # Upper bound of the throttle level
    max_throttle: int = 5
    # Seconds per time unit
    time_unit_seconds: float = 0.001
    # Reference zone for the monthly run
    timezone: str = "Europe/Berlin"
    # Local hour of the monthly run on the 1st
    run_hour: int = 1
    # Bound on concurrently in-flight charges; None = unbounded
    max_in_flight: int | None = 100
    # Per provider call; None = no timeout
    charge_timeout_seconds: float | None = None
    # Invoice store; None when the store is wired in by the caller
    database_url: str | None = None

    def __post_init__(self) -> None:
        _require_int(self, "max_retries", minimum=0)
        _require_int(self, "throttle_multiplier", minimum=0)
        _require_int(self, "max_throttle", minimum=0)
        _require_number(self, "time_unit_seconds", minimum=0)
        _require_int(self, "run_hour", minimum=0, maximum=23)

        if self.max_in_flight is not None:
            _require_int(self, "max_in_flight", minimum=1)
        if self.charge_timeout_seconds is not None:
            _require_number(self, "charge_timeout_seconds", minimum=0, exclusive=True)

        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError, TypeError) as e:
            raise InvalidBillingConfigError(
                "timezone", self.timezone, "unknown time zone",
            ) from e

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def max_delay_units(self) -> int:
        """Largest delay the throttle can produce, in time units."""
        return self.max_throttle * self.throttle_multiplier

    @classmethod
    def field_names(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls))


def _require_int(
    settings: BillingSettings,
    name: str,
    minimum: int | None = None,
    maximum: int | None = None,
) -> None:
    value = getattr(settings, name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidBillingConfigError(name, value, "must be an integer")
    if minimum is not None and value < minimum:
        raise InvalidBillingConfigError(name, value, f"must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise InvalidBillingConfigError(name, value, f"must be <= {maximum}")


def _require_number(
    settings: BillingSettings,
    name: str,
    minimum: float,
    exclusive: bool = False,
) -> None:
    value = getattr(settings, name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidBillingConfigError(name, value, "must be a number")
    if exclusive and value <= minimum:
        raise InvalidBillingConfigError(name, value, f"must be > {minimum}")
    if value < minimum:
        raise InvalidBillingConfigError(name, value, f"must be >= {minimum}")
