"""
billing_batch.domain -- Pure types and counters for billing runs.

ZERO I/O.
"""

from billing_batch.domain.schedule import compute_next_run, seconds_until
from billing_batch.domain.throttle import FailureCounter, ThrottleController
from billing_batch.domain.types import (
    BillingRunResult,
    ChargeOutcome,
    RunKind,
    SchedulerState,
)

__all__ = [
    "BillingRunResult",
    "ChargeOutcome",
    "FailureCounter",
    "RunKind",
    "SchedulerState",
    "ThrottleController",
    "compute_next_run",
    "seconds_until",
]
