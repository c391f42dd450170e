"""
billing_batch.domain.types -- Pure frozen dataclasses for billing runs.

Follows the batch DTO pattern: frozen dataclasses with enum status fields
and tuples for immutable collections.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from billing_kernel.domain.invoice import InvoiceStatus


class SchedulerState(str, Enum):
    """Lifecycle of the billing cycle scheduler."""

    IDLE = "idle"  # Created, nothing armed
    ARMED = "armed"  # One-shot timer set for next_run_at
    FIRING = "firing"  # Cycle in progress
    STOPPED = "stopped"  # Timer cancelled, will not re-arm


class RunKind(str, Enum):
    """Which store query fed a billing run."""

    PENDING = "pending"  # Monthly cycle over PENDING invoices
    RETRY = "retry"  # Separately triggered run over TO_RETRY invoices
    ADHOC = "adhoc"  # Caller-supplied invoice list


@dataclass(frozen=True)
class ChargeOutcome:
    """Result of running one invoice through the charge pipeline.

    ``attempts`` counts provider calls; ``retries_used`` = attempts - 1.
    """

    invoice_id: int
    status: InvoiceStatus
    attempts: int
    retries_used: int
    error_code: str | None = None

    @property
    def paid(self) -> bool:
        return self.status == InvoiceStatus.PAID


@dataclass(frozen=True)
class BillingRunResult:
    """Immutable summary of one batch run.

    ``failed`` is the number of invoices not left PAID in this run.
    """

    run_id: str
    kind: RunKind
    total: int
    paid: int
    failed: int
    outcomes: tuple[ChargeOutcome, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0
    status_counts: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_outcomes(
        cls,
        run_id: str,
        kind: RunKind,
        outcomes: tuple[ChargeOutcome, ...],
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
        duration_ms: int = 0,
    ) -> BillingRunResult:
        counts = Counter(o.status.value for o in outcomes)
        paid = counts.get(InvoiceStatus.PAID.value, 0)
        return cls(
            run_id=run_id,
            kind=kind,
            total=len(outcomes),
            paid=paid,
            failed=len(outcomes) - paid,
            outcomes=outcomes,
            started_at=started_at,
            completed_at=completed_at,
            duration_ms=duration_ms,
            status_counts=dict(counts),
        )
