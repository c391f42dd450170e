"""
Invoice -- billable record and its status lifecycle.

Lifecycle:
    The store creates invoices as PENDING.  The charge pipeline mutates
    ``Invoice.status`` in place; the batch processor writes it back through
    the store.  An invoice left in TO_RETRY may re-enter the pipeline in a
    later retry run; terminal statuses never do.

Invariants:
    - PENDING is an input state only; the pipeline never outputs it.
    - Only PENDING and TO_RETRY invoices are billable (fetched for charging).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from billing_kernel.domain.values import Currency, Money


class InvoiceStatus(str, Enum):
    """Invoice status.  Values are the persisted representation."""

    PENDING = "PENDING"  # Awaiting first charge attempt
    PAID = "PAID"  # Provider confirmed the charge
    FAILED_NO_BALANCE = "FAILED_NO_BALANCE"  # Provider declined
    FAILED_CURRENCY = "FAILED_CURRENCY"  # Invoice/customer currency differ
    FAILED_NO_CUSTOMER = "FAILED_NO_CUSTOMER"  # Customer record missing
    TO_RETRY = "RETRY"  # Network retries exhausted, eligible for a retry run

    RETRY = "RETRY"  # alias of TO_RETRY

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_billable(self) -> bool:
        """True for statuses the store hands out for charging."""
        return self in BILLABLE_STATUSES


TERMINAL_STATUSES: frozenset[InvoiceStatus] = frozenset({
    InvoiceStatus.PAID,
    InvoiceStatus.FAILED_NO_BALANCE,
    InvoiceStatus.FAILED_CURRENCY,
    InvoiceStatus.FAILED_NO_CUSTOMER,
})

BILLABLE_STATUSES: frozenset[InvoiceStatus] = frozenset({
    InvoiceStatus.PENDING,
    InvoiceStatus.TO_RETRY,
})


@dataclass(frozen=True)
class Customer:
    """A customer and the currency they are billed in."""

    id: int
    currency: Currency


@dataclass
class Invoice:
    """A billable invoice.  ``status`` is the only mutable field in practice."""

    id: int
    customer_id: int
    amount: Money
    status: InvoiceStatus = InvoiceStatus.PENDING

    @property
    def currency(self) -> Currency:
        return self.amount.currency
