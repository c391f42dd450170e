"""
billing_kernel.domain -- Pure value types for the billing engine.

ZERO I/O (except SystemClock).
"""

from billing_kernel.domain.clock import (
    Clock,
    DeterministicClock,
    SequentialClock,
    SystemClock,
)
from billing_kernel.domain.invoice import (
    BILLABLE_STATUSES,
    TERMINAL_STATUSES,
    Customer,
    Invoice,
    InvoiceStatus,
)
from billing_kernel.domain.values import Currency, Money

__all__ = [
    "BILLABLE_STATUSES",
    "TERMINAL_STATUSES",
    "Clock",
    "Currency",
    "Customer",
    "DeterministicClock",
    "Invoice",
    "InvoiceStatus",
    "Money",
    "SequentialClock",
    "SystemClock",
]
