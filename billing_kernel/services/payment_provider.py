"""
PaymentProvider -- the external charging capability.

Contract:
    ``charge(invoice)`` asks the provider to collect ``invoice.amount`` from
    the invoice's customer.

    Returns:
        True  -- the customer was charged.
        False -- the charge was declined (e.g. insufficient balance).

    Raises:
        NetworkError: transient connectivity problem; safe to retry.
        CurrencyMismatchError: invoice currency differs from the customer's.
        CustomerNotFoundError: the invoice's customer does not exist.

    Implementations may be synchronous (called from a worker thread) or
    asynchronous (``async def charge``, or any ``charge`` returning an
    awaitable, which is awaited on the event loop).  Any result other than
    a real ``bool`` is a provider bug.

Non-goals:
    No implementation lives in this repository; providers are wired in by
    the process that runs the billing engine.
"""

from __future__ import annotations

from typing import Awaitable, Protocol, runtime_checkable

from billing_kernel.domain.invoice import Invoice


@runtime_checkable
class PaymentProvider(Protocol):
    """Synchronous payment provider."""

    def charge(self, invoice: Invoice) -> bool: ...


@runtime_checkable
class AsyncPaymentProvider(Protocol):
    """Asynchronous payment provider."""

    def charge(self, invoice: Invoice) -> Awaitable[bool]: ...
