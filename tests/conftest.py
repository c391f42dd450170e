"""
Pytest fixtures for the billing engine test suite.

Provides:
- Invoice factories
- A recording async sleep (observes backoff without waiting)
- In-memory invoice store and scripted payment providers
- In-memory SQLite sessions for the SQL invoice store
- Logging reset between tests

Async code is driven with ``asyncio.run`` inside each test.
"""

import asyncio
from decimal import Decimal
from typing import Callable, Iterable

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from billing_kernel.db.base import Base
from billing_kernel.domain.invoice import Invoice, InvoiceStatus
from billing_kernel.domain.values import Money
from billing_kernel.exceptions import NetworkError
from billing_kernel.logging_config import LogContext, reset_logging

import billing_kernel.models  # noqa: F401  (registers ORM tables)


# =============================================================================
# Test doubles
# =============================================================================


class RecordingSleep:
    """Async sleep replacement: records requested delays, yields once."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)


class InMemoryInvoiceService:
    """Invoice store double honouring the fetch contract."""

    def __init__(self, invoices: Iterable[Invoice] = ()) -> None:
        self.invoices: list[Invoice] = list(invoices)
        self.updates: list[tuple[int, InvoiceStatus]] = []

    def fetch_pending(self) -> list[Invoice]:
        return [i for i in self.invoices if i.status == InvoiceStatus.PENDING]

    def fetch_retry(self) -> list[Invoice]:
        return [i for i in self.invoices if i.status == InvoiceStatus.TO_RETRY]

    def update_status(self, invoice: Invoice) -> int:
        self.updates.append((invoice.id, invoice.status))
        return 1


class ScriptedProvider:
    """Async provider that plays back one scripted step per call.

    A step is True/False (returned) or an exception instance/factory
    (raised).  After the script runs out, ``default`` is used.
    """

    def __init__(self, script: Iterable = (), default=True) -> None:
        self._script = list(script)
        self._default = default
        self.calls: list[int] = []

    async def charge(self, invoice: Invoice) -> bool:
        self.calls.append(invoice.id)
        step = self._script.pop(0) if self._script else self._default
        if callable(step) and not isinstance(step, bool):
            step = step(invoice)
        if isinstance(step, BaseException):
            raise step
        return step


class SyncProvider:
    """Synchronous provider deciding by invoice id."""

    def __init__(self, decide: Callable[[Invoice], bool]) -> None:
        self._decide = decide
        self.calls: list[int] = []

    def charge(self, invoice: Invoice) -> bool:
        self.calls.append(invoice.id)
        return self._decide(invoice)


def network_error(_invoice: Invoice) -> NetworkError:
    return NetworkError()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def make_invoice() -> Callable[..., Invoice]:
    def _make(
        invoice_id: int,
        customer_id: int | None = None,
        amount: str = "1",
        currency: str = "EUR",
        status: InvoiceStatus = InvoiceStatus.PENDING,
    ) -> Invoice:
        return Invoice(
            id=invoice_id,
            customer_id=invoice_id if customer_id is None else customer_id,
            amount=Money(Decimal(amount), currency),
            status=status,
        )

    return _make


@pytest.fixture
def make_pending(make_invoice) -> Callable[[int], list[Invoice]]:
    def _make(count: int) -> list[Invoice]:
        return [make_invoice(i) for i in range(1, count + 1)]

    return _make


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def invoice_store_cls():
    return InMemoryInvoiceService


@pytest.fixture
def scripted_provider_cls():
    return ScriptedProvider


@pytest.fixture
def sync_provider_cls():
    return SyncProvider


@pytest.fixture
def network_failure():
    return network_error


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)
