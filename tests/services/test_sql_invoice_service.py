"""
Tests for SqlInvoiceService against in-memory SQLite.

Verifies:
- fetch_pending / fetch_retry never return terminal invoices
- update_status persists the pipeline's decision
- Customer and invoice lookups raise typed not-found errors
- A full billing run against the SQL store
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from billing_batch.services.processor import BillingProcessor
from billing_config.schema import BillingSettings
from billing_kernel.db.engine import get_engine, reset_engine, session_scope
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.domain.invoice import InvoiceStatus
from billing_kernel.domain.values import Money
from billing_kernel.exceptions import (
    CustomerNotFoundError,
    InvalidBillingConfigError,
    InvoiceNotFoundError,
)
from billing_kernel.models.invoice import InvoiceModel
from billing_kernel.services.invoice_service import InvoiceService, SqlInvoiceService


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2024, 3, 1, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(session_factory, clock):
    return SqlInvoiceService(session_factory, clock=clock)


@pytest.fixture
def seeded(store):
    """One invoice per status for a single EUR customer."""
    customer = store.create_customer("EUR")
    return {
        status: store.create_invoice(customer.id, Money.of("10.00", "EUR"), status)
        for status in InvoiceStatus
    }


# =============================================================================
# Fetch contract
# =============================================================================


class TestFetchContract:
    def test_satisfies_protocol(self, store):
        assert isinstance(store, InvoiceService)

    def test_fetch_pending_only_pending(self, store, seeded):
        pending = store.fetch_pending()
        assert [i.id for i in pending] == [seeded[InvoiceStatus.PENDING].id]

    def test_fetch_retry_only_retry(self, store, seeded):
        retry = store.fetch_retry()
        assert [i.id for i in retry] == [seeded[InvoiceStatus.TO_RETRY].id]

    def test_terminal_never_fetched(self, store, seeded):
        fetched = store.fetch_pending() + store.fetch_retry()
        assert not any(i.status.is_terminal for i in fetched)

    def test_fetch_all(self, store, seeded):
        assert len(store.fetch_all()) == len(seeded)

    def test_fetch_round_trips_money(self, store):
        customer = store.create_customer("DKK")
        created = store.create_invoice(customer.id, Money.of("199.95", "DKK"))

        loaded = store.fetch(created.id)

        assert loaded.amount.amount == Decimal("199.95")
        assert loaded.currency.code == "DKK"
        assert loaded.status == InvoiceStatus.PENDING

    def test_fetch_missing_invoice(self, store):
        with pytest.raises(InvoiceNotFoundError) as exc_info:
            store.fetch(999)
        assert exc_info.value.invoice_id == 999


class TestCustomers:
    def test_create_and_fetch(self, store):
        customer = store.create_customer("sek")
        assert store.fetch_customer(customer.id).currency.code == "SEK"

    def test_fetch_missing_customer(self, store):
        with pytest.raises(CustomerNotFoundError):
            store.fetch_customer(404)

    def test_invalid_currency_rejected(self, store):
        with pytest.raises(ValueError):
            store.create_customer("XXX")


# =============================================================================
# Status writes
# =============================================================================


class TestUpdateStatus:
    def test_persists_status(self, store, seeded):
        invoice = seeded[InvoiceStatus.PENDING]
        invoice.status = InvoiceStatus.PAID

        assert store.update_status(invoice) == 1
        assert store.fetch(invoice.id).status == InvoiceStatus.PAID
        assert store.fetch_pending() == []

    def test_updated_at_from_clock(self, store, seeded, session_factory, clock):
        invoice = seeded[InvoiceStatus.PENDING]
        invoice.status = InvoiceStatus.FAILED_NO_BALANCE
        store.update_status(invoice)

        with session_scope(session_factory) as session:
            model = session.get(InvoiceModel, invoice.id)
            assert model.updated_at.replace(tzinfo=timezone.utc) == clock.now()

    def test_missing_row_returns_zero(self, store, seeded):
        ghost = seeded[InvoiceStatus.PENDING]
        ghost.id = 12345
        assert store.update_status(ghost) == 0


# =============================================================================
# Billing run against the SQL store
# =============================================================================


class TestBillingRun:
    def test_pending_cycle_persists_outcomes(
        self, store, clock, scripted_provider_cls, recording_sleep,
    ):
        customer = store.create_customer("EUR")
        ids = [
            store.create_invoice(customer.id, Money.of(str(n), "EUR")).id
            for n in range(1, 5)
        ]
        paid_done = store.create_invoice(
            customer.id, Money.of("1", "EUR"), InvoiceStatus.PAID,
        )
        provider = scripted_provider_cls([True, False, True, True])
        processor = BillingProcessor(
            store,
            provider,
            settings=BillingSettings(max_in_flight=1),
            clock=clock,
            sleep=recording_sleep,
        )

        result = asyncio.run(processor.run_pending_cycle())

        assert result.total == 4
        assert sorted(provider.calls) == ids
        assert paid_done.id not in provider.calls
        assert [store.fetch(i).status for i in ids] == [
            InvoiceStatus.PAID,
            InvoiceStatus.FAILED_NO_BALANCE,
            InvoiceStatus.PAID,
            InvoiceStatus.PAID,
        ]
        assert store.fetch_pending() == []


class TestWiring:
    def test_from_url_creates_schema(self):
        try:
            store = SqlInvoiceService.from_url("sqlite://", create_schema=True)
            customer = store.create_customer("USD")
            store.create_invoice(customer.id, Money.of("5", "USD"))
            assert get_engine().dialect.name == "sqlite"
            assert len(store.fetch_pending()) == 1
        finally:
            reset_engine()

    def test_processor_requires_database_url(self, scripted_provider_cls):
        with pytest.raises(InvalidBillingConfigError) as exc_info:
            BillingProcessor.from_settings(scripted_provider_cls(), BillingSettings())
        assert exc_info.value.field == "database_url"

    def test_processor_from_settings(self, scripted_provider_cls):
        try:
            settings = BillingSettings(database_url="sqlite://")
            processor = BillingProcessor.from_settings(scripted_provider_cls(), settings)
            assert processor.failure_counter.value == 0
        finally:
            reset_engine()
