"""
InvoiceService -- the invoice store consumed by the billing engine.

Responsibility:
    ``InvoiceService`` is the Protocol the batch processor depends on:
    list billable invoices and persist a status change.
    ``SqlInvoiceService`` is the SQLAlchemy implementation.

Architecture position:
    Kernel > Services -- imperative shell around the ORM models.

Contract:
    - ``fetch_pending()`` returns PENDING invoices only.
    - ``fetch_retry()`` returns TO_RETRY invoices only.
    - Terminal invoices are never returned by either fetch, so the processor
      never re-charges a PAID or permanently failed invoice.
    - ``update_status()`` writes ``invoice.status`` and returns the number
      of rows updated (0 when the invoice no longer exists).

Concurrency:
    Every call opens and closes its own session through the injected
    session factory.  Calls are therefore safe from worker threads, which
    is how the batch processor drives a synchronous store.

Failure modes:
    - InvoiceNotFoundError from ``fetch()``.
    - SQLAlchemy errors propagate (store unavailable aborts the batch run).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Callable, Protocol, Sequence, runtime_checkable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from billing_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.invoice import Customer, Invoice, InvoiceStatus
from billing_kernel.domain.values import Currency, Money
from billing_kernel.exceptions import CustomerNotFoundError, InvoiceNotFoundError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.invoice import CustomerModel, InvoiceModel

logger = get_logger("services.invoice_service")


@runtime_checkable
class InvoiceService(Protocol):
    """Invoice store interface consumed by the batch processor."""

    def fetch_pending(self) -> Sequence[Invoice]: ...

    def fetch_retry(self) -> Sequence[Invoice]: ...

    def update_status(self, invoice: Invoice) -> int: ...


class SqlInvoiceService:
    """SQLAlchemy-backed invoice store.

    Non-goals:
        - Does NOT charge anything or decide statuses.
        - Does NOT guard against the charge/persist gap (see processor).
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    @classmethod
    def from_url(
        cls,
        database_url: str,
        clock: Clock | None = None,
        create_schema: bool = False,
    ) -> SqlInvoiceService:
        """Initialize the module engine for ``database_url`` and bind a store to it."""
        engine = init_engine_from_url(database_url)
        if create_schema:
            create_tables(engine)
        return cls(get_session_factory(), clock=clock)

    # -------------------------------------------------------------------------
    # Fetch
    # -------------------------------------------------------------------------

    def fetch(self, invoice_id: int) -> Invoice:
        """
        Raises:
            InvoiceNotFoundError: If no invoice has this id.
        """
        with self._session_factory() as session:
            model = session.get(InvoiceModel, invoice_id)
            if model is None:
                raise InvoiceNotFoundError(invoice_id)
            return model.to_dto()

    def fetch_all(self) -> list[Invoice]:
        return self._fetch_where(None)

    def fetch_pending(self) -> list[Invoice]:
        return self._fetch_where(InvoiceStatus.PENDING)

    def fetch_retry(self) -> list[Invoice]:
        return self._fetch_where(InvoiceStatus.TO_RETRY)

    def fetch_customer(self, customer_id: int) -> Customer:
        """
        Raises:
            CustomerNotFoundError: If no customer has this id.
        """
        with self._session_factory() as session:
            model = session.get(CustomerModel, customer_id)
            if model is None:
                raise CustomerNotFoundError(customer_id)
            return model.to_dto()

    # -------------------------------------------------------------------------
    # Write
    # -------------------------------------------------------------------------

    def create_customer(self, currency: Currency | str) -> Customer:
        code = currency.code if isinstance(currency, Currency) else Currency(currency).code
        with self._session_factory() as session:
            model = CustomerModel(currency=code)
            session.add(model)
            session.commit()
            return model.to_dto()

    def create_invoice(
        self,
        customer_id: int,
        amount: Money,
        status: InvoiceStatus = InvoiceStatus.PENDING,
    ) -> Invoice:
        with self._session_factory() as session:
            model = InvoiceModel(
                customer_id=customer_id,
                value=Decimal(amount.amount),
                currency=amount.currency.code,
                status=status.value,
            )
            session.add(model)
            session.commit()
            return model.to_dto()

    def update_status(self, invoice: Invoice) -> int:
        """Persist ``invoice.status``.  Returns the number of rows updated."""
        with self._session_factory() as session:
            result = session.execute(
                update(InvoiceModel)
                .where(InvoiceModel.id == invoice.id)
                .values(status=invoice.status.value, updated_at=self._clock.now())
            )
            session.commit()
            rows = result.rowcount or 0

        if rows == 0:
            logger.warning(
                "invoice_status_update_missed",
                extra={"invoice_id": invoice.id, "status": invoice.status.value},
            )
        return rows

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _fetch_where(self, status: InvoiceStatus | None) -> list[Invoice]:
        stmt = select(InvoiceModel).order_by(InvoiceModel.id)
        if status is not None:
            stmt = stmt.where(InvoiceModel.status == status.value)
        with self._session_factory() as session:
            return [m.to_dto() for m in session.execute(stmt).scalars().all()]
