"""
ORM models for customers and invoices.

Contract:
    CustomerModel and InvoiceModel persist the billing domain.  Each has
    ``to_dto()`` / ``from_dto()`` round-trip methods to the frozen/pure
    types in ``billing_kernel.domain``.

Architecture: billing_kernel/models.  Imports from billing_kernel.db.base
    and billing_kernel.domain only.

Notes:
    Primary keys are plain INTEGER columns so SQLite autoincrements them.
    The amount is split into ``value`` + ``currency`` columns; Money is
    reassembled in ``to_dto()``.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase
from billing_kernel.domain.invoice import Customer, Invoice, InvoiceStatus
from billing_kernel.domain.values import Currency, Money


class CustomerModel(TrackedBase):
    """Persistent customer record."""

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    def to_dto(self) -> Customer:
        return Customer(id=self.id, currency=Currency(self.currency))

    @classmethod
    def from_dto(cls, dto: Customer) -> CustomerModel:
        return cls(id=dto.id, currency=dto.currency.code)


class InvoiceModel(TrackedBase):
    """Persistent invoice record.  ``status`` holds InvoiceStatus values."""

    __tablename__ = "invoices"

    __table_args__ = (
        Index("ix_invoices_status", "status"),
        Index("ix_invoices_customer_id", "customer_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("customers.id"),
        nullable=False,
    )
    value: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=InvoiceStatus.PENDING.value,
    )

    def to_dto(self) -> Invoice:
        return Invoice(
            id=self.id,
            customer_id=self.customer_id,
            amount=Money(Decimal(self.value), Currency(self.currency)),
            status=InvoiceStatus(self.status),
        )

    @classmethod
    def from_dto(cls, dto: Invoice) -> InvoiceModel:
        return cls(
            id=dto.id,
            customer_id=dto.customer_id,
            value=dto.amount.amount,
            currency=dto.amount.currency.code,
            status=dto.status.value,
        )
