"""Kernel services: the invoice store and the payment provider boundary."""

from billing_kernel.services.invoice_service import InvoiceService, SqlInvoiceService
from billing_kernel.services.payment_provider import (
    AsyncPaymentProvider,
    PaymentProvider,
)

__all__ = [
    "AsyncPaymentProvider",
    "InvoiceService",
    "PaymentProvider",
    "SqlInvoiceService",
]
