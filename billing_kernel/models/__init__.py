"""
billing_kernel.models -- ORM models for the invoice store.

Architecture: billing_kernel/models. Imports from billing_kernel.db.base only.
"""

from billing_kernel.models.invoice import CustomerModel, InvoiceModel

__all__ = [
    "CustomerModel",
    "InvoiceModel",
]
