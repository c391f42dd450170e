"""
Billing Kernel

Value types, invoice model and the boundaries of the billing engine:
- Money / Currency value objects with ISO 4217 validation
- Invoice and InvoiceStatus (terminal vs. retryable)
- Typed exception hierarchy shared with payment providers
- Structured JSON logging and an injectable clock
- SQLAlchemy-backed invoice store
"""

__version__ = "0.1.0"
