"""
Typed Exception Hierarchy for the Billing Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The charge pipeline turns provider failures into invoice statuses.  That
mapping must be exact: a network blip is retried, a currency mismatch never
is.  Classifying by message text would be fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, log-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - what the pipeline does:

    try:
        charged = provider.charge(invoice)
    except NetworkError:
        throttle.on_failure()             # transient, back off and retry
    except CurrencyMismatchError as e:
        log.error("invoice_currency_mismatch",
                  extra={"invoice_id": e.invoice_id})

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from BillingKernelError:

    BillingKernelError (base)
    |
    +-- PaymentError                 raised by PaymentProvider.charge()
    |   +-- NetworkError             transient, retried with backoff
    |   +-- CurrencyMismatchError    permanent -> FAILED_CURRENCY
    |   +-- CustomerNotFoundError    permanent -> FAILED_NO_CUSTOMER
    |
    +-- InvoiceError
    |   +-- InvoiceNotFoundError
    |
    +-- ScheduleError
    |   +-- SchedulerStateError
    |
    +-- ConfigError
        +-- InvalidBillingConfigError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category   | Code                    | When Raised
-----------|-------------------------|------------------------------------------
Payment    | NETWORK_ERROR           | Provider unreachable / timed out
           | CURRENCY_MISMATCH       | Invoice currency != customer currency
           | CUSTOMER_NOT_FOUND      | Invoice references an unknown customer
-----------|-------------------------|------------------------------------------
Invoice    | INVOICE_NOT_FOUND       | Store has no invoice with that id
-----------|-------------------------|------------------------------------------
Schedule   | SCHEDULER_STATE         | start/fire called in an invalid state
-----------|-------------------------|------------------------------------------
Config     | INVALID_BILLING_CONFIG  | Setting missing, unknown or out of range

===============================================================================
PROPAGATION
===============================================================================

PaymentError subclasses never escape a single charge operation: the
pipeline converts each one into an invoice status.  Everything else
(store failures, programming errors) propagates and aborts the batch run.
"""


class BillingKernelError(Exception):
    """
    Base exception for all billing engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BILLING_KERNEL_ERROR"


# Payment provider exceptions


class PaymentError(BillingKernelError):
    """Base exception for failures reported by the payment provider."""

    code: str = "PAYMENT_ERROR"


class NetworkError(PaymentError):
    """
    The provider could not be reached or did not answer in time.

    Transient: connection refused, timeouts, unreachable hosts.  Waiting and
    retrying resolves most of these.
    """

    code: str = "NETWORK_ERROR"

    def __init__(self, message: str = "Payment provider unreachable"):
        super().__init__(message)


class CurrencyMismatchError(PaymentError):
    """Invoice currency does not match the customer's billing currency."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, invoice_id: int, customer_id: int):
        self.invoice_id = invoice_id
        self.customer_id = customer_id
        super().__init__(
            f"Currency of invoice '{invoice_id}' does not match "
            f"currency of customer '{customer_id}'"
        )


class CustomerNotFoundError(PaymentError):
    """Customer referenced by an invoice does not exist."""

    code: str = "CUSTOMER_NOT_FOUND"

    def __init__(self, customer_id: int):
        self.customer_id = customer_id
        super().__init__(f"Customer '{customer_id}' was not found")


# Invoice store exceptions


class InvoiceError(BillingKernelError):
    """Base exception for invoice store errors."""

    code: str = "INVOICE_ERROR"


class InvoiceNotFoundError(InvoiceError):
    """Invoice with given id was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: int):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice '{invoice_id}' was not found")


# Scheduling exceptions


class ScheduleError(BillingKernelError):
    """Base exception for billing cycle scheduling errors."""

    code: str = "SCHEDULE_ERROR"


class SchedulerStateError(ScheduleError):
    """Operation is not allowed in the scheduler's current state."""

    code: str = "SCHEDULER_STATE"

    def __init__(self, state: str, action: str):
        self.state = state
        self.action = action
        super().__init__(f"Cannot {action} scheduler in state {state}")


# Configuration exceptions


class ConfigError(BillingKernelError):
    """Base exception for configuration errors."""

    code: str = "CONFIG_ERROR"


class InvalidBillingConfigError(ConfigError):
    """A billing setting is missing, unknown or out of range."""

    code: str = "INVALID_BILLING_CONFIG"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid billing setting {field}={value!r}: {reason}")
