"""
ChargePipeline -- charge one invoice and classify the outcome.

Contract:
    ``charge_invoice(invoice, retries_left)`` calls the payment provider,
    retries network failures with throttle-driven backoff, sets
    ``invoice.status`` to exactly one non-PENDING status and returns a
    ``ChargeOutcome``.

Classification:
    provider returns True       -> PAID                 throttle.on_success()
    provider returns False      -> FAILED_NO_BALANCE    throttle.on_success()
    NetworkError, retries left  -> wait current_delay(), call again
    NetworkError, none left     -> TO_RETRY
    CurrencyMismatchError       -> FAILED_CURRENCY
    CustomerNotFoundError       -> FAILED_NO_CUSTOMER

    Every status other than PAID increments the shared failure counter.
    A decline also relaxes the throttle: the provider answered, so it is
    keeping up.

Retry semantics:
    Each network failure raises the shared throttle level *before* the
    wait, so consecutive failures of the same invoice (and failures of
    other invoices in flight) escalate the delay.  At most
    ``retries_left + 1`` provider calls are made for one invoice.

Failure modes:
    - PaymentError subclasses never escape; they become statuses.
    - Anything else raised by the provider propagates unchanged.
    - TypeError if the provider answers with anything but a bool.

Non-goals:
    - Does NOT persist the status -- the batch processor does.
    - Does NOT make the charge idempotent at the provider.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Awaitable, Callable

from billing_config.schema import BillingSettings
from billing_kernel.domain.invoice import Invoice, InvoiceStatus
from billing_kernel.exceptions import (
    CurrencyMismatchError,
    CustomerNotFoundError,
    NetworkError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.services.payment_provider import (
    AsyncPaymentProvider,
    PaymentProvider,
)

from billing_batch.domain.throttle import FailureCounter, ThrottleController
from billing_batch.domain.types import ChargeOutcome

logger = get_logger("batch.charge_pipeline")

MAX_RETRIES = 3

SleepFn = Callable[[float], Awaitable[None]]


class ChargePipeline:
    """Single-invoice charge pipeline.

    The throttle and failure counter are shared with every other charge
    running through the same pipeline.
    """

    def __init__(
        self,
        provider: PaymentProvider | AsyncPaymentProvider,
        throttle: ThrottleController | None = None,
        failure_counter: FailureCounter | None = None,
        max_retries: int = MAX_RETRIES,
        time_unit_seconds: float = 0.001,
        charge_timeout_seconds: float | None = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self._provider = provider
        self._provider_is_async = inspect.iscoroutinefunction(provider.charge)
        self._throttle = throttle or ThrottleController()
        self._failures = failure_counter or FailureCounter()
        self._max_retries = max_retries
        self._time_unit = time_unit_seconds
        self._timeout = charge_timeout_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        provider: PaymentProvider | AsyncPaymentProvider,
        settings: BillingSettings,
        throttle: ThrottleController | None = None,
        failure_counter: FailureCounter | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> ChargePipeline:
        return cls(
            provider,
            throttle=throttle or ThrottleController(
                settings.throttle_multiplier, settings.max_throttle,
            ),
            failure_counter=failure_counter,
            max_retries=settings.max_retries,
            time_unit_seconds=settings.time_unit_seconds,
            charge_timeout_seconds=settings.charge_timeout_seconds,
            sleep=sleep,
        )

    @property
    def throttle(self) -> ThrottleController:
        return self._throttle

    @property
    def failure_counter(self) -> FailureCounter:
        return self._failures

    @property
    def max_retries(self) -> int:
        return self._max_retries

    # -------------------------------------------------------------------------
    # Charge
    # -------------------------------------------------------------------------

    async def charge_invoice(
        self,
        invoice: Invoice,
        retries_left: int | None = None,
    ) -> ChargeOutcome:
        """Charge ``invoice`` and set its final status."""
        if retries_left is None:
            retries_left = self._max_retries
        attempts = 0

        with LogContext.bind(
            invoice_id=str(invoice.id), customer_id=str(invoice.customer_id),
        ):
            while True:
                attempts += 1
                try:
                    charged = await self._call_provider(invoice)

                except NetworkError as exc:
                    self._throttle.on_failure()
                    if retries_left > 0:
                        retries_left -= 1
                        delay = self._throttle.current_delay()
                        logger.info(
                            "invoice_charge_retrying",
                            extra={
                                "attempt": attempts,
                                "retries_left": retries_left,
                                "delay_units": delay,
                                "throttle_level": self._throttle.level,
                            },
                        )
                        await self._sleep(delay * self._time_unit)
                        continue

                    invoice.status = InvoiceStatus.TO_RETRY
                    self._failures.increment()
                    logger.warning(
                        "invoice_charge_retries_exhausted",
                        extra={
                            "attempts": attempts,
                            "throttle_level": self._throttle.level,
                        },
                    )
                    return self._outcome(invoice, attempts, exc.code)

                except CurrencyMismatchError as exc:
                    invoice.status = InvoiceStatus.FAILED_CURRENCY
                    self._failures.increment()
                    logger.error(
                        "invoice_currency_mismatch",
                        extra={
                            "invoice_id": str(invoice.id),
                            "currency": invoice.amount.currency.code,
                            "customer_id": str(invoice.customer_id),
                        },
                    )
                    return self._outcome(invoice, attempts, exc.code)

                except CustomerNotFoundError as exc:
                    invoice.status = InvoiceStatus.FAILED_NO_CUSTOMER
                    self._failures.increment()
                    logger.error(
                        "invoice_customer_not_found",
                        extra={
                            "invoice_id": str(invoice.id),
                            "customer_id": str(exc.customer_id),
                        },
                    )
                    return self._outcome(invoice, attempts, exc.code)

                if charged is True:
                    invoice.status = InvoiceStatus.PAID
                else:
                    invoice.status = InvoiceStatus.FAILED_NO_BALANCE
                    self._failures.increment()
                    logger.info("invoice_charge_declined")

                self._throttle.on_success()
                return self._outcome(invoice, attempts, None)

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    async def _call_provider(self, invoice: Invoice) -> bool:
        """Call the provider; a timeout counts as a network failure."""
        if self._timeout is None:
            charged = await self._charge_once(invoice)
        else:
            try:
                charged = await asyncio.wait_for(
                    self._charge_once(invoice), timeout=self._timeout,
                )
            except TimeoutError:
                raise NetworkError(
                    f"Payment provider did not answer within {self._timeout}s"
                ) from None

        if not isinstance(charged, bool):
            raise TypeError(
                f"Payment provider returned {type(charged).__name__}, expected bool"
            )
        return charged

    async def _charge_once(self, invoice: Invoice) -> object:
        if self._provider_is_async:
            result = self._provider.charge(invoice)
        else:
            result = await asyncio.to_thread(self._provider.charge, invoice)
        if inspect.isawaitable(result):
            result = await result
        return result

    @staticmethod
    def _outcome(
        invoice: Invoice, attempts: int, error_code: str | None,
    ) -> ChargeOutcome:
        return ChargeOutcome(
            invoice_id=invoice.id,
            status=invoice.status,
            attempts=attempts,
            retries_used=attempts - 1,
            error_code=error_code,
        )
