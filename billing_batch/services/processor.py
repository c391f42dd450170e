"""
BillingProcessor -- fan the charge pipeline out over a batch of invoices.

Contract:
    ``process_batch(invoices)`` dispatches one asyncio task per invoice, in
    iteration order, and paces dispatch by the shared throttle.  Each task
    charges its invoice and then persists the final status through the
    invoice store.  Returns a ``BillingRunResult`` once every dispatched
    task has finished.

    ``run_pending_cycle()`` bills the store's PENDING invoices (the monthly
    cycle).  ``run_retry_cycle()`` bills TO_RETRY invoices; it is a separate
    entry point and is never folded into the monthly cycle.

Guarantees:
    - Invoices are dispatched in order; completion order is unspecified.
    - Terminal invoices handed to ``process_batch`` are skipped, never
      re-charged.
    - At most ``max_in_flight`` charges run at once (None = unbounded).
    - One invoice failing (in any classified way) never aborts the batch.
    - The shared failure counter is never reset; it keeps counting across
      runs, including concurrent ones.  Per-run figures come from the
      returned result.

Failure modes:
    - Unclassified errors (store unavailable, provider bugs) abort the run:
      dispatch stops, already-dispatched tasks run to completion, and the
      first error is re-raised.

Known gap:
    Charge and status write are not one transaction.  A crash between them
    leaves a charged invoice PENDING; it must be reconciled against provider
    transaction records out of band.  Idempotency keys at the provider
    boundary would close this window and are not implemented.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Callable, Iterable, Sequence
from uuid import uuid4

from billing_config.schema import BillingSettings
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.invoice import Invoice
from billing_kernel.exceptions import InvalidBillingConfigError
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.services.invoice_service import InvoiceService, SqlInvoiceService
from billing_kernel.services.payment_provider import (
    AsyncPaymentProvider,
    PaymentProvider,
)

from billing_batch.domain.throttle import FailureCounter, ThrottleController
from billing_batch.domain.types import BillingRunResult, ChargeOutcome, RunKind
from billing_batch.services.charge_pipeline import ChargePipeline, SleepFn

logger = get_logger("batch.processor")


class BillingProcessor:
    """Batch processor for billing runs.

    Non-goals:
        - Does NOT schedule itself -- that is BillingScheduler's job.
        - Does NOT page through large result sets; the store returns the
          whole batch.
    """

    def __init__(
        self,
        invoice_service: InvoiceService,
        provider: PaymentProvider | AsyncPaymentProvider | None = None,
        settings: BillingSettings | None = None,
        clock: Clock | None = None,
        pipeline: ChargePipeline | None = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        if provider is None and pipeline is None:
            raise ValueError("BillingProcessor needs a provider or a pipeline")

        self._invoice_service = invoice_service
        self._settings = settings or BillingSettings()
        self._clock = clock or SystemClock()
        self._sleep = sleep
        self._pipeline = pipeline or ChargePipeline.from_settings(
            provider, self._settings, sleep=sleep,
        )

    @classmethod
    def from_settings(
        cls,
        provider: PaymentProvider | AsyncPaymentProvider,
        settings: BillingSettings,
        clock: Clock | None = None,
    ) -> BillingProcessor:
        """Build a processor over the SQL invoice store at ``settings.database_url``.

        Raises:
            InvalidBillingConfigError: If no database_url is configured.
        """
        if not settings.database_url:
            raise InvalidBillingConfigError(
                "database_url", settings.database_url, "required for the SQL invoice store",
            )
        store = SqlInvoiceService.from_url(settings.database_url, clock=clock)
        return cls(store, provider, settings=settings, clock=clock)

    @property
    def throttle(self) -> ThrottleController:
        return self._pipeline.throttle

    @property
    def failure_counter(self) -> FailureCounter:
        return self._pipeline.failure_counter

    @property
    def pipeline(self) -> ChargePipeline:
        return self._pipeline

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    async def run_pending_cycle(self) -> BillingRunResult:
        """Bill every PENDING invoice in the store."""
        invoices = await self._call_store(self._invoice_service.fetch_pending)
        return await self.process_batch(invoices, kind=RunKind.PENDING)

    async def run_retry_cycle(self) -> BillingRunResult:
        """Bill every TO_RETRY invoice in the store."""
        invoices = await self._call_store(self._invoice_service.fetch_retry)
        return await self.process_batch(invoices, kind=RunKind.RETRY)

    # -------------------------------------------------------------------------
    # Batch
    # -------------------------------------------------------------------------

    async def process_batch(
        self,
        invoices: Iterable[Invoice],
        kind: RunKind = RunKind.ADHOC,
    ) -> BillingRunResult:
        """Charge and persist every billable invoice in ``invoices``."""
        run_id = str(uuid4())
        started_at = self._clock.now()
        start = time.monotonic()
        batch: Sequence[Invoice] = list(invoices)

        max_in_flight = self._settings.max_in_flight
        slots = asyncio.Semaphore(max_in_flight) if max_in_flight else None
        tasks: list[asyncio.Task[ChargeOutcome]] = []
        aborted: list[BaseException] = []

        def _on_done(task: asyncio.Task[Any]) -> None:
            if not task.cancelled() and task.exception() is not None:
                aborted.append(task.exception())

        with LogContext.bind(cycle_id=run_id):
            logger.info(
                "billing_batch_started",
                extra={"kind": kind.value, "invoice_count": len(batch)},
            )

            for invoice in batch:
                if aborted:
                    break
                if invoice.status.is_terminal:
                    logger.warning(
                        "invoice_skipped_terminal",
                        extra={
                            "invoice_id": invoice.id,
                            "status": invoice.status.value,
                        },
                    )
                    continue

                if slots is not None:
                    await slots.acquire()
                task = asyncio.create_task(
                    self._charge_and_persist(invoice, slots),
                    name=f"charge-invoice-{invoice.id}",
                )
                task.add_done_callback(_on_done)
                tasks.append(task)

                # Pace submissions, separate from per-retry backoff
                await self._sleep(
                    self.throttle.current_delay() * self._settings.time_unit_seconds
                )

            results = await asyncio.gather(*tasks, return_exceptions=True)
            errors = [r for r in results if isinstance(r, BaseException)]
            duration_ms = int((time.monotonic() - start) * 1000)

            if errors:
                logger.error(
                    "billing_batch_aborted",
                    exc_info=errors[0],
                    extra={
                        "kind": kind.value,
                        "dispatched": len(tasks),
                        "errors": len(errors),
                        "duration_ms": duration_ms,
                    },
                )
                raise errors[0]

            result = BillingRunResult.from_outcomes(
                run_id=run_id,
                kind=kind,
                outcomes=tuple(results),
                started_at=started_at,
                completed_at=self._clock.now(),
                duration_ms=duration_ms,
            )

            logger.info(
                "billing_batch_finished",
                extra={
                    "kind": kind.value,
                    "processed": result.total,
                    "paid": result.paid,
                    "failed_invoices": result.failed,
                    "failures_total": self.failure_counter.value,
                    "status_counts": result.status_counts,
                    "throttle_level": self.throttle.level,
                    "duration_ms": duration_ms,
                },
            )
            return result

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    async def _charge_and_persist(
        self,
        invoice: Invoice,
        slots: asyncio.Semaphore | None,
    ) -> ChargeOutcome:
        try:
            outcome = await self._pipeline.charge_invoice(invoice)
            # A crash here leaves the invoice charged but not marked PAID.
            await self._call_store(self._invoice_service.update_status, invoice)
            return outcome
        finally:
            if slots is not None:
                slots.release()

    @staticmethod
    async def _call_store(method: Callable[..., Any], *args: Any) -> Any:
        """Await async store methods; run sync ones in a worker thread."""
        if inspect.iscoroutinefunction(method):
            result = method(*args)
        else:
            result = await asyncio.to_thread(method, *args)
        if inspect.isawaitable(result):
            result = await result
        return result
