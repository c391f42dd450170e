"""
BillingScheduler -- self re-arming monthly trigger for the billing cycle.

Contract:
    ``start()`` arms a one-shot timer for the next billing instant (01:00 on
    the 1st of next month in the configured zone).  When it fires, the
    scheduler runs ``processor.run_pending_cycle()``, then recomputes the
    next instant and re-arms.  No fixed period is used.

State machine:
    IDLE -> ARMED -> FIRING -> ARMED -> ...      ``stop()`` -> STOPPED

Failure modes:
    - SchedulerStateError on ``start()`` while ARMED/FIRING, or on
      ``fire()`` while FIRING or STOPPED.
    - A failed or cancelled cycle is logged and the next cycle is still
      armed; cancellation is re-raised to the caller.
    - Errors escaping a timer-started cycle are logged by the task's
      done-callback.

Non-goals:
    - NOT a distributed scheduler (no leader election).
    - Does NOT trigger the retry run; ``BillingProcessor.run_retry_cycle()``
      is wired separately.
"""

from __future__ import annotations

import asyncio
from datetime import datetime

from billing_config.schema import BillingSettings
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import SchedulerStateError
from billing_kernel.logging_config import get_logger

from billing_batch.domain.schedule import compute_next_run, seconds_until
from billing_batch.domain.types import BillingRunResult, SchedulerState
from billing_batch.services.processor import BillingProcessor

logger = get_logger("batch.scheduler")


class BillingScheduler:
    """Arms one ``loop.call_later`` handle at a time.

    Must be started from inside a running event loop.
    """

    def __init__(
        self,
        processor: BillingProcessor,
        settings: BillingSettings | None = None,
        clock: Clock | None = None,
    ):
        self._processor = processor
        self._settings = settings or BillingSettings()
        self._clock = clock or SystemClock()
        self._state = SchedulerState.IDLE
        self._loop: asyncio.AbstractEventLoop | None = None
        self._handle: asyncio.TimerHandle | None = None
        self._cycle_task: asyncio.Task[BillingRunResult | None] | None = None
        self._next_run_at: datetime | None = None
        self._cycles_run = 0
        self._last_result: BillingRunResult | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def next_run_at(self) -> datetime | None:
        return self._next_run_at

    @property
    def cycles_run(self) -> int:
        return self._cycles_run

    @property
    def last_result(self) -> BillingRunResult | None:
        return self._last_result

    def start(self) -> datetime:
        """Arm the first cycle.  Returns the scheduled instant."""
        if self._state in (SchedulerState.ARMED, SchedulerState.FIRING):
            raise SchedulerStateError(self._state.value, "start")
        self._loop = asyncio.get_running_loop()
        return self._arm()

    async def fire(self) -> BillingRunResult | None:
        """Run one billing cycle now, then re-arm.

        Called by the timer; may also be called directly to bill ahead of
        schedule.  Returns None if the cycle failed.
        """
        if self._state in (SchedulerState.FIRING, SchedulerState.STOPPED):
            raise SchedulerStateError(self._state.value, "fire")
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._cancel_handle()

        self._state = SchedulerState.FIRING
        result: BillingRunResult | None = None
        cycle = self._cycles_run + 1
        logger.info("billing_cycle_firing", extra={"cycle": cycle})
        try:
            result = await self._processor.run_pending_cycle()
            self._last_result = result
        except asyncio.CancelledError:
            logger.warning("billing_cycle_cancelled", extra={"cycle": cycle})
            raise
        except Exception:
            logger.exception("billing_cycle_failed", extra={"cycle": cycle})
        finally:
            self._cycles_run += 1
            if self._state == SchedulerState.FIRING:
                self._arm()
        return result

    def stop(self) -> None:
        """Cancel the armed timer.  A cycle already running completes."""
        self._cancel_handle()
        self._state = SchedulerState.STOPPED
        self._next_run_at = None
        logger.info("billing_scheduler_stopped", extra={"cycles_run": self._cycles_run})

    async def wait_for_cycle(self) -> BillingRunResult | None:
        """Await the cycle started by the timer, if one is running."""
        if self._cycle_task is None:
            return None
        return await self._cycle_task

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _arm(self) -> datetime:
        now = self._clock.now()
        next_run = compute_next_run(now, self._settings.zone, self._settings.run_hour)
        delay = seconds_until(next_run, now)

        assert self._loop is not None
        self._handle = self._loop.call_later(delay, self._on_timer)
        self._next_run_at = next_run
        self._state = SchedulerState.ARMED

        logger.info(
            "billing_cycle_scheduled",
            extra={
                "next_run_at": next_run.isoformat(),
                "delay_seconds": delay,
                "timezone": self._settings.timezone,
            },
        )
        return next_run

    def _on_timer(self) -> None:
        self._handle = None
        assert self._loop is not None
        self._cycle_task = self._loop.create_task(self.fire(), name="billing-cycle")
        self._cycle_task.add_done_callback(self._on_cycle_done)

    def _on_cycle_done(self, task: asyncio.Task[BillingRunResult | None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("billing_cycle_task_failed", exc_info=exc)

    def _cancel_handle(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
