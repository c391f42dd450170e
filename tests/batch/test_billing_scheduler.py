"""
Tests for billing_batch.services.scheduler.

Validates the IDLE -> ARMED -> FIRING -> ARMED cycle, re-arming from the
injected clock, stop semantics and state errors.
"""

import asyncio
import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

import billing_batch.services.scheduler as scheduler_module
from billing_batch.domain.schedule import seconds_until
from billing_batch.domain.types import SchedulerState
from billing_batch.services.processor import BillingProcessor
from billing_batch.services.scheduler import BillingScheduler
from billing_config.schema import BillingSettings
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.domain.invoice import InvoiceStatus
from billing_kernel.exceptions import SchedulerStateError

BERLIN = ZoneInfo("Europe/Berlin")


class BlockingProvider:
    """Holds every charge until ``release`` is set."""

    def __init__(self):
        self.release = None

    async def charge(self, invoice):
        await self.release.wait()
        return True


@pytest.fixture
def fire_soon(monkeypatch):
    """First timer fires after 10ms; later ones use the real schedule."""
    delays = [0.01]

    def _seconds_until(target, now):
        return delays.pop() if delays else seconds_until(target, now)

    monkeypatch.setattr(scheduler_module, "seconds_until", _seconds_until)


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def build_scheduler(clock, invoice_store_cls, scripted_provider_cls, recording_sleep):
    def _build(store=None, provider=None):
        store = store if store is not None else invoice_store_cls()
        processor = BillingProcessor(
            store,
            provider or scripted_provider_cls(),
            settings=BillingSettings(),
            clock=clock,
            sleep=recording_sleep,
        )
        return BillingScheduler(processor, settings=BillingSettings(), clock=clock)

    return _build


class TestArming:
    def test_start_arms_next_month(self, build_scheduler):
        scheduler = build_scheduler()

        async def main():
            next_run = scheduler.start()
            state = scheduler.state
            scheduler.stop()
            return next_run, state

        next_run, state = asyncio.run(main())

        assert state == SchedulerState.ARMED
        assert next_run == datetime(2024, 2, 1, 1, 0, tzinfo=BERLIN)

    def test_initial_state_is_idle(self, build_scheduler):
        scheduler = build_scheduler()
        assert scheduler.state == SchedulerState.IDLE
        assert scheduler.next_run_at is None
        assert scheduler.cycles_run == 0

    def test_double_start_rejected(self, build_scheduler):
        scheduler = build_scheduler()

        async def main():
            scheduler.start()
            try:
                scheduler.start()
            finally:
                scheduler.stop()

        with pytest.raises(SchedulerStateError) as exc_info:
            asyncio.run(main())
        assert exc_info.value.action == "start"
        assert exc_info.value.code == "SCHEDULER_STATE"

    def test_stop_clears_next_run(self, build_scheduler):
        scheduler = build_scheduler()

        async def main():
            scheduler.start()
            scheduler.stop()

        asyncio.run(main())

        assert scheduler.state == SchedulerState.STOPPED
        assert scheduler.next_run_at is None

    def test_restart_after_stop(self, build_scheduler):
        scheduler = build_scheduler()

        async def main():
            scheduler.start()
            scheduler.stop()
            scheduler.start()
            state = scheduler.state
            scheduler.stop()
            return state

        assert asyncio.run(main()) == SchedulerState.ARMED


class TestFiring:
    def test_fire_runs_cycle_and_rearms(
        self, build_scheduler, clock, make_pending, invoice_store_cls,
    ):
        store = invoice_store_cls(make_pending(3))
        scheduler = build_scheduler(store=store)

        async def main():
            scheduler.start()
            clock.set_time(datetime(2024, 2, 1, 0, 0, 5, tzinfo=timezone.utc))
            result = await scheduler.fire()
            scheduler.stop()
            return result

        result = asyncio.run(main())

        assert result.paid == 3
        assert scheduler.cycles_run == 1
        assert scheduler.last_result is result
        assert all(i.status == InvoiceStatus.PAID for i in store.invoices)

    def test_rearm_uses_clock_after_cycle(self, build_scheduler, clock):
        scheduler = build_scheduler()
        observed = []

        async def main():
            scheduler.start()
            clock.set_time(datetime(2024, 2, 1, 0, 0, 5, tzinfo=timezone.utc))
            await scheduler.fire()
            observed.append((scheduler.state, scheduler.next_run_at))
            scheduler.stop()

        asyncio.run(main())

        assert observed == [
            (SchedulerState.ARMED, datetime(2024, 3, 1, 1, 0, tzinfo=BERLIN)),
        ]

    @pytest.mark.usefixtures("fire_soon")
    def test_timer_fires_cycle_and_rearms(
        self, build_scheduler, clock, make_pending, invoice_store_cls,
    ):
        store = invoice_store_cls(make_pending(2))
        scheduler = build_scheduler(store=store)

        async def main():
            scheduler.start()
            clock.set_time(datetime(2024, 2, 1, 0, 0, 5, tzinfo=timezone.utc))
            await asyncio.sleep(0.05)
            result = await scheduler.wait_for_cycle()
            observed = (scheduler.state, scheduler.next_run_at)
            scheduler.stop()
            return result, observed

        result, observed = asyncio.run(main())

        assert result is not None
        assert result.paid == 2
        assert scheduler.cycles_run == 1
        assert observed == (
            SchedulerState.ARMED, datetime(2024, 3, 1, 1, 0, tzinfo=BERLIN),
        )

    @pytest.mark.usefixtures("fire_soon")
    def test_timer_cycle_escape_is_logged(self, caplog, build_scheduler, invoice_store_cls):
        class CycleAbort(BaseException):
            pass

        class AbortingStore(invoice_store_cls):
            async def fetch_pending(self):
                raise CycleAbort()

        scheduler = build_scheduler(store=AbortingStore())

        async def main():
            scheduler.start()
            await asyncio.sleep(0.05)
            state = scheduler.state
            scheduler.stop()
            return state

        with caplog.at_level(logging.INFO, logger="billing_kernel"):
            state = asyncio.run(main())

        assert state == SchedulerState.ARMED
        assert scheduler.cycles_run == 1
        failed = [r for r in caplog.records if r.getMessage() == "billing_cycle_task_failed"]
        assert [r.exc_info[0] for r in failed] == [CycleAbort]

    def test_cancelled_cycle_rearms(self, build_scheduler, make_pending, invoice_store_cls):
        provider = BlockingProvider()
        scheduler = build_scheduler(
            store=invoice_store_cls(make_pending(1)), provider=provider,
        )

        async def main():
            provider.release = asyncio.Event()
            scheduler.start()
            cycle = asyncio.create_task(scheduler.fire())
            for _ in range(5):
                await asyncio.sleep(0.01)
            firing = scheduler.state
            cycle.cancel()
            with pytest.raises(asyncio.CancelledError):
                await cycle
            observed = (firing, scheduler.state, scheduler.next_run_at)
            scheduler.stop()
            return observed

        firing, state, next_run = asyncio.run(main())

        assert firing == SchedulerState.FIRING
        assert state == SchedulerState.ARMED
        assert next_run == datetime(2024, 2, 1, 1, 0, tzinfo=BERLIN)
        assert scheduler.cycles_run == 1

    def test_failed_cycle_still_rearms(self, build_scheduler, invoice_store_cls):
        class BrokenStore(invoice_store_cls):
            def fetch_pending(self):
                raise ConnectionError("db down")

        scheduler = build_scheduler(store=BrokenStore())

        async def main():
            scheduler.start()
            result = await scheduler.fire()
            state = scheduler.state
            scheduler.stop()
            return result, state

        result, state = asyncio.run(main())

        assert result is None
        assert state == SchedulerState.ARMED
        assert scheduler.cycles_run == 1

    def test_fire_after_stop_rejected(self, build_scheduler):
        scheduler = build_scheduler()

        async def main():
            scheduler.start()
            scheduler.stop()
            await scheduler.fire()

        with pytest.raises(SchedulerStateError):
            asyncio.run(main())

    def test_fire_while_firing_rejected(self, build_scheduler, make_pending, invoice_store_cls):
        provider = BlockingProvider()
        scheduler = build_scheduler(
            store=invoice_store_cls(make_pending(1)), provider=provider,
        )

        async def main():
            provider.release = asyncio.Event()
            first = asyncio.create_task(scheduler.fire())
            for _ in range(5):
                await asyncio.sleep(0.01)
            try:
                with pytest.raises(SchedulerStateError):
                    await scheduler.fire()
                assert scheduler.state == SchedulerState.FIRING
            finally:
                provider.release.set()
                await first
                scheduler.stop()

        asyncio.run(main())
        assert scheduler.cycles_run == 1
