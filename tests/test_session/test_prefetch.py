"""Tests for PrefetchScheduler — debounce, single flight and self-chaining."""

import asyncio

from inbox_triage.helper.slots import TaskSlots
from inbox_triage.session.prefetch import PrefetchScheduler


class FakeBuffer:
    """Stands in for the controller: a counter the fetches grow."""

    def __init__(self, size: int, per_fetch: list[int | None] | None = None, delay: float = 0.0) -> None:
        self.size = size
        self.calls: list[int] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._per_fetch = list(per_fetch or [])
        self._delay = delay

    async def fetch(self, max_count: int) -> int | None:
        self.calls.append(max_count)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self._delay)
        finally:
            self.in_flight -= 1
        added = self._per_fetch.pop(0) if self._per_fetch else 0
        if added:
            self.size += added
        return added

    def count(self) -> int:
        return self.size


def make_scheduler(buffer: FakeBuffer, debounce: float = 0.02, threshold: int = 15) -> tuple[PrefetchScheduler, TaskSlots]:
    slots = TaskSlots()
    scheduler = PrefetchScheduler(
        slots,
        buffer.fetch,
        buffer.count,
        threshold=threshold,
        debounce_seconds=debounce,
        batch_size=500,
        initial_batch=50,
    )
    return scheduler, slots


class TestSchedule:
    async def test_fetches_only_after_debounce(self) -> None:
        buffer = FakeBuffer(10)
        scheduler, slots = make_scheduler(buffer, debounce=0.05)
        assert scheduler.schedule() is True
        await asyncio.sleep(0.01)
        assert buffer.calls == []
        await asyncio.sleep(0.08)
        assert buffer.calls == [500]
        await slots.wait_idle()

    async def test_no_fetch_when_buffer_full(self) -> None:
        buffer = FakeBuffer(15)
        scheduler, slots = make_scheduler(buffer)
        assert scheduler.schedule() is False
        await slots.wait_idle()
        assert buffer.calls == []

    async def test_schedule_while_timer_armed_is_noop(self) -> None:
        buffer = FakeBuffer(3)
        scheduler, slots = make_scheduler(buffer)
        assert scheduler.schedule() is True
        assert scheduler.armed
        assert scheduler.schedule() is False
        assert scheduler.schedule() is False
        await slots.wait_idle()
        assert buffer.calls == [500]

    async def test_schedule_while_fetch_in_flight_is_noop(self) -> None:
        buffer = FakeBuffer(3, delay=0.05)
        scheduler, slots = make_scheduler(buffer)
        assert scheduler.fetch_now() is True
        await asyncio.sleep(0)
        assert scheduler.busy
        assert scheduler.schedule() is False
        await slots.wait_idle()
        assert buffer.calls == [500]

    async def test_never_two_fetches_in_flight(self) -> None:
        buffer = FakeBuffer(0, per_fetch=[5, 5, 5], delay=0.02)
        scheduler, slots = make_scheduler(buffer, debounce=0.0)
        for _ in range(10):
            scheduler.schedule()
            scheduler.fetch_now()
            await asyncio.sleep(0.005)
        await slots.wait_idle()
        assert buffer.max_in_flight == 1


class TestChaining:
    async def test_rearms_while_still_below_threshold(self) -> None:
        buffer = FakeBuffer(2, per_fetch=[5, 5, 5])
        scheduler, slots = make_scheduler(buffer)
        scheduler.schedule()
        await slots.wait_idle()
        # 2 → 7 → 12 → 17: stops once the low-water mark is reached.
        assert len(buffer.calls) == 3
        assert buffer.size == 17
        assert not scheduler.armed
        assert not scheduler.busy

    async def test_stops_when_fetch_adds_nothing(self) -> None:
        buffer = FakeBuffer(2, per_fetch=[4, 0])
        scheduler, slots = make_scheduler(buffer)
        scheduler.schedule()
        await slots.wait_idle()
        assert len(buffer.calls) == 2

    async def test_rearm_is_tracked_by_wait_idle(self) -> None:
        buffer = FakeBuffer(2, per_fetch=[5])
        scheduler, slots = make_scheduler(buffer)
        scheduler.fetch_now()
        await slots.wait_idle()
        # fetch_now does not chain; only debounced fetches re-arm.
        assert not scheduler.armed

        scheduler.schedule()
        await slots.wait_idle()
        assert buffer.calls == [500, 500]
        assert slots.pending() == []

    async def test_stops_after_failed_fetch(self) -> None:
        buffer = FakeBuffer(2, per_fetch=[None])
        scheduler, slots = make_scheduler(buffer)
        scheduler.schedule()
        await slots.wait_idle()
        assert buffer.calls == [500]


class TestWarm:
    async def test_two_stage_fetch(self) -> None:
        buffer = FakeBuffer(0, per_fetch=[50, 200])
        scheduler, slots = make_scheduler(buffer)
        assert scheduler.warm() is True
        await slots.wait_idle()
        assert buffer.calls == [50, 500]

    async def test_warm_skipped_while_busy(self) -> None:
        buffer = FakeBuffer(0, delay=0.02)
        scheduler, slots = make_scheduler(buffer)
        scheduler.fetch_now(100)
        assert scheduler.warm() is False
        await slots.wait_idle()
        assert buffer.calls == [100]

    async def test_second_stage_skipped_if_first_fails(self) -> None:
        buffer = FakeBuffer(0, per_fetch=[None])
        scheduler, slots = make_scheduler(buffer)
        scheduler.warm()
        await slots.wait_idle()
        assert buffer.calls == [50]

    async def test_cancel_timer(self) -> None:
        buffer = FakeBuffer(0)
        scheduler, slots = make_scheduler(buffer, debounce=0.05)
        scheduler.schedule()
        scheduler.cancel_timer()
        await slots.wait_idle()
        assert buffer.calls == []
        assert not scheduler.armed
