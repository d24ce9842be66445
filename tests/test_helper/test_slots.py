"""Tests for TaskSlots — named at-most-one-in-flight task slots."""

import asyncio

from inbox_triage.helper.slots import TaskSlots


async def _sleeper(log: list[str], name: str, seconds: float = 0.05) -> None:
    try:
        await asyncio.sleep(seconds)
        log.append(f"{name}:done")
    except asyncio.CancelledError:
        log.append(f"{name}:cancelled")
        raise


class TestStart:
    async def test_new_task_preempts_running_one(self) -> None:
        slots = TaskSlots()
        log: list[str] = []
        first = slots.start("action", _sleeper(log, "first"))
        await asyncio.sleep(0)
        slots.start("action", _sleeper(log, "second", 0.01))
        await slots.wait_idle()
        assert first.cancelled()
        assert log == ["first:cancelled", "second:done"]

    async def test_different_slots_run_side_by_side(self) -> None:
        slots = TaskSlots()
        log: list[str] = []
        slots.start("action", _sleeper(log, "a", 0.01))
        slots.start("fetch", _sleeper(log, "f", 0.01))
        await slots.wait_idle()
        assert sorted(log) == ["a:done", "f:done"]

    async def test_busy_reflects_task_state(self) -> None:
        slots = TaskSlots()
        slots.start("fetch", asyncio.sleep(0.01))
        assert slots.busy("fetch")
        assert not slots.busy("action")
        await slots.wait_idle()
        assert not slots.busy("fetch")


class TestCancel:
    async def test_cancel_all_stops_every_slot(self) -> None:
        slots = TaskSlots()
        log: list[str] = []
        slots.start("a", _sleeper(log, "a"))
        slots.start("b", _sleeper(log, "b"))
        await asyncio.sleep(0)
        slots.cancel_all()
        await slots.wait_idle()
        assert sorted(log) == ["a:cancelled", "b:cancelled"]

    async def test_wait_idle_covers_cancellation_cleanup(self) -> None:
        slots = TaskSlots()
        log: list[str] = []

        async def slow_cleanup() -> None:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                await asyncio.sleep(0.01)
                log.append("cleaned")
                raise

        slots.start("action", slow_cleanup())
        await asyncio.sleep(0)
        slots.cancel("action")
        assert not slots.busy("action")
        await slots.wait_idle()
        assert log == ["cleaned"]

    async def test_preempted_task_cleanup_is_awaited(self) -> None:
        slots = TaskSlots()
        log: list[str] = []

        async def slow_cleanup() -> None:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                await asyncio.sleep(0.01)
                log.append("first:cleaned")
                raise

        slots.start("action", slow_cleanup())
        await asyncio.sleep(0)
        slots.start("action", _sleeper(log, "second", 0.001))
        await slots.wait_idle()
        assert sorted(log) == ["first:cleaned", "second:done"]

    async def test_cancel_unknown_slot_is_noop(self) -> None:
        TaskSlots().cancel("nothing")


class TestSpawn:
    async def test_wait_idle_covers_tasks_spawned_later(self) -> None:
        slots = TaskSlots()
        log: list[str] = []

        async def parent() -> None:
            await asyncio.sleep(0)
            slots.spawn(_sleeper(log, "child", 0.01))

        slots.spawn(parent())
        await slots.wait_idle()
        assert log == ["child:done"]
        assert slots.pending() == []

    async def test_failing_task_does_not_break_wait_idle(self) -> None:
        slots = TaskSlots()

        async def boom() -> None:
            raise RuntimeError("boom")

        slots.spawn(boom())
        await slots.wait_idle()
        assert slots.pending() == []
