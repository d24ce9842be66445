"""Named asyncio task slots with at-most-one-in-flight semantics."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class TaskSlots:
    """Tracks background work on a single-threaded event loop.

    A *named* slot holds at most one task: starting a new task in a slot that
    is still running cancels the old one first.  Unnamed work started with
    ``spawn()`` is simply kept alive until it finishes.
    """

    def __init__(self) -> None:
        self._slots: dict[str, asyncio.Task[Any]] = {}
        self._background: set[asyncio.Task[Any]] = set()

    def start(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Run ``coro`` in slot ``name``, preempting whatever occupies it."""
        previous = self._slots.get(name)
        if previous is not None and not previous.done():
            logger.debug("Slot %r superseded — cancelling previous task", name)
            self._retire(previous)
        task = asyncio.create_task(coro, name=name)
        self._slots[name] = task
        task.add_done_callback(lambda t: self._release(name, t))
        return task

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Fire-and-forget; the task is tracked so wait_idle() can await it."""
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._finished)
        return task

    def busy(self, name: str) -> bool:
        task = self._slots.get(name)
        return task is not None and not task.done()

    def cancel(self, name: str) -> None:
        task = self._slots.pop(name, None)
        if task is not None and not task.done():
            self._retire(task)

    def cancel_all(self) -> None:
        for name in list(self._slots):
            self.cancel(name)

    def pending(self) -> list[asyncio.Task[Any]]:
        return [t for t in (*self._slots.values(), *self._background) if not t.done()]

    async def wait_idle(self) -> None:
        """Wait until no tracked task is outstanding, including ones started meanwhile."""
        while True:
            tasks = self.pending()
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    # ── Internal ───────────────────────────────────────────────────────────────

    def _retire(self, task: asyncio.Task[Any]) -> None:
        # Cancelled tasks stay tracked until their cleanup has run.
        self._background.add(task)
        task.cancel()

    def _release(self, name: str, task: asyncio.Task[Any]) -> None:
        if self._slots.get(name) is task:
            del self._slots[name]
        self._finished(task)

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task %s failed: %s", task.get_name(), exc, exc_info=exc)
