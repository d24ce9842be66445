"""Debounced background prefetch that keeps a buffer of emails ahead of the user."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from inbox_triage.helper.slots import TaskSlots

logger = logging.getLogger(__name__)

PREFETCH_SLOT = "prefetch"
TIMER_SLOT = "prefetch-timer"

#: Fetches up to N emails and merges them; returns how many new ids were
#: added, or None if the fetch failed.
FetchBatch = Callable[[int], Awaitable[int | None]]


class PrefetchScheduler:
    """Refills the buffer when it drops below the low-water mark.

    * At most one batch fetch is in flight (the ``prefetch`` slot is guarded,
      never preempted).
    * ``schedule()`` arms a debounce timer; calling it while the timer is armed
      or a fetch is running is a no-op.
    * After a debounced fetch that added emails, the scheduler re-evaluates and
      re-arms itself if the buffer is still low.
    """

    def __init__(
        self,
        slots: TaskSlots,
        fetch_batch: FetchBatch,
        buffered: Callable[[], int],
        *,
        threshold: int = 15,
        debounce_seconds: float = 0.5,
        batch_size: int = 500,
        initial_batch: int = 50,
    ) -> None:
        self._slots = slots
        self._fetch_batch = fetch_batch
        self._buffered = buffered
        self._threshold = threshold
        self._debounce = debounce_seconds
        self._batch_size = batch_size
        self._initial_batch = initial_batch

    @property
    def busy(self) -> bool:
        """A batch fetch is in flight."""
        return self._slots.busy(PREFETCH_SLOT)

    @property
    def armed(self) -> bool:
        """The debounce timer is pending."""
        return self._slots.busy(TIMER_SLOT)

    def schedule(self) -> bool:
        """Arm the debounce timer if the buffer is low. Returns True if armed."""
        if self.busy:
            return False
        return self._arm()

    def fetch_now(self, max_count: int | None = None) -> bool:
        """Start one batch fetch immediately unless one is already running."""
        return self._start(max_count or self._batch_size, follow_up=None, chain=False)

    def warm(self) -> bool:
        """Two-stage fetch: a quick small batch, then the full-size batch."""
        return self._start(self._initial_batch, follow_up=self._batch_size, chain=False)

    def cancel_timer(self) -> None:
        self._slots.cancel(TIMER_SLOT)

    # ── Internal ───────────────────────────────────────────────────────────────

    def _arm(self) -> bool:
        if self.armed:
            return False
        count = self._buffered()
        if count >= self._threshold:
            return False
        logger.debug("Buffer at %d (< %d) — prefetch in %.2fs", count, self._threshold, self._debounce)
        self._slots.start(TIMER_SLOT, self._debounced())
        return True

    def _start(self, max_count: int, follow_up: int | None, chain: bool) -> bool:
        if self.busy:
            logger.debug("Prefetch already in flight — skipping")
            return False
        self._slots.start(PREFETCH_SLOT, self._run(max_count, follow_up, chain))
        return True

    async def _debounced(self) -> None:
        await asyncio.sleep(self._debounce)
        self._start(self._batch_size, follow_up=None, chain=True)

    async def _run(self, max_count: int, follow_up: int | None, chain: bool) -> None:
        added = await self._fetch_batch(max_count)
        if added is not None and follow_up is not None:
            added = await self._fetch_batch(follow_up)
        if chain and added:
            # The timer fires after this task has finished, so the slot is free by then.
            self._arm()
