"""Process-wide email cache, shared across panel open/close cycles.

The cache is the single source of truth persisted to disk (through the
helper's ``cache-save``) after every mutation, and loaded once at startup.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from typing import Any

from inbox_triage.helper.client import HelperClient
from inbox_triage.helper.types import Email, Err, as_int, parse_emails

logger = logging.getLogger(__name__)


# ── List helpers (shared with the session list) ────────────────────────────────


def sort_by_date(emails: list[Email]) -> None:
    """Sort in place, newest first."""
    emails.sort(key=lambda e: e.internal_date, reverse=True)


def dedupe(emails: Iterable[Email]) -> list[Email]:
    """Keep the first occurrence of every id."""
    seen: set[str] = set()
    result: list[Email] = []
    for email in emails:
        if email.id not in seen:
            seen.add(email.id)
            result.append(email)
    return result


def merge_emails(existing: list[Email], incoming: Iterable[Email]) -> list[Email]:
    """Append incoming emails whose id is not present yet, then re-sort.

    Returns the merged list; ``existing`` is not modified.
    """
    merged = dedupe([*existing, *incoming])
    sort_by_date(merged)
    return merged


def reconcile_emails(current: list[Email], fresh: list[Email]) -> list[Email]:
    """Replace the working set with the server's view of the inbox.

    Drops anything no longer present in ``fresh`` (triaged elsewhere), keeps the
    remaining local copies, appends new ids, and re-sorts.
    """
    fresh_ids = {e.id for e in fresh}
    kept = [e for e in current if e.id in fresh_ids]
    return merge_emails(kept, fresh)


def remove_by_id(emails: list[Email], email_id: str) -> int | None:
    """Remove the first email with ``email_id``; return its 0-based position."""
    for i, email in enumerate(emails):
        if email.id == email_id:
            del emails[i]
            return i
    return None


def replace_by_id(emails: list[Email], email: Email) -> bool:
    for i, existing in enumerate(emails):
        if existing.id == email.id:
            emails[i] = email
            return True
    return False


# ── Cache ──────────────────────────────────────────────────────────────────────


class EmailCache:
    """Buffered emails plus connectivity bookkeeping.

    Attributes:
        emails: id-unique, sorted by internal_date descending.
        total: server-reported inbox total (decremented optimistically).
        last_fetch: epoch seconds of the last completed fetch attempt.
        online: current connectivity belief.
        pending_count: actions waiting in the helper's offline queue.
    """

    def __init__(self, helper: HelperClient) -> None:
        self._helper = helper
        self.emails: list[Email] = []
        self.total = 0
        self.last_fetch = 0.0
        self.online = True
        self.pending_count = 0
        self._dirty = False
        self._save_task: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self.emails)

    # ── Mutations ──────────────────────────────────────────────────────────────

    def replace(self, emails: Iterable[Email], total: int) -> None:
        self.emails = dedupe(emails)
        sort_by_date(self.emails)
        self.total = total

    def merge(self, incoming: Iterable[Email], total: int | None = None) -> int:
        """Merge a fetch result; return how many new ids were added."""
        before = len(self.emails)
        self.emails = merge_emails(self.emails, incoming)
        if total is not None:
            self.total = total
        return len(self.emails) - before

    def reconcile(self, fresh: list[Email], total: int) -> None:
        self.emails = reconcile_emails(self.emails, fresh)
        self.total = total

    def remove(self, email_id: str) -> None:
        remove_by_id(self.emails, email_id)
        if self.total > 0:
            self.total -= 1

    def restore(self, email: Email) -> None:
        """Put an undone email back and count it again."""
        remove_by_id(self.emails, email.id)
        self.emails.append(email)
        sort_by_date(self.emails)
        self.total += 1

    def update(self, email: Email) -> None:
        replace_by_id(self.emails, email)

    def mark_fetched(self) -> None:
        self.last_fetch = time.time()

    # ── Persistence ────────────────────────────────────────────────────────────

    def to_payload(self) -> dict[str, Any]:
        return {"emails": [e.to_dict() for e in self.emails], "total": self.total}

    async def load(self) -> bool:
        """Populate from the on-disk cache. Returns True if anything was loaded."""
        result = await self._helper.cache_load()
        if isinstance(result, Err):
            logger.info("No disk cache loaded: %s", result.message)
            return False
        emails = parse_emails(result.payload)
        self.replace(emails, as_int(result.payload.get("total")) or len(emails))
        logger.info("Loaded %d cached email(s) from disk (total=%d)", len(self.emails), self.total)
        return bool(self.emails)

    def persist(self) -> None:
        """Schedule a save of the current state.

        Saves are serialised: while one is running, further calls only mark
        the cache dirty, and the latest state is written once it finishes.
        """
        self._dirty = True
        if self._save_task is None or self._save_task.done():
            self._save_task = asyncio.create_task(self._flush())

    async def flush(self) -> None:
        """Wait for any scheduled save to complete."""
        while self._save_task is not None and not self._save_task.done():
            await asyncio.gather(self._save_task, return_exceptions=True)

    async def _flush(self) -> None:
        while self._dirty:
            self._dirty = False
            result = await self._helper.cache_save(self.to_payload())
            if isinstance(result, Err):
                logger.warning("cache-save failed: %s", result.message)
