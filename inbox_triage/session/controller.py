"""Triage session controller — optimistic actions, undo, prefetch and offline sync.

All state changes happen synchronously on the event loop and are rendered
before any helper command is dispatched; helper results arrive later as
completed tasks and are folded back in.  Backend failures never roll back a
local change: a failed triage command is queued for a later sync instead.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from inbox_triage.config import TriageConfig
from inbox_triage.helper.client import HelperClient
from inbox_triage.helper.slots import TaskSlots
from inbox_triage.helper.types import (
    Email,
    Err,
    ErrorKind,
    HelperResult,
    Label,
    as_int,
    parse_emails,
    parse_labels,
)
from inbox_triage.session.actions import (
    REVERSE_COMMAND,
    TRIAGE_COMMANDS,
    KeyCommand,
    KeyEvent,
    TriageAction,
)
from inbox_triage.session.cache import EmailCache
from inbox_triage.session.prefetch import PREFETCH_SLOT, PrefetchScheduler
from inbox_triage.session.state import Phase, SessionState, TriageView, UndoEntry

logger = logging.getLogger(__name__)

FETCH_SLOT = "fetch"
ACTION_SLOT = "action"
LABELS_SLOT = "labels"

# Failures that say something about connectivity rather than the request.
_CONNECTIVITY_ERRORS = frozenset(
    {ErrorKind.UNREACHABLE, ErrorKind.TIMEOUT, ErrorKind.EXIT_STATUS, ErrorKind.OFFLINE}
)


# ── Presentation interface ─────────────────────────────────────────────────────


@runtime_checkable
class Renderer(Protocol):
    """Presentation layer: draws whatever the controller hands it."""

    def render(self, view: TriageView) -> None:
        ...


class NullRenderer:
    """Renderer that draws nothing — for headless use (prefetch/sync commands)."""

    def render(self, view: TriageView) -> None:
        pass


# ── Controller ─────────────────────────────────────────────────────────────────


class TriageController:
    """Owns the process-wide cache and, while the panel is open, one session.

    Usage::

        controller = TriageController(HelperClient(path), config, renderer)
        await controller.start()
        await controller.open()
        controller.handle_key(KeyEvent(KeyCommand.ARCHIVE))
        ...
        controller.close()
        await controller.shutdown()
    """

    def __init__(
        self,
        helper: HelperClient,
        config: TriageConfig | None = None,
        renderer: Renderer | None = None,
        cache: EmailCache | None = None,
    ) -> None:
        self._helper = helper
        self._config = config or TriageConfig()
        self._renderer = renderer or NullRenderer()
        self._cache = cache or EmailCache(helper)
        self._slots = TaskSlots()
        self._session: SessionState | None = None
        self._labels: list[Label] = []
        # Ids triaged locally; kept out of fetch merges until undone or gone server-side.
        self._removed: set[str] = set()
        # Latest unfinished helper command for each email id.
        self._intent: dict[str, str] = {}
        # Ids whose triage command succeeded, with the fetch count at that moment.
        self._confirmed: dict[str, int] = {}
        self._fetches = 0
        self._queueing = 0
        self._prefetch = PrefetchScheduler(
            self._slots,
            self._fetch_batch,
            self._buffered,
            threshold=self._config.refetch_threshold,
            debounce_seconds=self._config.debounce_seconds,
            batch_size=self._config.max_emails,
            initial_batch=self._config.initial_fetch,
        )

    # ── Introspection ──────────────────────────────────────────────────────────

    @property
    def visible(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> SessionState | None:
        return self._session

    @property
    def cache(self) -> EmailCache:
        return self._cache

    @property
    def prefetcher(self) -> PrefetchScheduler:
        return self._prefetch

    @property
    def labels(self) -> list[Label]:
        return list(self._labels)

    @property
    def phase(self) -> Phase:
        return self._session.phase if self._session is not None else Phase.CLOSED

    @property
    def label_picker_visible(self) -> bool:
        return self._session is not None and self._session.label_picker_visible

    def view(self) -> TriageView:
        session = self._session
        if session is None:
            return TriageView(
                phase=Phase.CLOSED,
                online=self._cache.online,
                pending=self._cache.pending_count,
            )
        return TriageView(
            phase=session.phase,
            email=session.current_email,
            position=session.current_index if session.emails else 0,
            buffered=len(session.emails),
            remaining=session.remaining,
            triaged=session.triaged,
            online=self._cache.online,
            pending=self._cache.pending_count,
            error=session.error,
            scroll_offset=session.scroll_offset,
            label_picker_visible=session.label_picker_visible,
            labels=tuple(self._labels),
            active_label_ids=frozenset(session.active_label_ids),
        )

    def render(self) -> None:
        self._renderer.render(self.view())

    # ── Process lifecycle ──────────────────────────────────────────────────────

    async def start(self) -> None:
        """Load the disk cache and check connectivity once at process start."""
        await self._cache.load()
        online = await self.check_online()
        logger.info("Triage controller ready (online=%s, cached=%d)", online, len(self._cache))

    async def shutdown(self) -> None:
        """Close the panel, stop background fetching and wait for queued work."""
        self.close()
        self._prefetch.cancel_timer()
        self._slots.cancel(PREFETCH_SLOT)
        await self.wait_idle()

    async def wait_idle(self) -> None:
        """Wait until no helper command or cache save is outstanding."""
        while True:
            await self._slots.wait_idle()
            await self._cache.flush()
            if not self._slots.pending():
                return

    def warm(self) -> bool:
        """Two-stage background prefetch into the cache (quick batch, then full)."""
        return self._prefetch.warm()

    # ── Panel lifecycle ────────────────────────────────────────────────────────

    async def open(self) -> Phase:
        """Show the panel: paint from the disk cache if usable, else fetch live."""
        if self._session is not None:
            return self._session.phase

        session = SessionState()
        self._session = session

        result = await self._helper.cache_load()
        if self._session is not session:
            return self.phase

        if not isinstance(result, Err):
            emails = self._unremoved(parse_emails(result.payload))
            total = as_int(result.payload.get("total"))
            # An empty or zero-total cache must not mask a real inbox.
            if emails and total > 0:
                session.populate(emails, total)
                self._cache.replace(emails, total)
                self.render()
                self._slots.start(FETCH_SLOT, self._refresh(session))
                return session.phase

        session.loading = True
        session.error = None
        self.render()
        self._slots.start(FETCH_SLOT, self._initial_fetch(session))
        return session.phase

    def close(self) -> None:
        """Hide the panel; keep prefetching into the cache for next time."""
        if self._session is None:
            return
        self._session = None
        self._slots.cancel(ACTION_SLOT)
        self._slots.cancel(FETCH_SLOT)
        self._slots.cancel(LABELS_SLOT)
        self._prefetch.cancel_timer()
        self._cache.persist()
        self.render()
        self._prefetch.warm()

    # ── Input ──────────────────────────────────────────────────────────────────

    def handle_key(self, event: KeyEvent) -> bool:
        """Apply one logical key action. Returns True if it was consumed."""
        session = self._session
        if session is None:
            return False

        if event.command is KeyCommand.CLOSE:
            if session.label_picker_visible:
                self.close_label_picker()
            else:
                self.close()
            return True

        if session.label_picker_visible:
            if event.command is KeyCommand.TOGGLE_LABEL:
                self.toggle_label(event.hint)
                return True
            return False

        if session.loading:
            return False

        if event.command in TRIAGE_COMMANDS:
            self.perform(TRIAGE_COMMANDS[event.command])
        elif event.command is KeyCommand.OPEN_LABEL_PICKER:
            self.open_label_picker()
        elif event.command is KeyCommand.UNDO:
            self.undo()
        elif event.command is KeyCommand.SCROLL:
            self.scroll(event.amount)
        else:
            return False
        return True

    def scroll(self, amount: int) -> None:
        session = self._session
        if session is None:
            return
        session.scroll_offset = max(0, session.scroll_offset + amount)
        self.render()

    # ── Triage actions ─────────────────────────────────────────────────────────

    def perform(self, action: TriageAction) -> bool:
        """Optimistically triage the current email. Returns False if there was none."""
        session = self._session
        if session is None:
            return False
        email = session.current_email
        if email is None:
            session.loading = True
            self.render()
            self._prefetch.schedule()
            return False
        self._commit(session, email, action)
        return True

    def undo(self) -> bool:
        """Restore the most recently triaged email of this session."""
        session = self._session
        if session is None or not session.undo_stack:
            return False

        entry = session.undo_stack.pop()
        email = entry.email
        session.reinsert(email, entry.index)
        session.triaged = max(0, session.triaged - 1)
        session.total += 1
        self._cache.restore(email)
        self._removed.discard(email.id)
        self._confirmed.pop(email.id, None)

        self.render()
        self._cache.persist()

        reverse = REVERSE_COMMAND[entry.action]
        self._intent[email.id] = reverse
        self._slots.start(ACTION_SLOT, self._reverse(email, reverse, entry.label_id))
        return True

    def _commit(
        self,
        session: SessionState,
        email: Email,
        action: TriageAction,
        label_id: str | None = None,
    ) -> None:
        session.undo_stack.append(UndoEntry(email, action, session.current_index, label_id))
        session.triaged += 1
        if session.total > 0:
            session.total -= 1
        session.take_current()
        self._cache.remove(email.id)
        self._removed.add(email.id)

        self.render()
        self._prefetch.schedule()
        self._cache.persist()

        if label_id is not None:
            self._slots.spawn(self._label_call(self._helper.add_label, email.id, label_id))

        command = action.backend_command
        self._intent[email.id] = command
        if not self._cache.online:
            self._slots.spawn(self._queue(email, command))
            return
        self._slots.start(ACTION_SLOT, self._run_action(email, command))

    async def _run_action(self, email: Email, command: str) -> None:
        try:
            result = await self._helper.act(command, email.id)
        except asyncio.CancelledError:
            if self._intent.get(email.id) == command:
                logger.info("%s %s interrupted — queueing for sync", command, email.id)
                self._slots.spawn(self._queue(email, command))
            raise

        if isinstance(result, Err):
            logger.warning("%s %s failed (%s) — going offline and queueing", command, email.id, result.message)
            self._cache.online = False
            await self._queue(email, command)
            if self._session is not None:
                self._session.error = None
            self._render_if_visible()
            return
        self._settle(email.id, command)
        if email.id in self._removed:
            self._confirmed[email.id] = self._fetches

    async def _reverse(self, email: Email, command: str, label_id: str | None) -> None:
        if label_id is not None:
            self._slots.spawn(self._label_call(self._helper.remove_label, email.id, label_id))
        if not self._cache.online or self._cache.pending_count > 0 or self._queueing:
            # The forward command may still sit in the helper's queue; keep the order.
            await self._queue(email, command)
            return
        try:
            result = await self._helper.act(command, email.id)
        except asyncio.CancelledError:
            if self._intent.get(email.id) == command:
                self._slots.spawn(self._queue(email, command))
            raise
        if isinstance(result, Err):
            # The local undo stands regardless.
            logger.warning("Undo %s for %s failed: %s", command, email.id, result.message)
            self._note_failure(result)
            if self._session is not None:
                self._session.error = None
            if result.kind in _CONNECTIVITY_ERRORS:
                await self._queue(email, command)
                return
            self._render_if_visible()
        self._settle(email.id, command)

    async def _queue(self, email: Email, command: str) -> None:
        self._queueing += 1
        try:
            result = await self._helper.queue(email, command)
        finally:
            self._queueing -= 1
            self._settle(email.id, command)
        if isinstance(result, Err):
            logger.error("Could not queue %s for %s: %s", command, email.id, result.message)
            return
        self._cache.pending_count += 1
        logger.info("Queued %s for %s (%d pending)", command, email.id, self._cache.pending_count)
        self._render_if_visible()

    def _settle(self, email_id: str, command: str) -> None:
        """Forget the intent once ``command`` has run or been queued."""
        if self._intent.get(email_id) == command:
            del self._intent[email_id]

    # ── Labels ─────────────────────────────────────────────────────────────────

    def open_label_picker(self) -> bool:
        session = self._session
        email = session.current_email if session is not None else None
        if session is None or email is None:
            return False
        session.label_picker_visible = True
        session.active_label_ids = set(email.label_ids)
        self.render()
        self._slots.start(LABELS_SLOT, self._refresh_labels())
        return True

    def close_label_picker(self) -> None:
        session = self._session
        if session is None or not session.label_picker_visible:
            return
        session.label_picker_visible = False
        self.render()

    def toggle_label(self, hint: int) -> bool:
        """Remove an applied label in place, or apply an absent one and archive."""
        session = self._session
        if session is None or not 0 <= hint < len(self._labels):
            return False
        email = session.current_email
        if email is None:
            return False
        label = self._labels[hint]

        if label.id in session.active_label_ids:
            session.active_label_ids.discard(label.id)
            updated = email.with_labels([lid for lid in email.label_ids if lid != label.id])
            session.update(updated)
            self._cache.update(updated)
            self.render()
            self._slots.spawn(self._label_call(self._helper.remove_label, email.id, label.id))
            return True

        session.label_picker_visible = False
        self._commit(session, email, TriageAction.LABEL, label_id=label.id)
        return True

    async def _refresh_labels(self) -> None:
        result = await self._helper.labels()
        if isinstance(result, Err):
            logger.warning("Could not load labels: %s", result.message)
            self._note_failure(result)
            self._render_if_visible()
            return
        self._labels = parse_labels(result.payload)
        if self.label_picker_visible:
            self.render()

    async def _label_call(
        self,
        call: Callable[[str, str], Awaitable[HelperResult]],
        email_id: str,
        label_id: str,
    ) -> None:
        result = await call(email_id, label_id)
        if isinstance(result, Err):
            logger.warning("Label %s on %s failed: %s", label_id, email_id, result.message)
            self._note_failure(result)
            self._render_if_visible()

    # ── Fetching ───────────────────────────────────────────────────────────────

    async def _initial_fetch(self, session: SessionState) -> None:
        seq = self._begin_fetch()
        result = await self._helper.fetch(self._config.max_emails)
        self._cache.mark_fetched()
        if self._session is not session:
            return
        session.loading = False
        if isinstance(result, Err):
            self._note_failure(result)
            logger.warning("Fetch failed: %s", result.message)
            session.error = f"Fetch failed: {result.message}"
            self.render()
            return

        emails, total = self._accept(result.payload, seq)
        total = total or len(emails)
        session.populate(emails, total)
        self._cache.replace(emails, total)
        self._cache.persist()
        self.render()

    async def _refresh(self, session: SessionState) -> None:
        """Reconcile an instantly-painted cache with the live inbox."""
        seq = self._begin_fetch()
        result = await self._helper.fetch(self._config.max_emails)
        self._cache.mark_fetched()
        if isinstance(result, Err):
            self._note_failure(result)
            logger.warning("Background refresh failed: %s", result.message)
            if self._session is session:
                session.error = f"Refresh failed: {result.message}"
                self.render()
            return

        fresh, total = self._accept(result.payload, seq)
        self._cache.reconcile(fresh, total)
        if self._session is session:
            session.reconcile(fresh, total)
            session.error = None
            self.render()
        self._cache.persist()

    async def _fetch_batch(self, max_count: int) -> int | None:
        """Prefetch one batch, merging by id into cache and (if open) session."""
        seq = self._begin_fetch()
        result = await self._helper.fetch(max_count)
        self._cache.mark_fetched()
        session = self._session

        if isinstance(result, Err):
            self._note_failure(result)
            logger.warning("Prefetch of %d failed: %s", max_count, result.message)
            if session is not None and session.loading:
                session.loading = False
                session.error = f"Fetch failed: {result.message}"
                self.render()
            return None

        emails, total = self._accept(result.payload, seq)
        added = self._cache.merge(emails, total or None)
        self._cache.persist()

        if session is not None:
            before = len(session.emails)
            session.merge(emails, total or None)
            session.loading = False
            session.error = None
            added = len(session.emails) - before
            self.render()
        logger.debug("Prefetch merged %d new email(s)", added)
        return added

    def _begin_fetch(self) -> int:
        self._fetches += 1
        return self._fetches

    def _accept(self, payload: dict[str, Any], seq: int) -> tuple[list[Email], int]:
        """Parse a fetch payload, leaving out emails triaged in this process.

        The server total still counts the triaged emails it listed, so they
        are subtracted from it.  Confirmed ids that a fetch started after the
        confirmation no longer lists are gone server-side and stop being
        filtered.
        """
        listed = parse_emails(payload)
        listed_ids = {e.id for e in listed}
        for email_id, confirmed_at in list(self._confirmed.items()):
            if confirmed_at < seq and email_id not in listed_ids:
                del self._confirmed[email_id]
                self._removed.discard(email_id)

        emails = self._unremoved(listed)
        total = as_int(payload.get("total"))
        if total > 0:
            total = max(0, total - len(listed_ids & self._removed))
        return emails, total

    def _buffered(self) -> int:
        if self._session is not None:
            return len(self._session.emails)
        return len(self._cache)

    def _unremoved(self, emails: list[Email]) -> list[Email]:
        return [e for e in emails if e.id not in self._removed]

    # ── Connectivity ───────────────────────────────────────────────────────────

    async def check_online(self) -> bool:
        result = await self._helper.check_online()
        online = not isinstance(result, Err) and result.payload.get("online") is True
        changed = online != self._cache.online
        self._cache.online = online
        if changed:
            logger.info("Connectivity changed: online=%s", online)
            self._render_if_visible()
        return online

    async def sync(self) -> int:
        """Ask the helper to flush its offline queue; return how many synced."""
        result = await self._helper.sync()
        if isinstance(result, Err):
            self._cache.online = False
            if result.kind is ErrorKind.OFFLINE:
                self._cache.pending_count = as_int(
                    result.payload.get("pending"), default=self._cache.pending_count
                )
                # Offline is an operating mode, not a fault.
                if self._session is not None:
                    self._session.error = None
            else:
                logger.warning("Sync failed: %s", result.message)
            self._render_if_visible()
            return 0

        self._cache.online = True
        self._cache.pending_count = as_int(result.payload.get("pending"))
        synced = as_int(result.payload.get("synced"))
        if synced > 0:
            logger.info("Synced %d queued action(s); %d pending", synced, self._cache.pending_count)
            self._render_if_visible()
        return synced

    async def sync_tick(self) -> None:
        """Periodic job: flush the queue if anything is pending, else re-check connectivity."""
        if self._cache.pending_count > 0:
            await self.sync()
        else:
            await self.check_online()

    def _note_failure(self, result: Err) -> None:
        if result.kind in _CONNECTIVITY_ERRORS and self._cache.online:
            logger.info("Marking offline after %s failure", result.kind.value)
            self._cache.online = False

    def _render_if_visible(self) -> None:
        if self._session is not None:
            self.render()
