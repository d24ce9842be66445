"""Per-session state: created when the panel opens, dropped when it closes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from inbox_triage.helper.types import Email, Label
from inbox_triage.session.actions import TriageAction
from inbox_triage.session.cache import dedupe, merge_emails, reconcile_emails, remove_by_id, replace_by_id, sort_by_date


class Phase(str, Enum):
    CLOSED = "closed"
    LOADING = "loading"
    READY = "ready"
    EMPTY = "empty"
    ERROR = "error"


@dataclass(frozen=True)
class UndoEntry:
    """Snapshot pushed for every terminal action; popped by undo."""

    email: Email
    action: TriageAction
    index: int                   # 1-based position the email occupied
    label_id: str | None = None  # LABEL only


@dataclass
class SessionState:
    """Working set for one open panel.

    ``current_index`` is 1-based and always within ``1..max(1, len(emails))``.
    """

    emails: list[Email] = field(default_factory=list)
    current_index: int = 1
    total: int = 0
    triaged: int = 0
    undo_stack: list[UndoEntry] = field(default_factory=list)
    loading: bool = False
    error: str | None = None
    scroll_offset: int = 0
    label_picker_visible: bool = False
    active_label_ids: set[str] = field(default_factory=set)

    @property
    def current_email(self) -> Email | None:
        if 1 <= self.current_index <= len(self.emails):
            return self.emails[self.current_index - 1]
        return None

    @property
    def phase(self) -> Phase:
        if self.loading:
            return Phase.LOADING
        if self.emails:
            return Phase.READY
        if self.error:
            return Phase.ERROR
        return Phase.EMPTY

    @property
    def remaining(self) -> int:
        """Server total when known, otherwise the buffered count."""
        return self.total if self.total > 0 else len(self.emails)

    def clamp_index(self) -> None:
        self.current_index = min(max(1, self.current_index), max(1, len(self.emails)))

    # ── List operations ────────────────────────────────────────────────────────

    def populate(self, emails: list[Email], total: int) -> None:
        self.emails = dedupe(emails)
        sort_by_date(self.emails)
        self.total = total
        self.current_index = 1
        self.scroll_offset = 0

    def merge(self, incoming: list[Email], total: int | None = None) -> None:
        self.emails = merge_emails(self.emails, incoming)
        if total is not None:
            self.total = total
        self.clamp_index()

    def reconcile(self, fresh: list[Email], total: int) -> None:
        self.emails = reconcile_emails(self.emails, fresh)
        self.total = total
        self.clamp_index()

    def take_current(self) -> Email | None:
        """Remove the email under the cursor and clamp the cursor."""
        email = self.current_email
        if email is None:
            return None
        del self.emails[self.current_index - 1]
        self.clamp_index()
        self.scroll_offset = 0
        return email

    def reinsert(self, email: Email, index: int) -> int:
        """Insert ``email`` at (clamped) 1-based ``index``; return where it landed."""
        remove_by_id(self.emails, email.id)
        position = min(max(1, index), len(self.emails) + 1)
        self.emails.insert(position - 1, email)
        self.current_index = position
        self.scroll_offset = 0
        return position

    def update(self, email: Email) -> None:
        replace_by_id(self.emails, email)


@dataclass(frozen=True)
class TriageView:
    """Immutable snapshot handed to the presentation layer."""

    phase: Phase
    email: Email | None = None
    position: int = 0
    buffered: int = 0
    remaining: int = 0
    triaged: int = 0
    online: bool = True
    pending: int = 0
    error: str | None = None
    scroll_offset: int = 0
    label_picker_visible: bool = False
    labels: tuple[Label, ...] = ()
    active_label_ids: frozenset[str] = frozenset()
