"""Rich-based renderer for the interactive triage panel."""

from __future__ import annotations

from rich import box
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from inbox_triage.session.actions import LABEL_HINTS
from inbox_triage.session.progress import battery_progress, describe_date, medal_counts
from inbox_triage.session.state import Phase, TriageView

_HELP = "[e] archive  [x] delete  [t] task  [s] suppress  [l] label  [u] undo  [j/k] scroll  [q] close"
_BODY_LINES = 30


class RichRenderer:
    """Redraws the whole panel on every state change."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def render(self, view: TriageView) -> None:
        if view.phase is Phase.CLOSED:
            self._console.clear()
            return
        self._console.clear()
        self._console.print(self.build(view))

    def build(self, view: TriageView) -> Panel:
        parts: list[object] = [self._header(view)]

        if view.phase is Phase.LOADING:
            parts.append(Text("⟳ Loading inbox…", style="cyan"))
        elif view.phase is Phase.ERROR:
            parts.append(Text(view.error or "Something went wrong", style="red"))
        elif view.phase is Phase.EMPTY:
            parts.append(Text("Inbox zero 🎉", style="bold green"))
        elif view.email is not None:
            parts.append(self._email(view))
            if view.error:
                parts.append(Text(view.error, style="yellow"))

        if view.label_picker_visible:
            parts.append(self._label_picker(view))

        return Panel(
            Group(*parts),  # type: ignore[arg-type]
            title="[bold]Email Triage[/bold]",
            subtitle=f"[dim]{_HELP}[/dim]",
            box=box.ROUNDED,
            border_style="green" if view.online else "yellow",
        )

    # ── Sections ───────────────────────────────────────────────────────────────

    @staticmethod
    def _header(view: TriageView) -> Text:
        medals = medal_counts(view.triaged)
        filled, capacity, _ = battery_progress(view.triaged)
        header = Text()
        header.append(f"{view.remaining} remaining", style="bold")
        header.append(f"  ·  {view.triaged} triaged  ")
        header.append("█" * filled + "░" * (capacity - filled), style="green")
        header.append(f"  🥇{medals.gold} 🥈{medals.silver} 🥉{medals.bronze}")
        if not view.online:
            header.append("  offline", style="bold yellow")
        if view.pending:
            header.append(f"  {view.pending} pending sync", style="yellow")
        return header

    @staticmethod
    def _email(view: TriageView) -> Group:
        email = view.email
        assert email is not None
        nice_date, ago = describe_date(email.date)
        meta = Table.grid(padding=(0, 2))
        meta.add_column(style="dim")
        meta.add_column()
        meta.add_row("From", email.sender)
        meta.add_row("Subject", Text(email.subject or "(no subject)", style="bold"))
        meta.add_row("Date", f"{nice_date} ({ago})" if ago else nice_date)
        meta.add_row("", Text(f"{view.position} of {view.buffered} loaded", style="dim"))

        lines = (email.body or email.snippet).splitlines()
        visible = "\n".join(lines[view.scroll_offset:view.scroll_offset + _BODY_LINES])
        return Group(meta, Text(""), Text(visible))

    @staticmethod
    def _label_picker(view: TriageView) -> Table:
        table = Table(box=box.SIMPLE, show_header=True, header_style="bold cyan", title="Labels")
        table.add_column("Key", width=3)
        table.add_column("Label")
        table.add_column("", width=2)
        if not view.labels:
            table.add_row("", "[dim]Loading labels…[/dim]", "")
        for hint, label in zip(LABEL_HINTS, view.labels):
            mark = "✓" if label.id in view.active_label_ids else ""
            table.add_row(hint, label.name, mark)
        return table
