"""Triage actions and the logical key-action surface."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TriageAction(str, Enum):
    """A terminal decision that removes an email from the working inbox view.

    Values are the helper command names, except LABEL (add-label + archive).
    """

    ARCHIVE = "archive"
    DELETE = "delete"
    TASK = "task"          # create a task, then archive
    SUPPRESS = "suppress"  # create an unsubscribe task, then archive
    LABEL = "label"        # apply a label, then archive

    @property
    def backend_command(self) -> str:
        """The helper command (and offline-queue action) that carries this out."""
        return "archive" if self is TriageAction.LABEL else self.value


#: Reverse helper command fired by undo.  Task, suppress and label have no true
#: inverse; unarchiving only restores inbox visibility.
REVERSE_COMMAND: dict[TriageAction, str] = {
    TriageAction.ARCHIVE: "unarchive",
    TriageAction.DELETE: "undelete",
    TriageAction.TASK: "unarchive",
    TriageAction.SUPPRESS: "unarchive",
    TriageAction.LABEL: "unarchive",
}

#: Picker hint characters; the n-th character selects the n-th label.
LABEL_HINTS = "abcdfghijkmnopqruvwyz1234567890"


class KeyCommand(str, Enum):
    ARCHIVE = "archive"
    DELETE = "delete"
    TASK = "task"
    SUPPRESS = "suppress"
    OPEN_LABEL_PICKER = "open_label_picker"
    TOGGLE_LABEL = "toggle_label"
    UNDO = "undo"
    SCROLL = "scroll"
    CLOSE = "close"


TRIAGE_COMMANDS: dict[KeyCommand, TriageAction] = {
    KeyCommand.ARCHIVE: TriageAction.ARCHIVE,
    KeyCommand.DELETE: TriageAction.DELETE,
    KeyCommand.TASK: TriageAction.TASK,
    KeyCommand.SUPPRESS: TriageAction.SUPPRESS,
}


@dataclass(frozen=True)
class KeyEvent:
    """One discrete logical input, independent of the physical key."""

    command: KeyCommand
    hint: int = 0      # TOGGLE_LABEL: zero-based label index
    amount: int = 0    # SCROLL: signed number of lines

    @classmethod
    def toggle_label(cls, hint: int) -> KeyEvent:
        return cls(KeyCommand.TOGGLE_LABEL, hint=hint)

    @classmethod
    def scroll(cls, direction: int, amount: int) -> KeyEvent:
        return cls(KeyCommand.SCROLL, amount=(1 if direction >= 0 else -1) * abs(amount))
