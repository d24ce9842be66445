"""Tests for terminal key mapping."""

import pytest

from inbox_triage.cli.keys import LINE_STEP, PAGE_STEP, key_event_for
from inbox_triage.session.actions import LABEL_HINTS, KeyCommand, KeyEvent


class TestMainKeys:
    @pytest.mark.parametrize(
        ("key", "command"),
        [
            ("e", KeyCommand.ARCHIVE),
            ("x", KeyCommand.DELETE),
            ("t", KeyCommand.TASK),
            ("s", KeyCommand.SUPPRESS),
            ("l", KeyCommand.OPEN_LABEL_PICKER),
            ("u", KeyCommand.UNDO),
            ("\x7f", KeyCommand.UNDO),
            ("\x1b[D", KeyCommand.UNDO),
            ("q", KeyCommand.CLOSE),
            ("\x1b", KeyCommand.CLOSE),
        ],
    )
    def test_bindings(self, key: str, command: KeyCommand) -> None:
        event = key_event_for(key)
        assert event is not None
        assert event.command is command

    def test_scroll_amounts(self) -> None:
        assert key_event_for("j") == KeyEvent(KeyCommand.SCROLL, amount=LINE_STEP)
        assert key_event_for("k") == KeyEvent(KeyCommand.SCROLL, amount=-LINE_STEP)
        assert key_event_for(" ") == KeyEvent(KeyCommand.SCROLL, amount=PAGE_STEP)
        assert key_event_for("\x1b[5~") == KeyEvent(KeyCommand.SCROLL, amount=-PAGE_STEP)

    def test_unbound_key(self) -> None:
        assert key_event_for("z") is None


class TestLabelPickerKeys:
    def test_hint_maps_to_label_index(self) -> None:
        assert key_event_for("a", label_picker=True) == KeyEvent.toggle_label(0)
        assert key_event_for("d", label_picker=True) == KeyEvent.toggle_label(LABEL_HINTS.index("d"))

    def test_triage_keys_disabled(self) -> None:
        # "e" and "l" are not hints, so they cannot archive or reopen the picker.
        assert key_event_for("e", label_picker=True) is None
        assert key_event_for("l", label_picker=True) is None

    def test_escape_still_closes(self) -> None:
        event = key_event_for("\x1b", label_picker=True)
        assert event is not None and event.command is KeyCommand.CLOSE
