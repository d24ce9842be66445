"""Terminal key → logical KeyEvent mapping for the interactive panel."""

from __future__ import annotations

from inbox_triage.session.actions import LABEL_HINTS, KeyCommand, KeyEvent

LINE_STEP = 3
PAGE_STEP = 15

_ESCAPE = "\x1b"

_MAIN_KEYS: dict[str, KeyEvent] = {
    "e": KeyEvent(KeyCommand.ARCHIVE),
    "x": KeyEvent(KeyCommand.DELETE),
    "t": KeyEvent(KeyCommand.TASK),
    "s": KeyEvent(KeyCommand.SUPPRESS),
    "l": KeyEvent(KeyCommand.OPEN_LABEL_PICKER),
    "u": KeyEvent(KeyCommand.UNDO),
    "\x7f": KeyEvent(KeyCommand.UNDO),       # backspace
    "\x08": KeyEvent(KeyCommand.UNDO),
    "\x1b[D": KeyEvent(KeyCommand.UNDO),     # left arrow
    "j": KeyEvent.scroll(1, LINE_STEP),
    "k": KeyEvent.scroll(-1, LINE_STEP),
    "\x1b[B": KeyEvent.scroll(1, LINE_STEP),
    "\x1b[A": KeyEvent.scroll(-1, LINE_STEP),
    " ": KeyEvent.scroll(1, PAGE_STEP),
    "\x1b[6~": KeyEvent.scroll(1, PAGE_STEP),
    "\x1b[5~": KeyEvent.scroll(-1, PAGE_STEP),
    "q": KeyEvent(KeyCommand.CLOSE),
    _ESCAPE: KeyEvent(KeyCommand.CLOSE),
}


def key_event_for(key: str, *, label_picker: bool = False) -> KeyEvent | None:
    """Translate one ``click.getchar()`` result; None if the key is unbound."""
    if key == _ESCAPE:
        return KeyEvent(KeyCommand.CLOSE)
    if label_picker:
        if len(key) == 1 and key in LABEL_HINTS:
            return KeyEvent.toggle_label(LABEL_HINTS.index(key))
        return None
    return _MAIN_KEYS.get(key)
