"""Data types shared across the helper-process boundary."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Email:
    """An inbox email as returned by the helper's ``fetch`` / ``cache-load``.

    Immutable once fetched; label changes produce a new copy via
    ``with_labels()``.
    """

    id: str
    thread_id: str = ""
    sender: str = ""
    subject: str = ""
    date: str = ""            # display string, e.g. "Mon, 8 Dec 2025 14:53:03"
    body: str = ""
    snippet: str = ""
    internal_date: int = 0    # sort key (epoch millis)
    label_ids: tuple[str, ...] = ()

    def with_labels(self, label_ids: set[str] | list[str] | tuple[str, ...]) -> Email:
        """Return a copy carrying a different label set."""
        return Email(
            id=self.id,
            thread_id=self.thread_id,
            sender=self.sender,
            subject=self.subject,
            date=self.date,
            body=self.body,
            snippet=self.snippet,
            internal_date=self.internal_date,
            label_ids=tuple(label_ids),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Email:
        """Map a helper JSON object (camelCase keys) to an Email."""
        try:
            internal_date = int(data.get("internalDate") or 0)
        except (TypeError, ValueError):
            internal_date = 0
        return cls(
            id=str(data.get("id", "")),
            thread_id=str(data.get("threadId") or ""),
            sender=str(data.get("from") or ""),
            subject=str(data.get("subject") or ""),
            date=str(data.get("date") or ""),
            body=str(data.get("body") or ""),
            snippet=str(data.get("snippet") or ""),
            internal_date=internal_date,
            label_ids=tuple(str(x) for x in data.get("labelIds") or ()),
        )

    def to_dict(self) -> dict[str, Any]:
        """Inverse of from_dict — the shape written back through ``cache-save``."""
        return {
            "id": self.id,
            "threadId": self.thread_id,
            "from": self.sender,
            "subject": self.subject,
            "date": self.date,
            "body": self.body,
            "snippet": self.snippet,
            "internalDate": self.internal_date,
            "labelIds": list(self.label_ids),
        }


@dataclass(frozen=True)
class Label:
    id: str
    name: str


def parse_emails(payload: dict[str, Any]) -> list[Email]:
    """Extract the ``emails`` array from a fetch/cache-load payload, skipping junk."""
    raw = payload.get("emails") or []
    return [Email.from_dict(e) for e in raw if isinstance(e, dict) and e.get("id")]


def parse_labels(payload: dict[str, Any]) -> list[Label]:
    raw = payload.get("labels") or []
    return [
        Label(id=str(lbl["id"]), name=str(lbl.get("name", lbl["id"])))
        for lbl in raw
        if isinstance(lbl, dict) and lbl.get("id")
    ]


def as_int(value: object, default: int = 0) -> int:
    """Coerce a payload count such as ``total`` or ``pending``; junk gives ``default``."""
    try:
        return int(value) if value is not None else default  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return default


# ── Tagged result ──────────────────────────────────────────────────────────────


class ErrorKind(str, Enum):
    """Why a helper invocation did not fully succeed."""

    UNREACHABLE = "unreachable"   # helper could not be spawned
    TIMEOUT = "timeout"
    EXIT_STATUS = "exit_status"   # non-zero exit code
    PARSE = "parse"               # stdout was not a JSON object
    REJECTED = "rejected"         # payload reported success=false
    OFFLINE = "offline"           # payload reported error="offline"


class HelperError(Exception):
    """Raised by ``HelperResult.unwrap()`` for an ``Err`` outcome."""

    def __init__(self, err: Err) -> None:
        super().__init__(err.message)
        self.err = err

    @property
    def kind(self) -> ErrorKind:
        return self.err.kind


@dataclass(frozen=True)
class Ok:
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> dict[str, Any]:
        return self.payload


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> dict[str, Any]:
        raise HelperError(self)


#: Outcome of one helper command, decoded once at the process boundary.
HelperResult = Ok | Err
