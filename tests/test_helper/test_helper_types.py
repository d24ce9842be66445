"""Tests for helper boundary types — Email mapping and the tagged result."""

import pytest

from inbox_triage.helper.types import (
    Email,
    Err,
    ErrorKind,
    HelperError,
    Label,
    Ok,
    as_int,
    parse_emails,
    parse_labels,
)


class TestEmailFromDict:
    def test_maps_camel_case_fields(self, sample_email_dict: dict[str, object]) -> None:
        email = Email.from_dict(sample_email_dict)
        assert email.id == "msg_001"
        assert email.thread_id == "thread_001"
        assert email.sender == "Alice <alice@example.com>"
        assert email.subject == "Q2 budget review"
        assert email.internal_date == 1765205583000
        assert email.label_ids == ("INBOX", "UNREAD")

    def test_missing_fields_default_to_empty(self) -> None:
        email = Email.from_dict({"id": "x"})
        assert email.thread_id == ""
        assert email.body == ""
        assert email.internal_date == 0
        assert email.label_ids == ()

    def test_bad_internal_date_sorts_last(self) -> None:
        assert Email.from_dict({"id": "x", "internalDate": "soon"}).internal_date == 0

    def test_to_dict_uses_helper_keys(self, sample_email_dict: dict[str, object]) -> None:
        data = Email.from_dict(sample_email_dict).to_dict()
        assert data["from"] == "Alice <alice@example.com>"
        assert data["threadId"] == "thread_001"
        assert data["labelIds"] == ["INBOX", "UNREAD"]

    def test_with_labels_returns_copy(self) -> None:
        email = Email(id="a", label_ids=("L1", "L2"))
        updated = email.with_labels(["L2"])
        assert updated.label_ids == ("L2",)
        assert email.label_ids == ("L1", "L2")
        assert updated.id == "a"


class TestParsers:
    def test_parse_emails_skips_entries_without_id(self) -> None:
        payload = {"emails": [{"id": "a"}, {"subject": "no id"}, "junk", {"id": "b"}]}
        assert [e.id for e in parse_emails(payload)] == ["a", "b"]

    def test_parse_emails_handles_missing_key(self) -> None:
        assert parse_emails({"success": True}) == []

    def test_parse_labels(self) -> None:
        payload = {"labels": [{"id": "L1", "name": "Receipts"}, {"name": "no id"}, {"id": "L2"}]}
        assert parse_labels(payload) == [Label("L1", "Receipts"), Label("L2", "L2")]

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(12, 12), ("7", 7), (None, 0), ("n/a", 0), ([3], 0), (4.9, 4)],
    )
    def test_as_int_coerces_counts(self, value: object, expected: int) -> None:
        assert as_int(value) == expected

    def test_as_int_default(self) -> None:
        assert as_int("junk", default=5) == 5


class TestHelperResult:
    def test_ok_unwraps_payload(self) -> None:
        result = Ok({"success": True, "total": 3})
        assert result.ok
        assert result.unwrap()["total"] == 3

    def test_err_unwrap_raises(self) -> None:
        result = Err(ErrorKind.REJECTED, "quota exceeded")
        assert not result.ok
        with pytest.raises(HelperError) as info:
            result.unwrap()
        assert info.value.kind is ErrorKind.REJECTED
        assert str(info.value) == "quota exceeded"
