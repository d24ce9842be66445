"""Shared pytest fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from inbox_triage.config import TriageConfig
from inbox_triage.helper.types import Ok


@pytest.fixture
def sample_email_dict() -> dict[str, object]:
    """A helper-shaped email object (camelCase keys, as printed by ``fetch``)."""
    return {
        "id": "msg_001",
        "threadId": "thread_001",
        "from": "Alice <alice@example.com>",
        "subject": "Q2 budget review",
        "date": "Mon, 8 Dec 2025 14:53:03",
        "body": "Please review the attached budget figures.",
        "snippet": "Please review the attached...",
        "internalDate": "1765205583000",
        "labelIds": ["INBOX", "UNREAD"],
    }


@pytest.fixture
def config() -> TriageConfig:
    """Fast timings so debounce/prefetch tests finish quickly."""
    return TriageConfig(
        max_emails=500,
        initial_fetch=50,
        refetch_threshold=15,
        debounce_seconds=0.02,
        sync_interval_seconds=30,
    )


@pytest.fixture
def helper() -> MagicMock:
    """Mock HelperClient: every command succeeds with an empty payload."""
    h = MagicMock()
    h.path = "/usr/local/bin/email-triage"
    h.fetch = AsyncMock(return_value=Ok({"success": True, "emails": [], "total": 0}))
    h.cache_load = AsyncMock(return_value=Ok({"success": True, "emails": [], "total": 0}))
    h.cache_save = AsyncMock(return_value=Ok({"success": True}))
    h.check_online = AsyncMock(return_value=Ok({"online": True}))
    h.queue = AsyncMock(return_value=Ok({"success": True}))
    h.sync = AsyncMock(return_value=Ok({"pending": 0, "synced": 0}))
    h.labels = AsyncMock(return_value=Ok({"success": True, "labels": []}))
    h.add_label = AsyncMock(return_value=Ok({"success": True}))
    h.remove_label = AsyncMock(return_value=Ok({"success": True}))
    h.act = AsyncMock(return_value=Ok({"success": True}))
    return h
