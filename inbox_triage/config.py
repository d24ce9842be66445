"""Runtime configuration, read from the environment (and .env via the CLI)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


def _default_helper_path() -> Path:
    return Path.home() / "bin" / "email-triage"


def _env_number(name: str, default: float, cast: type = int) -> float:
    """Read a numeric env var, falling back to ``default`` on bad input."""
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        logger.warning("Invalid %s=%r; defaulting to %s", name, raw, default)
        return default


@dataclass
class TriageConfig:
    """Tuning knobs for the triage session controller."""

    helper_path: Path = field(default_factory=_default_helper_path)
    max_emails: int = 500               # large batch, kept on disk for offline use
    initial_fetch: int = 50             # quick first stage of the warm prefetch
    refetch_threshold: int = 15         # low-water mark for the prefetch buffer
    debounce_seconds: float = 0.5
    sync_interval_seconds: float = 30.0
    helper_timeout_seconds: float = 120.0
    log_file: Path | None = None

    @classmethod
    def from_env(cls) -> TriageConfig:
        """Build TriageConfig from TRIAGE_* environment variables."""
        helper = os.environ.get("TRIAGE_HELPER_PATH", "").strip()
        log_file = os.environ.get("TRIAGE_LOG_FILE", "").strip()
        return cls(
            helper_path=Path(helper).expanduser() if helper else _default_helper_path(),
            max_emails=int(_env_number("TRIAGE_MAX_EMAILS", 500)),
            initial_fetch=int(_env_number("TRIAGE_INITIAL_FETCH", 50)),
            refetch_threshold=int(_env_number("TRIAGE_REFETCH_THRESHOLD", 15)),
            debounce_seconds=_env_number("TRIAGE_DEBOUNCE_SECONDS", 0.5, float),
            sync_interval_seconds=_env_number("TRIAGE_SYNC_INTERVAL_SECONDS", 30.0, float),
            helper_timeout_seconds=_env_number("TRIAGE_HELPER_TIMEOUT_SECONDS", 120.0, float),
            log_file=Path(log_file).expanduser() if log_file else None,
        )
