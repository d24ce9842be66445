"""Async client for the email-triage helper executable.

Every command spawns one short-lived helper process::

    <helper> <command> [args...]

The helper prints a JSON object on stdout (or an ``{"error": ...}`` object on
stderr when it exits non-zero).  Each outcome is decoded exactly once into a
``HelperResult`` so callers never deal with exit codes or raw text.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any

from inbox_triage.helper.types import Email, Err, ErrorKind, HelperResult, Ok

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 120.0
_OFFLINE = "offline"

#: Triage and reverse commands accepted by ``act()``.
ACTION_COMMANDS = frozenset(
    {"archive", "delete", "task", "suppress", "unarchive", "undelete"}
)


def decode_output(
    returncode: int,
    stdout: str,
    stderr: str,
    *,
    require_success: bool = True,
) -> HelperResult:
    """Turn a finished helper process into Ok/Err.

    Exit code 0 with a parseable object (and ``success: true`` for commands
    that report it) is the only fully-successful outcome.
    """
    if returncode != 0:
        message = stderr.strip() or "Unknown error"
        err_payload: dict[str, Any] = {}
        with contextlib.suppress(json.JSONDecodeError):
            parsed = json.loads(_strip_preamble(stderr))
            if isinstance(parsed, dict):
                err_payload = parsed
                message = str(parsed.get("error") or message)
        kind = ErrorKind.OFFLINE if err_payload.get("error") == _OFFLINE else ErrorKind.EXIT_STATUS
        return Err(kind, message, err_payload)

    try:
        payload = json.loads(_strip_preamble(stdout))
    except json.JSONDecodeError:
        return Err(ErrorKind.PARSE, "Failed to parse response")
    if not isinstance(payload, dict):
        return Err(ErrorKind.PARSE, "Failed to parse response")

    if payload.get("error") == _OFFLINE:
        return Err(ErrorKind.OFFLINE, _OFFLINE, payload)
    if require_success and payload.get("success") is not True:
        return Err(ErrorKind.REJECTED, str(payload.get("error") or "Unknown error"), payload)
    return Ok(payload)


def _strip_preamble(text: str) -> str:
    """Drop anything printed before the first ``{`` (shell noise, warnings)."""
    start = text.find("{")
    return text[start:] if start > 0 else text


class HelperClient:
    """Typed async wrapper around the helper executable.

    Cancelling an awaiting caller kills the underlying process, so a task slot
    that is superseded never leaves an orphaned helper behind.
    """

    def __init__(
        self,
        helper_path: str | Path,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._path = str(helper_path)
        self._timeout = timeout

    @property
    def path(self) -> str:
        return self._path

    # ── Commands ───────────────────────────────────────────────────────────────

    async def fetch(self, max_count: int) -> HelperResult:
        return await self.run("fetch", "--max", str(max_count))

    async def cache_load(self) -> HelperResult:
        return await self.run("cache-load")

    async def cache_save(self, payload: dict[str, Any]) -> HelperResult:
        return await self.run("cache-save", json.dumps(payload))

    async def check_online(self) -> HelperResult:
        return await self.run("check-online", require_success=False)

    async def queue(self, email: Email, action: str) -> HelperResult:
        """Append an action to the helper's persistent offline queue."""
        return await self.run(
            "queue",
            action,
            email.id,
            "--thread-id", email.thread_id,
            "--subject", email.subject,
            "--from-addr", email.sender,
            "--snippet", email.snippet,
            require_success=False,
        )

    async def sync(self) -> HelperResult:
        """Ask the helper to flush its offline queue. Payload: pending, synced, error."""
        return await self.run("sync", require_success=False)

    async def labels(self) -> HelperResult:
        return await self.run("labels")

    async def add_label(self, email_id: str, label_id: str) -> HelperResult:
        return await self.run("add-label", email_id, label_id)

    async def remove_label(self, email_id: str, label_id: str) -> HelperResult:
        return await self.run("remove-label", email_id, label_id)

    async def act(self, action: str, email_id: str) -> HelperResult:
        """Run a triage or reverse command (archive, delete, unarchive, ...)."""
        if action not in ACTION_COMMANDS:
            raise ValueError(f"Unknown helper action: {action!r}")
        return await self.run(action, email_id)

    # ── Process plumbing ───────────────────────────────────────────────────────

    async def run(self, command: str, *args: str, require_success: bool = True) -> HelperResult:
        """Spawn ``<helper> <command> *args`` and decode its outcome."""
        logger.debug("helper → %s %s", command, _loggable(args))
        try:
            proc = await asyncio.create_subprocess_exec(
                self._path,
                command,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=os.environ.copy(),
            )
        except OSError as exc:
            logger.warning("Could not start helper %s: %s", self._path, exc)
            return Err(ErrorKind.UNREACHABLE, f"Helper unavailable: {exc}")

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            await _kill(proc)
            logger.warning("helper %s timed out after %.0fs", command, self._timeout)
            return Err(ErrorKind.TIMEOUT, f"{command} timed out")
        except asyncio.CancelledError:
            await _kill(proc)
            logger.debug("helper %s cancelled (pid=%s)", command, proc.pid)
            raise

        result = decode_output(
            proc.returncode if proc.returncode is not None else -1,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
            require_success=require_success,
        )
        if isinstance(result, Err):
            logger.debug("helper ← %s failed (%s): %s", command, result.kind.value, result.message)
        else:
            logger.debug("helper ← %s ok", command)
        return result


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()


def _loggable(args: tuple[str, ...]) -> str:
    """Shorten huge arguments (the cache-save payload) for debug logs."""
    return " ".join(a if len(a) <= 80 else f"<{len(a)} chars>" for a in args)
