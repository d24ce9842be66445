"""CLI command implementations — all commands talk to the helper via TriageController."""

from __future__ import annotations

import asyncio
import logging

import click
from rich import box
from rich.console import Console
from rich.table import Table

from inbox_triage.cli.keys import key_event_for
from inbox_triage.cli.view import RichRenderer
from inbox_triage.config import TriageConfig
from inbox_triage.helper.client import HelperClient
from inbox_triage.helper.types import Err, HelperError, parse_emails, parse_labels
from inbox_triage.session.controller import TriageController
from inbox_triage.session.sync import create_sync_scheduler

logger = logging.getLogger(__name__)
console = Console(width=200)


def _helper(config: TriageConfig) -> HelperClient:
    return HelperClient(config.helper_path, timeout=config.helper_timeout_seconds)


# ── run ────────────────────────────────────────────────────────────────────────


@click.command()
@click.pass_obj
def run(config: TriageConfig) -> None:
    """Open the interactive triage panel."""
    asyncio.run(_run_async(config))


async def _run_async(config: TriageConfig) -> None:
    controller = TriageController(_helper(config), config, RichRenderer(Console()))
    await controller.start()
    scheduler = create_sync_scheduler(controller, config)
    scheduler.start()

    loop = asyncio.get_running_loop()
    try:
        await controller.open()
        while controller.visible:
            key = await loop.run_in_executor(None, click.getchar)
            event = key_event_for(key, label_picker=controller.label_picker_visible)
            if event is None:
                continue
            controller.handle_key(event)
            # Let the optimistic dispatches start before blocking on the next key.
            await asyncio.sleep(0)
    finally:
        scheduler.shutdown(wait=False)
        await controller.shutdown()

    pending = controller.cache.pending_count
    if pending:
        console.print(f"[yellow]{pending} action(s) queued for sync.[/yellow]")


# ── prefetch ───────────────────────────────────────────────────────────────────


@click.command()
@click.pass_obj
def prefetch(config: TriageConfig) -> None:
    """Warm the disk cache so the next panel opens instantly."""
    asyncio.run(_prefetch_async(config))


async def _prefetch_async(config: TriageConfig) -> None:
    controller = TriageController(_helper(config), config)
    await controller.start()
    with console.status("Prefetching inbox..."):
        controller.warm()
        await controller.wait_idle()
    cache = controller.cache
    console.print(
        f"[green]Cached {len(cache)} email(s)[/green] "
        f"[dim](inbox total {cache.total})[/dim]"
    )


# ── sync ───────────────────────────────────────────────────────────────────────


@click.command()
@click.pass_obj
def sync(config: TriageConfig) -> None:
    """Flush actions queued while offline."""
    asyncio.run(_sync_async(config))


async def _sync_async(config: TriageConfig) -> None:
    controller = TriageController(_helper(config), config)
    synced = await controller.sync()
    cache = controller.cache
    if not cache.online:
        console.print(f"[yellow]Offline — {cache.pending_count} action(s) still queued.[/yellow]")
        return
    console.print(f"[green]Synced {synced} action(s).[/green] {cache.pending_count} pending.")


# ── status ─────────────────────────────────────────────────────────────────────


@click.command()
@click.pass_obj
def status(config: TriageConfig) -> None:
    """Show connectivity and disk cache status."""
    asyncio.run(_status_async(config))


async def _status_async(config: TriageConfig) -> None:
    helper = _helper(config)
    controller = TriageController(helper, config)
    online = await controller.check_online()
    cached = await helper.cache_load()

    table = Table(box=box.ROUNDED, show_header=False)
    table.add_column("", style="dim")
    table.add_column("")
    table.add_row("Helper", helper.path)
    table.add_row("Online", "[green]yes[/green]" if online else "[yellow]no[/yellow]")
    if isinstance(cached, Err):
        table.add_row("Cached emails", f"[red]{cached.message}[/red]")
    else:
        emails = parse_emails(cached.payload)
        table.add_row("Cached emails", str(len(emails)))
        table.add_row("Inbox total", str(cached.payload.get("total", 0)))
    console.print(table)


# ── labels ─────────────────────────────────────────────────────────────────────


@click.command()
@click.pass_obj
def labels(config: TriageConfig) -> None:
    """List the labels available to the label picker."""
    if not asyncio.run(_labels_async(config)):
        raise click.exceptions.Exit(1)


async def _labels_async(config: TriageConfig) -> bool:
    try:
        payload = (await _helper(config).labels()).unwrap()
    except HelperError as exc:
        console.print(f"[red]Could not load labels: {exc}[/red]")
        return False

    found = parse_labels(payload)
    if not found:
        console.print("[yellow]No labels found.[/yellow]")
        return True
    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("Name")
    table.add_column("ID", style="dim")
    for label in found:
        table.add_row(label.name, label.id)
    console.print(table)
    return True
