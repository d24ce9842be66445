"""CLI entry point for the email triage panel."""

import logging
from pathlib import Path

import click
from dotenv import load_dotenv

from inbox_triage.config import TriageConfig

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s — %(message)s"


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log helper calls at DEBUG level.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write logs here instead of stderr (keeps the panel readable).",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, log_file: Path | None) -> None:
    """Single-keystroke inbox triage — run, prefetch, sync, status and labels."""
    load_dotenv()
    config = TriageConfig.from_env()
    if log_file is not None:
        config.log_file = log_file
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=_LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        filename=str(config.log_file) if config.log_file else None,
    )
    ctx.obj = config


# Import and register commands after cli is defined to avoid circular imports.
from inbox_triage.cli.commands import labels, prefetch, run, status, sync  # noqa: E402

cli.add_command(run)
cli.add_command(prefetch)
cli.add_command(sync)
cli.add_command(status)
cli.add_command(labels)
