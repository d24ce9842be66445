"""Allow ``python -m inbox_triage``."""

from inbox_triage.cli.main import cli

cli()
