"""CLI command for the scan worker."""

from __future__ import annotations

import logging

import click

from postmaint.cli import get_db_connection
from postmaint.config.models import PostmaintConfig
from postmaint.scan import create_engine

logger = logging.getLogger(__name__)


@click.command("worker")
@click.option(
    "--max-duration",
    type=click.IntRange(min=1),
    default=None,
    help="Stop after N seconds.",
)
@click.option(
    "--once",
    is_flag=True,
    default=False,
    help="Run a single worker cycle and exit.",
)
@click.option(
    "--no-daily",
    is_flag=True,
    default=False,
    help="Disable the daily scan trigger for this run.",
)
@click.pass_context
def worker_command(
    ctx: click.Context,
    max_duration: int | None,
    once: bool,
    no_daily: bool,
) -> None:
    """Process scheduled scan batches until stopped.

    Handles SIGINT/SIGTERM gracefully: the batch in progress finishes and
    the worker exits.

    Examples:

        # Run until Ctrl+C
        postmaint worker

        # Run for at most one hour (e.g. from cron)
        postmaint worker --max-duration 3600
    """
    config: PostmaintConfig = ctx.find_root().obj["config"]
    engine = create_engine(config.scan, get_db_connection(ctx))
    if no_daily:
        engine.daily_trigger.enabled = False

    if not once:
        click.echo("Scan worker started. Press Ctrl+C to stop.")
    batches = engine.worker.run(max_duration=max_duration, once=once)
    click.echo(f"Worker stopped after {batches} batches.")
