"""CLI commands for running and managing scans."""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone

import click

from postmaint.cli import get_db_connection
from postmaint.config.models import MAX_BATCH_SIZE, MIN_BATCH_SIZE, PostmaintConfig
from postmaint.db.connection import DatabaseLockedError
from postmaint.scan import (
    BatchProcessor,
    BatchResult,
    ProgressSnapshot,
    ScanEngine,
    ScanStatus,
    ScanValidationError,
    SqliteContentSource,
    StartResult,
    create_engine,
    normalize_post_types,
)

logger = logging.getLogger(__name__)

# Foreground runs stop after this many batches
MAX_FOREGROUND_BATCHES = 1000

MSG_NO_POSTS = "No posts found for the specified post types."

_STATUS_COLORS = {
    ScanStatus.IDLE: "white",
    ScanStatus.RUNNING: "yellow",
    ScanStatus.COMPLETED: "green",
    ScanStatus.ERROR: "red",
}

_NOTIFICATION_COLORS = {
    "success": "green",
    "warning": "yellow",
    "error": "red",
}


def _get_engine(ctx: click.Context, *, time_limit: bool = True) -> ScanEngine:
    config: PostmaintConfig = ctx.find_root().obj["config"]
    return create_engine(
        config.scan, get_db_connection(ctx), time_limit=time_limit
    )


def _resolve_post_types(ctx: click.Context, post_types: str | None) -> list[str]:
    config: PostmaintConfig = ctx.find_root().obj["config"]
    try:
        return normalize_post_types(
            post_types if post_types is not None else config.scan.post_types
        )
    except ScanValidationError as e:
        raise click.BadParameter(str(e), param_hint="--post-types") from e


def _start_scan(
    engine: ScanEngine, post_types: list[str], batch_size: int | None
) -> StartResult:
    """Start a scan, turning rejections into CLI errors."""
    try:
        result = engine.controller.start(post_types, batch_size)
    except ScanValidationError as e:
        raise click.BadParameter(
            str(e), param_hint=f"--{e.field.replace('_', '-')}"
        ) from e
    except DatabaseLockedError as e:
        raise click.ClickException(str(e)) from e

    if not result.ok:
        raise click.ClickException(result.message)
    return result


def _format_timestamp(value: float | None) -> str:
    if value is None:
        return "-"
    return datetime.fromtimestamp(value, tz=timezone.utc).strftime(
        "%Y-%m-%d %H:%M:%S UTC"
    )


def _format_elapsed(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs}s"


def _echo_summary(
    processed: int, failed: int, batches: int, elapsed: float, *, dry_run: bool
) -> None:
    click.echo("")
    click.secho(
        "Dry run complete!" if dry_run else "Scan complete!", fg="green", bold=True
    )
    label = "Posts found" if dry_run else "Posts processed"
    click.echo(f"  {label}: {processed}")
    if failed:
        click.secho(f"  Failed: {failed}", fg="yellow")
    click.echo(f"  Batches: {batches}")
    average = processed / batches if batches else 0.0
    click.echo(f"  Average per batch: {average:.1f}")
    click.echo(f"  Elapsed: {_format_elapsed(elapsed)}")


def _echo_snapshot(snapshot: ProgressSnapshot) -> None:
    color = _STATUS_COLORS.get(snapshot.status, "white")
    click.echo("Status: " + click.style(snapshot.status.value, fg=color))
    if snapshot.total or snapshot.status != ScanStatus.IDLE:
        click.echo(
            f"Progress: {snapshot.percent:.1f}% "
            f"({snapshot.processed}/{snapshot.total})"
        )
    if snapshot.failed:
        click.echo(f"Failed: {snapshot.failed}")
    if snapshot.post_types:
        click.echo(f"Post types: {', '.join(snapshot.post_types)}")
    click.echo(f"Started: {_format_timestamp(snapshot.started_at)}")
    click.echo(f"Last completed: {_format_timestamp(snapshot.last_completed_at)}")
    if snapshot.notification is not None:
        notification = snapshot.notification
        click.secho(
            f"Notification [{notification.type.value}]: {notification.message}",
            fg=_NOTIFICATION_COLORS.get(notification.type.value),
        )


def _drain_with_progress(
    engine: ScanEngine, *, verbose: bool
) -> tuple[ScanStatus, int, float]:
    """Run the current scan in the foreground with a progress bar.

    Returns:
        (final status, batches run, elapsed seconds).
    """
    progress = engine.controller.get_scan_progress()
    total = progress.total if progress else 0
    start = time.monotonic()
    batches = 0

    with click.progressbar(length=total, label="Scanning posts") as bar:

        def on_batch(result: BatchResult | None) -> None:
            nonlocal batches
            batches += 1
            if result is None:
                return
            bar.update(len(result.ids))
            if verbose and result.ids:
                line = f"\nBatch {batches}: processed {result.count} posts"
                if result.failed_ids:
                    line += f", {len(result.failed_ids)} failed"
                click.echo(line)

        status = engine.worker.drain(on_batch, max_batches=MAX_FOREGROUND_BATCHES)

    return status, batches, time.monotonic() - start


@click.group("scan")
def scan_group() -> None:
    """Start, run and manage post scans.

    Examples:

        # Queue a scan for the worker
        postmaint scan start --post-types post,page

        # Run a scan in the foreground with a progress bar
        postmaint scan run --batch-size 50

        # Preview which posts a scan would touch
        postmaint scan run --dry-run --verbose

        # Show scan progress
        postmaint scan status
    """


@scan_group.command("start")
@click.option(
    "--post-types",
    default=None,
    help="Comma-separated post types (default: from config).",
)
@click.option(
    "--batch-size",
    type=click.IntRange(MIN_BATCH_SIZE, MAX_BATCH_SIZE),
    default=None,
    help=f"Posts per batch ({MIN_BATCH_SIZE}-{MAX_BATCH_SIZE}).",
)
@click.option(
    "--wait",
    is_flag=True,
    default=False,
    help="Process the scan in the foreground until it finishes.",
)
@click.pass_context
def start_command(
    ctx: click.Context,
    post_types: str | None,
    batch_size: int | None,
    wait: bool,
) -> None:
    """Start a background scan."""
    types = _resolve_post_types(ctx, post_types)
    engine = _get_engine(ctx)

    result = _start_scan(engine, types, batch_size)
    click.secho(result.message, fg="green")
    if not wait:
        click.echo("Run 'postmaint worker' to process batches.")
        return

    status, _, _ = _drain_with_progress(engine, verbose=False)
    _echo_snapshot(engine.controller.get_progress())
    if status != ScanStatus.COMPLETED:
        raise SystemExit(1)


@scan_group.command("run")
@click.option(
    "--post-types",
    default=None,
    help="Comma-separated post types (default: from config).",
)
@click.option(
    "--batch-size",
    type=click.IntRange(MIN_BATCH_SIZE, MAX_BATCH_SIZE),
    default=None,
    help=f"Posts per batch ({MIN_BATCH_SIZE}-{MAX_BATCH_SIZE}).",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Fetch posts without updating them or the scan state.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Print a line per batch.",
)
@click.option(
    "--delay",
    type=click.FloatRange(min=0),
    default=0.0,
    show_default=True,
    help="Seconds to wait between batches.",
)
@click.pass_context
def run_command(
    ctx: click.Context,
    post_types: str | None,
    batch_size: int | None,
    dry_run: bool,
    verbose: bool,
    delay: float,
) -> None:
    """Run a scan in the foreground and print a summary."""
    config: PostmaintConfig = ctx.find_root().obj["config"]
    types = _resolve_post_types(ctx, post_types)
    size = batch_size if batch_size is not None else config.scan.batch_size

    if dry_run:
        _run_dry(ctx, types, size, verbose=verbose, delay=delay)
        return

    # No overall timeout: foreground runs are bounded by MAX_FOREGROUND_BATCHES
    engine = _get_engine(ctx, time_limit=False)
    engine.controller.scheduler.inter_batch_delay = delay

    if engine.controller.source.count(types) == 0:
        click.echo(f"Warning: {MSG_NO_POSTS}", err=True)
        return

    _start_scan(engine, types, size)
    click.echo(f"Scanning {', '.join(types)} in batches of {size}...")
    status, batches, elapsed = _drain_with_progress(engine, verbose=verbose)
    snapshot = engine.controller.get_progress()

    if status == ScanStatus.RUNNING:
        reason = (
            "Scan interrupted"
            if engine.worker.shutdown_requested
            else f"Reached batch limit ({MAX_FOREGROUND_BATCHES})"
        )
        raise click.ClickException(
            f"{reason} after {batches} batches. "
            "Run 'postmaint worker' to resume."
        )
    if status != ScanStatus.COMPLETED:
        message = (
            snapshot.notification.message
            if snapshot.notification is not None
            else f"Scan stopped with status {status.value}"
        )
        raise click.ClickException(message)

    _echo_summary(
        snapshot.processed, snapshot.failed, batches, elapsed, dry_run=False
    )


def _run_dry(
    ctx: click.Context,
    post_types: list[str],
    batch_size: int,
    *,
    verbose: bool,
    delay: float,
) -> None:
    """Walk every page without mutating posts or touching scan state."""
    config: PostmaintConfig = ctx.find_root().obj["config"]
    source = SqliteContentSource(
        get_db_connection(ctx),
        post_status=config.scan.post_status,
        meta_key=config.scan.meta_key,
    )
    processor = BatchProcessor(source, dry_run=True)

    total = source.count(post_types)
    if total == 0:
        click.echo(f"Warning: {MSG_NO_POSTS}", err=True)
        return
    click.echo(f"Dry run: {total} posts of types {', '.join(post_types)}")

    start = time.monotonic()
    processed = 0
    batches = 0
    offset = 0
    while batches < MAX_FOREGROUND_BATCHES:
        result = processor.run(post_types, batch_size, offset)
        if result.exhausted:
            break
        batches += 1
        processed += result.count
        if verbose:
            click.echo(
                f"Batch {batches}: would process {result.count} posts "
                f"(IDs {result.ids[0]}-{result.ids[-1]})"
            )
        offset += batch_size
        if delay:
            time.sleep(delay)
    else:
        click.secho(
            f"Reached batch limit ({MAX_FOREGROUND_BATCHES}), stopping.", fg="yellow"
        )

    _echo_summary(processed, 0, batches, time.monotonic() - start, dry_run=True)


@scan_group.command("status")
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    default=False,
    help="Output as JSON.",
)
@click.pass_context
def status_command(ctx: click.Context, as_json: bool) -> None:
    """Show scan status and progress."""
    try:
        snapshot = _get_engine(ctx).controller.get_progress()
    except DatabaseLockedError as e:
        raise click.ClickException(str(e)) from e
    if as_json:
        click.echo(json.dumps(snapshot.to_dict(), indent=2))
        return
    _echo_snapshot(snapshot)


@scan_group.command("reset")
@click.option(
    "--yes",
    "-y",
    is_flag=True,
    default=False,
    help="Skip the confirmation prompt.",
)
@click.pass_context
def reset_command(ctx: click.Context, yes: bool) -> None:
    """Reset scan state, cancelling any running scan."""
    if not yes:
        click.confirm(
            "This will reset the scan state and cancel any running scan. Continue?",
            abort=True,
        )
    try:
        _get_engine(ctx).controller.reset()
    except DatabaseLockedError as e:
        raise click.ClickException(str(e)) from e
    click.secho("Scan state has been reset.", fg="green")


@scan_group.command("clear-notification")
@click.pass_context
def clear_notification_command(ctx: click.Context) -> None:
    """Acknowledge the last scan notification."""
    try:
        cleared = _get_engine(ctx).controller.clear_notification()
    except DatabaseLockedError as e:
        raise click.ClickException(str(e)) from e
    if cleared:
        click.echo("Notification cleared.")
    else:
        click.echo("No notification to clear.")
