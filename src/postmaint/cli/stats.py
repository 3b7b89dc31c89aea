"""CLI command for scan coverage statistics."""

from __future__ import annotations

import json

import click

from postmaint.cli import get_db_connection
from postmaint.config.models import PostmaintConfig
from postmaint.scan import ScanValidationError, get_scan_stats, normalize_post_types

# Most recent scan dates shown in text output
MAX_DATES_SHOWN = 10


@click.command("stats")
@click.option(
    "--post-types",
    default=None,
    help="Comma-separated post types (default: from config).",
)
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    default=False,
    help="Output as JSON.",
)
@click.pass_context
def stats_command(ctx: click.Context, post_types: str | None, as_json: bool) -> None:
    """Show how many posts have been scanned and when."""
    config: PostmaintConfig = ctx.find_root().obj["config"]
    try:
        types = normalize_post_types(
            post_types if post_types is not None else config.scan.post_types
        )
    except ScanValidationError as e:
        raise click.BadParameter(str(e), param_hint="--post-types") from e

    stats = get_scan_stats(
        get_db_connection(ctx),
        types,
        post_status=config.scan.post_status,
        meta_key=config.scan.meta_key,
    )

    if as_json:
        click.echo(json.dumps(stats.to_dict(), indent=2))
        return

    click.secho(f"Scan statistics for {', '.join(types)}", bold=True)
    click.echo(f"  Total posts: {stats.total}")
    click.echo(
        f"  Scanned:     {stats.scanned} ({stats.percent(stats.scanned):.1f}%)"
    )
    click.echo(
        f"  Unscanned:   {stats.unscanned} ({stats.percent(stats.unscanned):.1f}%)"
    )

    if stats.date_distribution:
        click.echo("")
        click.echo("Scans by date:")
        for date, count in list(stats.date_distribution.items())[:MAX_DATES_SHOWN]:
            click.echo(f"  {date}: {count}")
