"""CLI module for postmaint."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

import click

from postmaint.config import ConfigFileError, ConfigSource, get_config
from postmaint.config.models import PostmaintConfig
from postmaint.db.connection import open_connection
from postmaint.db.schema import initialize_database
from postmaint.logging import configure_logging

logger = logging.getLogger(__name__)


def _open_db_connection(
    ctx: click.Context, config: PostmaintConfig
) -> sqlite3.Connection:
    """Open the database for the command and close it when the command ends."""
    if config.database_path is None:
        raise click.ClickException("No database path configured.")
    try:
        conn = open_connection(config.database_path)
        initialize_database(conn)
    except (sqlite3.Error, OSError, RuntimeError) as e:
        raise click.ClickException(
            f"Could not open database {config.database_path}: {e}"
        ) from e
    ctx.call_on_close(conn.close)
    return conn


def get_db_connection(ctx: click.Context) -> sqlite3.Connection:
    """Return the command's database connection, opening it on first use.

    Tests may pre-seed ctx.obj["db_conn"].
    """
    root = ctx.find_root()
    if root.obj.get("db_conn") is None:
        root.obj["db_conn"] = _open_db_connection(root, root.obj["config"])
    return root.obj["db_conn"]


@click.group()
@click.version_option(package_name="postmaint")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Config file (default: ~/.postmaint/config.toml).",
)
@click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Database file (default: ~/.postmaint/postmaint.db).",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Override log level (default: info).",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Override log file path.",
)
@click.option(
    "--log-json",
    is_flag=True,
    default=False,
    help="Use JSON log format.",
)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Path | None,
    db_path: Path | None,
    log_level: str | None,
    log_file: Path | None,
    log_json: bool,
) -> None:
    """postmaint - Resumable batch maintenance scans over content records."""
    ctx.ensure_object(dict)

    try:
        config = get_config(
            config_path=config_path,
            database_path=db_path,
            cli_source=ConfigSource(
                logging_level=log_level,
                logging_file=log_file,
                logging_format="json" if log_json else None,
            ),
            strict=config_path is not None,
        )
    except ConfigFileError as e:
        raise click.ClickException(str(e)) from e
    except ValueError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e

    configure_logging(config.logging)
    logger.debug("Using database %s", config.database_path)

    ctx.obj["config"] = config
    ctx.obj.setdefault("db_conn", None)


# Defer import to avoid circular dependency
def _register_commands():
    from postmaint.cli.scan import scan_group
    from postmaint.cli.serve import serve_command
    from postmaint.cli.stats import stats_command
    from postmaint.cli.worker import worker_command

    main.add_command(scan_group)
    main.add_command(stats_command)
    main.add_command(worker_command)
    main.add_command(serve_command)


_register_commands()
