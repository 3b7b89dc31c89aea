"""CLI serve command.

Runs the JSON API with the scan worker as a background task.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import os
import signal

import click

from postmaint.config.models import PostmaintConfig, ServerConfig
from postmaint.logging import configure_logging

logger = logging.getLogger(__name__)


async def run_server(config: PostmaintConfig, shutdown_timeout: float = 10.0) -> int:
    """Run the API server until SIGINT/SIGTERM.

    Args:
        config: Effective configuration (bind/port from config.server).
        shutdown_timeout: Seconds to wait for graceful shutdown.

    Returns:
        Exit code (0 for clean shutdown).
    """
    from aiohttp import web

    from postmaint.server.app import create_app

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, shutdown_event.set)

    app = create_app(config)
    runner = web.AppRunner(app, shutdown_timeout=shutdown_timeout)
    await runner.setup()
    try:
        site = web.TCPSite(runner, config.server.bind, config.server.port)
        await site.start()
        logger.info(
            "postmaint API started on http://%s:%d (PID %d)",
            config.server.bind,
            config.server.port,
            os.getpid(),
        )
        logger.info("Press Ctrl+C or send SIGTERM to stop")

        await shutdown_event.wait()
        logger.info("Shutdown initiated")
    finally:
        await runner.cleanup()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(signum)

    logger.info("postmaint API stopped")
    return 0


@click.command("serve")
@click.option(
    "--bind",
    default=None,
    help="Address to bind to (default: from config, 127.0.0.1).",
)
@click.option(
    "--port",
    type=click.IntRange(1, 65535),
    default=None,
    help="Port to listen on (default: from config, 8330).",
)
@click.pass_context
def serve_command(ctx: click.Context, bind: str | None, port: int | None) -> None:
    """Run the scan API server.

    Endpoints:

        POST   /api/scan/start

        GET    /api/scan/progress

        POST   /api/scan/reset

        DELETE /api/scan/notification

        GET    /health
    """
    config: PostmaintConfig = ctx.find_root().obj["config"]
    config.server = ServerConfig(
        bind=bind if bind is not None else config.server.bind,
        port=port if port is not None else config.server.port,
    )

    # Always include stderr for the long-running service (journald)
    configure_logging(dataclasses.replace(config.logging, include_stderr=True))

    try:
        exit_code = asyncio.run(run_server(config))
    except OSError as e:
        raise click.ClickException(f"Could not start server: {e}") from e
    raise SystemExit(exit_code)
