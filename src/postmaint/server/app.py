"""aiohttp application factory for the postmaint API server."""

from __future__ import annotations

import asyncio
import logging
import sqlite3

from aiohttp import web

from postmaint import __version__
from postmaint.config.models import PostmaintConfig
from postmaint.db.connection import open_connection
from postmaint.db.schema import initialize_database
from postmaint.scan.factory import ScanEngine, create_engine
from postmaint.server.api import setup_api_routes
from postmaint.server.worker_task import ScanWorkerTask

logger = logging.getLogger(__name__)


def open_engine(
    config: PostmaintConfig,
) -> tuple[ScanEngine, list[sqlite3.Connection]]:
    """Open the database and build an engine suitable for threaded use.

    The progress store and the content source get separate connections so
    that a running batch never shares a transaction with the store.

    Returns:
        The engine and the connections the caller must close.
    """
    if config.database_path is None:
        raise ValueError("database_path is not configured")

    store_conn = open_connection(config.database_path, check_same_thread=False)
    initialize_database(store_conn)
    source_conn = open_connection(config.database_path, check_same_thread=False)
    engine = create_engine(config.scan, store_conn, source_conn=source_conn)
    return engine, [store_conn, source_conn]


def create_app(
    config: PostmaintConfig,
    *,
    engine: ScanEngine | None = None,
    run_worker: bool = True,
) -> web.Application:
    """Create the API application.

    Args:
        config: Effective configuration.
        engine: Pre-built engine (tests). Opened from config when omitted.
        run_worker: Drive the scan worker as a background task.

    Returns:
        Configured aiohttp Application.
    """
    app = web.Application()
    app["config"] = config
    app["connections"] = []
    if engine is None:
        engine, connections = open_engine(config)
        app["connections"] = connections
    app["scan_engine"] = engine
    app["worker_task"] = None
    app["worker_task_handle"] = None

    app.router.add_get("/health", health_handler)
    setup_api_routes(app)

    if run_worker:
        app.on_startup.append(_start_worker_task)
        app.on_cleanup.append(_stop_worker_task)
    app.on_cleanup.append(_close_connections)

    return app


async def _start_worker_task(app: web.Application) -> None:
    """Start the background scan worker task."""
    task = ScanWorkerTask(app["scan_engine"].worker)
    app["worker_task"] = task
    app["worker_task_handle"] = asyncio.create_task(task.run())
    logger.debug("Started background scan worker task")


async def _stop_worker_task(app: web.Application) -> None:
    """Stop the background scan worker task."""
    task = app.get("worker_task")
    task_handle = app.get("worker_task_handle")

    if task:
        task.stop()

    if task_handle and not task_handle.done():
        try:
            await asyncio.wait_for(task_handle, timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("Scan worker task did not stop in time, cancelling")
            task_handle.cancel()
            try:
                await task_handle
            except asyncio.CancelledError:
                pass

    logger.debug("Stopped background scan worker task")


async def _close_connections(app: web.Application) -> None:
    for conn in app["connections"]:
        conn.close()
    app["connections"] = []


async def health_handler(request: web.Request) -> web.Response:
    """Handle GET /health requests.

    Returns 200 when the scan state is readable and the worker task (if
    any) is healthy, 503 otherwise.
    """
    engine: ScanEngine = request.app["scan_engine"]
    task: ScanWorkerTask | None = request.app.get("worker_task")

    try:
        state = await asyncio.to_thread(engine.controller.get_state)
        scan_status = state.status.value
        db_ok = True
    except sqlite3.Error as e:
        logger.warning("Health check could not read scan state: %s", e)
        scan_status = None
        db_ok = False

    worker_healthy = task.is_healthy if task else True
    healthy = db_ok and worker_healthy
    body = {
        "status": "healthy" if healthy else "degraded",
        "version": __version__,
        "database_connected": db_ok,
        "scan_status": scan_status,
        "worker_running": task.is_running if task else False,
    }
    return web.json_response(body, status=200 if healthy else 503)
