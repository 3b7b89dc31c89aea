"""Scan API handlers.

Endpoints:
    POST   /api/scan/start         Start a scan
    GET    /api/scan/progress      Poll progress
    POST   /api/scan/reset         Reset scan state
    DELETE /api/scan/notification  Acknowledge the notification

Engine calls block on SQLite and run in a worker thread.
"""

from __future__ import annotations

import asyncio
import json
import logging

from aiohttp import web
from pydantic import ValidationError

from postmaint.db.connection import DatabaseLockedError
from postmaint.scan import MSG_ALREADY_RUNNING, ScanController, ScanValidationError
from postmaint.server.api.errors import (
    DATABASE_LOCKED,
    INVALID_JSON,
    INVALID_REQUEST,
    SCAN_ALREADY_RUNNING,
    SCAN_START_FAILED,
    VALIDATION_FAILED,
    api_error,
)
from postmaint.server.api.models import StartScanRequest

logger = logging.getLogger(__name__)


def _controller(request: web.Request) -> ScanController:
    return request.app["scan_engine"].controller


def _locked(action: str, error: DatabaseLockedError) -> web.Response:
    logger.warning("Scan %s blocked: %s", action, error)
    return api_error(str(error), code=DATABASE_LOCKED, status=503)


async def api_scan_start_handler(request: web.Request) -> web.Response:
    """Handle POST /api/scan/start.

    Body:
        {"post_types": ["post", "page"], "batch_size": 10}

    Returns:
        200 with {"ok": true, "message": ...} when the scan started,
        409 when a scan is already running,
        400 for malformed or invalid bodies,
        503 when scan state is locked by another process.
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return api_error("Request body must be valid JSON", code=INVALID_JSON)

    if not isinstance(body, dict):
        return api_error("Request body must be a JSON object", code=INVALID_REQUEST)

    try:
        params = StartScanRequest.model_validate(body)
    except ValidationError as e:
        details = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        return api_error(
            "Invalid scan parameters", code=VALIDATION_FAILED, details=details
        )

    controller = _controller(request)
    try:
        result = await asyncio.to_thread(
            controller.start, params.post_types, params.batch_size
        )
    except ScanValidationError as e:
        return api_error(str(e), code=VALIDATION_FAILED, details={"field": e.field})
    except DatabaseLockedError as e:
        return _locked("start", e)

    if not result.ok:
        if result.message == MSG_ALREADY_RUNNING:
            return api_error(result.message, code=SCAN_ALREADY_RUNNING, status=409)
        return api_error(result.message, code=SCAN_START_FAILED, status=503)

    return web.json_response(
        {"ok": True, "message": result.message, "generation": result.generation}
    )


async def api_scan_progress_handler(request: web.Request) -> web.Response:
    """Handle GET /api/scan/progress."""
    try:
        snapshot = await asyncio.to_thread(_controller(request).get_progress)
    except DatabaseLockedError as e:
        return _locked("progress", e)
    return web.json_response(snapshot.to_dict())


async def api_scan_reset_handler(request: web.Request) -> web.Response:
    """Handle POST /api/scan/reset."""
    try:
        await asyncio.to_thread(_controller(request).reset)
    except DatabaseLockedError as e:
        return _locked("reset", e)
    return web.json_response({"ok": True, "message": "Scan state reset"})


async def api_scan_notification_handler(request: web.Request) -> web.Response:
    """Handle DELETE /api/scan/notification."""
    try:
        cleared = await asyncio.to_thread(_controller(request).clear_notification)
    except DatabaseLockedError as e:
        return _locked("notification clear", e)
    return web.json_response({"ok": True, "cleared": cleared})


def setup_scan_routes(app: web.Application) -> None:
    """Register scan API routes with the application.

    Args:
        app: aiohttp Application to configure.
    """
    app.router.add_post("/api/scan/start", api_scan_start_handler)
    app.router.add_get("/api/scan/progress", api_scan_progress_handler)
    app.router.add_post("/api/scan/reset", api_scan_reset_handler)
    app.router.add_delete("/api/scan/notification", api_scan_notification_handler)
