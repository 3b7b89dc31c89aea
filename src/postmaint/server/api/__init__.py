"""API route modules for the postmaint web server.

- scan.py: Scan start, progress, reset and notification endpoints
- models.py: Pydantic request models
- errors.py: Standardized error responses
"""

from aiohttp import web

from postmaint.server.api.scan import setup_scan_routes

__all__ = [
    "setup_api_routes",
]


def setup_api_routes(app: web.Application) -> None:
    """Register all API routes with the application."""
    setup_scan_routes(app)
