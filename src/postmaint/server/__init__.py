"""HTTP API server for postmaint."""

from postmaint.server.app import create_app, open_engine
from postmaint.server.worker_task import ScanWorkerTask

__all__ = ["ScanWorkerTask", "create_app", "open_engine"]
