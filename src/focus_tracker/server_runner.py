"""Helpers to launch the local API server."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import uvicorn

from .config import TrackerSettings
from .paths import get_db_path
from .webapp import create_app

logger = logging.getLogger(__name__)


def run_server(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    log_level: str = "info",
) -> None:
    """Serve the ingestion and reporting API until interrupted."""
    resolved_db_path = db_path or get_db_path()
    app = create_app(db_path=resolved_db_path, settings=settings or TrackerSettings())

    logger.info("Serving focus tracker API on http://%s:%s (db=%s)", host, port, resolved_db_path)
    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    uvicorn.run(app, host=host, port=port, log_level=log_level)
