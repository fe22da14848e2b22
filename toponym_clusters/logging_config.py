"""
Logging setup for the pipeline, the CLI and the API server.
JSON lines when APP_ENV=production, plain text otherwise.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import json_log_formatter

from toponym_clusters.config import get_settings

TEXT_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# chatty at INFO during long runs or under the API
_QUIET_LOGGERS = ("uvicorn.access", "httpx")


def _formatter(env: str) -> logging.Formatter:
    if env == "production":
        return json_log_formatter.JSONFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(level: Optional[str] = None) -> None:
    """Install one stdout handler on the root logger; `level` overrides LOG_LEVEL."""
    settings = get_settings()
    name = (level or settings.log_level).upper()
    numeric = getattr(logging, name, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_formatter(settings.env))

    root = logging.getLogger()
    root.setLevel(numeric)
    root.handlers = [handler]

    for noisy in _QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(max(numeric, logging.WARNING))
