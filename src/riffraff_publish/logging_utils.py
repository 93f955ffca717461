"""Logging setup for GitHub Actions runners.

Records written to the runner's stdout are turned into workflow commands, so
debug lines only show up when step debug logging is enabled and warnings and
errors become annotations.
"""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

from riffraff_publish.actions import escape_data
from riffraff_publish.config import load_settings

_logging_configured = False
_logging_lock = threading.Lock()

_logger = logging.getLogger(__name__)

_FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class WorkflowCommandFormatter(logging.Formatter):
    """Prefix records with the workflow command matching their level."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if record.levelno >= logging.ERROR:
            return f"::error::{escape_data(message)}"
        if record.levelno >= logging.WARNING:
            return f"::warning::{escape_data(message)}"
        if record.levelno <= logging.DEBUG:
            return f"::debug::{escape_data(message)}"
        return message


def configure_logging() -> None:
    global _logging_configured

    settings = load_settings()
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(WorkflowCommandFormatter("%(name)s: %(message)s"))
    handlers.append(stream_handler)

    if settings.logging.file:
        try:
            Path(settings.logging.file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(settings.logging.file)
            file_handler.setFormatter(
                logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")
            )
            handlers.append(file_handler)
        except OSError as exc:
            _logger.warning("Failed to open log file %s: %s", settings.logging.file, exc)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    # botocore is chatty at DEBUG and logs request headers.
    logging.getLogger("botocore").setLevel(max(level, logging.INFO))
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    if not _logging_configured:
        with _logging_lock:
            if not _logging_configured:
                configure_logging()
    return logging.getLogger(name)
