"""Logging configuration for tcp-filestore."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


def setup_logging(log_path: Path | None, *, verbose: bool = False) -> None:
    """Configure package logger with a rotating file handler, or stderr when no log file is set.

    Idempotent: skips if a handler is already attached.
    """
    root = logging.getLogger("tcp_filestore")
    if root.handlers:
        return

    handler: logging.Handler
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3)
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt="%(asctime)s %(levelname)-8s %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S"))

    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.addHandler(handler)
