"""Tests for logging setup."""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from tcp_filestore.log import setup_logging


@pytest.fixture(autouse=True)
def clean_logger() -> Iterator[logging.Logger]:
    """Detach handlers added by a test."""
    logger = logging.getLogger("tcp_filestore")
    saved = list(logger.handlers)
    logger.handlers.clear()
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = saved


class TestSetupLogging:
    """Handler selection and idempotency."""

    def test_file_handler(self, tmp_path: Path, clean_logger: logging.Logger):
        """A log path gets a rotating file that receives package records."""
        log_path = tmp_path / "logs" / "filestore.log"
        setup_logging(log_path)
        logging.getLogger("tcp_filestore.net.server").info("hello")
        for handler in clean_logger.handlers:
            handler.flush()
        assert "hello" in log_path.read_text()

    def test_stderr_handler(self, clean_logger: logging.Logger):
        """Without a path, logs go to a stream handler."""
        setup_logging(None)
        assert len(clean_logger.handlers) == 1
        assert isinstance(clean_logger.handlers[0], logging.StreamHandler)

    def test_idempotent(self, tmp_path: Path, clean_logger: logging.Logger):
        """A second call adds nothing."""
        setup_logging(tmp_path / "a.log")
        setup_logging(tmp_path / "b.log")
        assert len(clean_logger.handlers) == 1

    def test_verbose_level(self, clean_logger: logging.Logger):
        """Verbose switches the package logger to DEBUG."""
        setup_logging(None, verbose=True)
        assert clean_logger.level == logging.DEBUG
