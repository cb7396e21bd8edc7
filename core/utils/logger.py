"""Centralized logging configuration for the node provisioner."""

import logging
import sys
from pathlib import Path
from typing import Optional


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve_log_path(log_file: str) -> Path:
    """Relative names land in ``logs/``; absolute paths are used as-is."""
    log_path = Path(log_file)
    if not log_path.is_absolute():
        log_path = Path("logs") / log_path
    return log_path


def reset_log_file(log_file: str) -> Path:
    """Empty a log file before a run that should leave only its own records.

    Handlers still open the file in append mode, so several loggers can share
    it without overwriting each other.
    """
    log_path = _resolve_log_path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    log_path.write_text("")
    return log_path


def setup_logger(
    name: str, log_file: Optional[str] = None, level: str = "INFO"
) -> logging.Logger:
    """Setup a logger with console and optional file output.

    Examples:
        # Console only
        logger = setup_logger(__name__)

        # Console + file
        logger = setup_logger(__name__, "provisioner.log")

        # Bootstrap agent on the node
        logger = setup_logger("bootstrap", "/var/log/near-bootstrap.log")
    """
    logger = logging.getLogger(name)
    try:
        logger.setLevel(getattr(logging, level.upper()))
    except AttributeError:
        logger.setLevel(logging.INFO)

    if not logger.handlers:
        formatter = logging.Formatter(LOG_FORMAT)

        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

        if log_file:
            log_path = _resolve_log_path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, mode="a")
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger


def get_infrastructure_logger(module_name: str) -> logging.Logger:
    """Get logger for infrastructure modules.

    Handlers live on the ``infrastructure`` parent logger, configured once by
    the entry point, so records are not printed twice.
    """
    if not module_name.startswith("infrastructure."):
        module_name = f"infrastructure.{module_name}"
    return logging.getLogger(module_name)
