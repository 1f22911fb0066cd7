"""Logging setup for the ERP service: stdout plus rotating app/error logs."""
import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROOT_LOGGER_NAME = "erp"


def _rotating_handler(path: Path, level: int, max_bytes: int, backup_count: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    handler.setLevel(level)
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_file: str = "./logs/app.log",
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    log_to_file: bool = True,
) -> logging.Logger:
    """
    Configure the ``erp`` logger tree once per process.

    Args:
        log_level: Threshold for the ``erp`` logger (DEBUG ... CRITICAL)
        log_file: General log path; ``error.log`` is written beside it
        max_bytes: Size at which each file rotates
        backup_count: Rotated files kept per log
        log_to_file: False logs to stdout only (tests, containers)

    Returns:
        The ``erp`` root logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper()))

    # Already configured (e.g. module re-imported by the reloader)
    if logger.handlers:
        return logger

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    handlers[0].setLevel(logging.INFO)

    if log_to_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(_rotating_handler(log_path, logging.DEBUG, max_bytes, backup_count))
        handlers.append(
            _rotating_handler(log_path.with_name("error.log"), logging.ERROR, max_bytes, backup_count)
        )

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    # Records stay inside the erp tree; uvicorn configures the root logger itself
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Child logger of ``erp`` for one component, e.g. ``get_logger("repository")``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
