"""Logging setup and request timing for the prompt library service."""

import logging
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
SLOW_REQUEST_SECONDS = 5.0


def setup_logging(
    service_name: str,
    log_file: str,
    log_level: str = "INFO",
    log_dir: str = "logs",
    log_to_file: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 3,
) -> logging.Logger:
    """
    Route root logging to stderr and, if enabled, to ``log_dir/log_file``.

    The file rotates at ``max_bytes`` keeping ``backup_count`` old files.
    Any handlers installed earlier (uvicorn's included) are replaced.
    """
    handlers: List[logging.Handler] = [logging.StreamHandler()]

    log_file_path: Optional[Path] = None
    if log_to_file:
        log_file_path = Path(log_dir) / log_file
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_file_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            )
        )

    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT, handlers=handlers, force=True)

    logger = logging.getLogger(service_name)
    destination = f"stderr and {log_file_path}" if log_file_path else "stderr"
    logger.info(f"{service_name} logging to {destination} at {log_level.upper()}")
    return logger


def log_with_timing(logger: logging.Logger, start_time: float, end_time: float, operation: str, **kwargs):
    """Log how long ``operation`` took; requests over five seconds log at WARNING."""
    duration = end_time - start_time
    details = "".join(f", {key}={value}" for key, value in kwargs.items())

    if duration > SLOW_REQUEST_SECONDS:
        logger.warning(f"{operation} took {duration:.2f}s (slow){details}")
    else:
        logger.info(f"{operation} completed in {duration:.3f}s{details}")


class LogContext:
    """Log the start, duration and failure of a block such as startup hydration."""

    def __init__(self, logger: logging.Logger, operation: str):
        self.logger = logger
        self.operation = operation
        self.start_time = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.info(f"Starting {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.perf_counter() - self.start_time
        if exc_type:
            self.logger.error(f"{self.operation} failed after {duration:.2f}s: {exc_val}")
        else:
            self.logger.info(f"{self.operation} completed in {duration:.2f}s")
