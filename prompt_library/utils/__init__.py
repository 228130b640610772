"""Utility modules."""

from .logging_utils import LogContext, log_with_timing, setup_logging

__all__ = [
    "LogContext",
    "log_with_timing",
    "setup_logging",
]
