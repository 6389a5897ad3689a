"""Core services and utilities for LeaveBridge."""

from .logging import LogContext, get_logger, log_external_call, setup_logging

__all__ = [
    "LogContext",
    "get_logger",
    "log_external_call",
    "setup_logging",
]
