"""Shared utilities for LeaveBridge."""

from leavebridge.utils.exceptions import (
    ApiError,
    ConfigurationError,
    InvalidSessionTransitionError,
    LeaveBridgeError,
    MappingError,
    NotFoundError,
    SessionAlreadyOpenError,
    SyncAlreadyRunningError,
    SyncError,
    SyncSessionError,
)

__all__ = [
    "LeaveBridgeError",
    "ConfigurationError",
    "ApiError",
    "NotFoundError",
    "MappingError",
    "SyncError",
    "SyncSessionError",
    "SessionAlreadyOpenError",
    "InvalidSessionTransitionError",
    "SyncAlreadyRunningError",
]
