"""Custom exceptions for LeaveBridge."""


class LeaveBridgeError(Exception):
    """Base exception for all LeaveBridge errors."""

    pass


class ConfigurationError(LeaveBridgeError):
    """Error in configuration or settings."""

    pass


class ApiError(LeaveBridgeError):
    """An upstream API call failed.

    Attributes:
        service: Name of the upstream service ("HRSystem", "EngagementSystem")
        status_code: HTTP status code, if a response was received
    """

    def __init__(
        self,
        service: str,
        message: str,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.service = service
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is None:
            return f"{self.service}: {self.args[0]}"
        return f"{self.service} ({self.status_code}): {self.args[0]}"


class NotFoundError(ApiError):
    """The upstream resource does not exist (HTTP 404)."""

    def __init__(self, service: str, message: str):
        super().__init__(service, message, status_code=404)


class MappingError(LeaveBridgeError):
    """A user could not be mapped between the two systems."""

    pass


class SyncError(LeaveBridgeError):
    """Error during a synchronization run."""

    pass


class SyncSessionError(SyncError):
    """A bulk sync session call (start/push/complete) failed.

    Attributes:
        session_id: Session the failure belongs to, None if start failed
        stage: Which call failed ("start", "push", "complete")
    """

    def __init__(self, message: str, stage: str, session_id: str | None = None):
        super().__init__(message)
        self.stage = stage
        self.session_id = session_id

    def __str__(self) -> str:
        return f"SyncSessionError({self.stage}, session={self.session_id}): {self.args[0]}"


class SessionAlreadyOpenError(SyncError):
    """A second session was started while one is still open."""

    pass


class InvalidSessionTransitionError(SyncError):
    """A session state change not allowed by the session state machine."""

    pass


class SyncAlreadyRunningError(SyncError):
    """A sync run was started on an engine that is already running one."""

    pass
