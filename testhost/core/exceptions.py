"""Custom exceptions for host test sessions.

This module defines the exception hierarchy for the host test adapter,
providing detailed error information and categorization.
"""

from __future__ import annotations

from typing import Any


class HostTestError(Exception):
    """Base exception for host test session operations.

    Attributes:
        message: Human-readable error description
        error_code: Optional error code for categorization
        context: Additional context information

    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}


class InvalidConfigurationError(HostTestError):
    """Raised when launch parameters are missing or unusable."""

    def __init__(
        self,
        message: str,
        missing_fields: list[str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code="invalid_configuration", context=context)
        self.missing_fields = list(missing_fields or [])


class LaunchTimeoutError(HostTestError):
    """Raised when the host does not come up within the launch timeout."""

    def __init__(self, message: str, timeout_seconds: float) -> None:
        super().__init__(
            message,
            error_code="launch_timeout",
            context={"timeout_seconds": timeout_seconds},
        )
        self.timeout_seconds = timeout_seconds


class LaunchCancelledError(HostTestError):
    """Raised by a launcher that observed a cancelled launch token."""

    def __init__(self, message: str = "Host launch was cancelled") -> None:
        super().__init__(message, error_code="launch_cancelled")


class LaunchFailedError(HostTestError):
    """Raised when the host process could not be started."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, error_code="launch_failed", context=context)


class ConnectionFailedError(HostTestError):
    """Raised when the host started but its call channel is unreachable."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, error_code="connection_failed", context=context)


class ChannelError(HostTestError):
    """Raised by remote proxies when the call channel fails."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, error_code="channel_error", context=context)


class RemoteCallError(HostTestError):
    """Raised when the host executed a call and reported an error."""

    def __init__(self, method: str, message: str) -> None:
        super().__init__(
            f"Remote {method} failed: {message}",
            error_code="remote_call_error",
            context={"method": method},
        )


class NoClientAvailableError(HostTestError):
    """Raised when no live host session could serve a call."""

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(
            message, error_code="no_client", context={"attempts": attempts}
        )
        self.attempts = attempts


class ResumeFailedError(HostTestError):
    """Raised when a paused run could not be resumed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code="resume_failed")


class NoRunContextError(HostTestError):
    """Raised when a lifecycle call arrives before initialization."""

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code="no_run_context")


class AdapterClosedError(HostTestError):
    """Raised when a lifecycle call arrives after cleanup."""

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code="adapter_closed")
