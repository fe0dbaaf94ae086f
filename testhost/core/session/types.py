"""Host Session Types.

Value types shared by the session manager and the call dispatcher.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

_VERSION_RE = re.compile(r"^\d+(\.\d+){1,3}$")


@dataclass(frozen=True, order=True)
class HostVersion:
    """Dotted host version with two to four numeric components.

    Attributes:
        parts: Numeric components, most significant first.

    """

    parts: tuple[int, ...]

    def __post_init__(self) -> None:
        """Validate component count and sign."""
        if not 2 <= len(self.parts) <= 4:
            raise ValueError("version must have between 2 and 4 components")
        if any(p < 0 for p in self.parts):
            raise ValueError("version components must be non-negative")

    @classmethod
    def parse(cls, text: str) -> HostVersion:
        """Parse ``major.minor[.build[.revision]]``.

        Raises:
            ValueError: If ``text`` is not a dotted version.

        """
        text = text.strip()
        if not _VERSION_RE.match(text):
            raise ValueError(f"Not a version string: {text!r}")
        return cls(tuple(int(p) for p in text.split(".")))

    @classmethod
    def try_parse(cls, text: str | None) -> HostVersion | None:
        """Parse ``text``, returning None instead of raising."""
        if text is None:
            return None
        try:
            return cls.parse(text)
        except ValueError:
            return None

    @property
    def major(self) -> int:
        return self.parts[0]

    @property
    def minor(self) -> int:
        return self.parts[1]

    def __str__(self) -> str:
        return ".".join(str(p) for p in self.parts)


@dataclass(frozen=True)
class SessionKey:
    """Identifies a requestable host configuration.

    Two sessions with equal keys are interchangeable; an unequal key forces
    the current session to be closed before a new one is launched.

    Attributes:
        application: Application kind, e.g. "VisualStudio".
        executable: Executable name or path, extension included.
        version: Host version.
        variant: Optional variant (hive) name.

    """

    application: str
    executable: str
    version: HostVersion
    variant: str | None = None

    def __str__(self) -> str:
        variant = f" [{self.variant}]" if self.variant else ""
        return f"{self.application} {self.executable} {self.version}{variant}"


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and restart permission for one kind of call.

    Attributes:
        max_attempts: Number of attempts, at least 1.
        restart_session_on_failure: Whether a dead host may be relaunched.

    """

    max_attempts: int = 2
    restart_session_on_failure: bool = True

    def __post_init__(self) -> None:
        """Validate the attempt budget."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")


class FailureKind(Enum):
    """Why a call attempt did not succeed."""

    NONE = "none"
    INITIALIZATION = "initialization"
    NO_CLIENT = "no_client"
    CHANNEL = "channel"
    HOST_EXITED = "host_exited"


@dataclass(frozen=True)
class CallResult:
    """Outcome of one dispatched call or call attempt.

    Attributes:
        succeeded: Whether the action completed.
        kind: Failure classification, NONE on success.
        retryable: Whether another attempt may succeed.
        error: Exception behind the failure, if any.
        attempts: Attempts made so far.

    """

    succeeded: bool
    kind: FailureKind = FailureKind.NONE
    retryable: bool = False
    error: BaseException | None = None
    attempts: int = 0

    def __bool__(self) -> bool:
        """Call succeeded if the action completed."""
        return self.succeeded

    @classmethod
    def success(cls, attempts: int) -> CallResult:
        return cls(succeeded=True, attempts=attempts)

    @classmethod
    def failure(
        cls,
        kind: FailureKind,
        attempts: int,
        error: BaseException | None = None,
        retryable: bool = False,
    ) -> CallResult:
        return cls(
            succeeded=False,
            kind=kind,
            retryable=retryable,
            error=error,
            attempts=attempts,
        )


__all__ = [
    "HostVersion",
    "SessionKey",
    "RetryPolicy",
    "FailureKind",
    "CallResult",
]
