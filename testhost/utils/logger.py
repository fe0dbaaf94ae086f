"""Test Host Structured Logging System

Provides structured logging with session lifecycle event tracking.
Uses structlog for consistent, analyzable log output.
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

if TYPE_CHECKING:
    from testhost.core.config import Settings

SENSITIVE_FIELDS = {
    "authkey",
    "password",
    "token",
    "secret",
}


def redact_sensitive_data(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Processor to redact channel credentials from log entries.

    Args:
        logger: The wrapped logger instance
        method_name: The name of the method being called
        event_dict: The event dictionary to process

    Returns:
        Processed event dictionary with sensitive data redacted

    """
    for key in list(event_dict):
        if key.lower() in SENSITIVE_FIELDS:
            event_dict[key] = "***REDACTED***"

    return event_dict


def add_timestamp(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Processor to add ISO-formatted timestamp to log entries."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def add_session_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Processor to tag host session lifecycle events."""
    if event_dict.get("session_event"):
        event_dict["event_category"] = "SESSION"

    return event_dict


def configure_logging(
    log_level: str = "INFO", json_format: bool = True, log_file: Path | None = None
) -> None:
    """Configure structlog for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Whether to output JSON format (True) or human-readable (False)
        log_file: Optional file path to write logs to

    Example:
        >>> configure_logging(log_level="DEBUG", json_format=False)
        >>> logger = get_logger("testhost")
        >>> logger.info("session_launch", application="VisualStudio")

    """
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
        force=True,
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_timestamp,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        redact_sensitive_data,
        add_session_context,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        logging.root.addHandler(file_handler)


def configure_logging_from_settings(settings: Settings, force: bool = False) -> bool:
    """Configure logging from the ``logging`` section of ``settings``.

    Leaves an existing structlog configuration alone unless ``force`` is set.

    Returns:
        True if logging was (re)configured.

    """
    if structlog.is_configured() and not force:
        return False
    configure_logging(
        log_level=settings.logging.log_level.value,
        json_format=settings.logging.log_format == "json",
    )
    return True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a configured structlog logger.

    Args:
        name: Logger name (typically module name using __name__)

    Returns:
        Configured structlog BoundLogger instance

    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


class SessionEventLogger:
    """Specialized logger for host session lifecycle events."""

    def __init__(self, logger: structlog.stdlib.BoundLogger):
        self.logger = logger

    def log_launch(self, key: object, timeout_seconds: float) -> None:
        """Log that a new host is being launched for ``key``."""
        self.logger.info(
            "session_launch",
            session_event=True,
            key=str(key),
            timeout_seconds=timeout_seconds,
        )

    def log_connected(self, key: object, process_id: int) -> None:
        """Log that a freshly launched host accepted its call channel."""
        self.logger.info(
            "session_connected",
            session_event=True,
            key=str(key),
            process_id=process_id,
        )

    def log_reuse(self, key: object, process_id: int) -> None:
        """Log that an existing session satisfied a connect request."""
        self.logger.info(
            "session_reused",
            session_event=True,
            key=str(key),
            process_id=process_id,
        )

    def log_closed(self, key: object, process_id: int) -> None:
        """Log that a session was detached and disposed."""
        self.logger.info(
            "session_closed",
            session_event=True,
            key=str(key),
            process_id=process_id,
        )

    def log_probe_failed(self, key: object, reason: str) -> None:
        """Log a liveness probe that found the session dead."""
        self.logger.warning(
            "session_probe_failed",
            session_event=True,
            key=str(key),
            reason=reason,
        )
