"""Debugger Attachment.

When the driver itself runs under a debugger, a freshly launched host is
handed to a ``DebuggerAttacher`` so the debugger follows the tests into it.
"""

from __future__ import annotations

from typing import Protocol

from testhost.core.reporting import RunConfiguration
from testhost.utils.logger import get_logger

logger = get_logger(__name__)


class DebuggerAttacher(Protocol):
    """Attaches the driving debugger to another process."""

    def attach(self, process_id: int, mixed_mode: bool) -> None: ...


class LoggingDebuggerAttacher:
    """Default attacher: records the request in the log only."""

    def __init__(self) -> None:
        self.requests: list[tuple[int, bool]] = []

    def attach(self, process_id: int, mixed_mode: bool) -> None:
        self.requests.append((process_id, mixed_mode))
        logger.warning(
            "debugger_attach_unavailable",
            process_id=process_id,
            mixed_mode=mixed_mode,
        )


def attach_debugger_if_needed(
    attacher: DebuggerAttacher,
    run_configuration: RunConfiguration,
    process_id: int | None,
    mixed_mode: bool,
) -> bool:
    """Attach to ``process_id`` if the run executes under a debugger.

    Returns:
        True if an attach was requested.

    """
    if not run_configuration.executed_under_debugger or process_id is None:
        return False
    logger.info("debugger_attach", process_id=process_id, mixed_mode=mixed_mode)
    attacher.attach(process_id, mixed_mode)
    return True


__all__ = ["DebuggerAttacher", "LoggingDebuggerAttacher", "attach_debugger_if_needed"]
