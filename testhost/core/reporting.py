"""Reporting Records and Driver Contracts.

Defines what the adapter reports to the external test driver (run-scoped
text messages and per-test results) and the minimal surface it needs from
the driver's run, test and result-sink objects.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from testhost.core.constants import VARIANT_ARGUMENT


class TestOutcome(Enum):
    """Outcome recorded on a reported result."""

    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    NOT_RUNNABLE = "not_runnable"
    ABORTED = "aborted"
    TIMEOUT = "timeout"
    INCONCLUSIVE = "inconclusive"


class Messages:
    """Text templates for progress and failure messages."""

    REUSE = "Reusing existing {application} instance ({executable} {version}{variant_option})"
    LAUNCH = "Launching {application} ({executable} {version}{variant_option})"
    RETRY = "Retrying remote call for {target}"
    RESTART = "Restarting host for {target}"
    NO_CLIENT = "No host session is available to handle the call"
    REMOTE_CALL_ERROR = "Attempt {attempt}: remote call {call} failed: {message}"
    REMOTE_CALL_ERROR_DEBUG = (
        "Attempt {attempt}: remote call {call} failed: {message}\n{detail}"
    )
    LAUNCH_TIMEOUT = "Host did not accept connections within {seconds} seconds"
    FAILED_TO_LAUNCH = (
        "Failed to launch {application} ({executable} {version}, variant {variant})"
    )
    FAILED_TO_CONNECT = "Host process {process_id} started but its call channel is unreachable"
    MISSING_CONFIGURATION = (
        "Missing host configuration ({missing}): application={application}, "
        "executable={executable}, version={version}, variant={variant}"
    )
    FAILED_TO_RESUME = "Failed to resume the test run"
    NO_RUN_CONTEXT = "The adapter has not been initialized with a run context"
    ADAPTER_CLOSED = "The adapter has been cleaned up and accepts no further calls"


def variant_option(variant: str | None) -> str:
    """Render the variant as it appears on the host command line."""
    if not variant:
        return ""
    return f" {VARIANT_ARGUMENT} {variant}"


@dataclass
class ResultMessage:
    """One record delivered to the driver's result sink.

    Attributes:
        run_id: Identifier of the test run.
        message: Message text.
        test: Test element the record belongs to; None for run-scoped messages.
        outcome: Result outcome; None for informational text.
        fault: Underlying exception, when one is attached.

    """

    run_id: UUID
    message: str
    test: Any | None = None
    outcome: TestOutcome | None = None
    fault: BaseException | None = None

    @property
    def is_run_scoped(self) -> bool:
        """Check if this record is not tied to a test element."""
        return self.test is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "run_id": str(self.run_id),
            "message": self.message,
            "test": getattr(self.test, "human_readable_id", None),
            "outcome": self.outcome.value if self.outcome else None,
            "fault": repr(self.fault) if self.fault else None,
        }


@runtime_checkable
class ResultSink(Protocol):
    """Receives result records from the adapter."""

    def add_result(self, result: ResultMessage) -> None: ...


class TestElement(Protocol):
    """Driver-side description of a single test."""

    @property
    def human_readable_id(self) -> str: ...

    @property
    def properties(self) -> Mapping[str, str]: ...


class TestContext(Protocol):
    """Per-test context handed to ``run``."""

    @property
    def result_sink(self) -> ResultSink: ...


@dataclass
class RunConfiguration:
    """Run-wide configuration supplied by the driver.

    Attributes:
        properties: Run-level key/value launch properties.
        executed_under_debugger: Whether the driver itself is being debugged.

    """

    properties: Mapping[str, str] = field(default_factory=dict)
    executed_under_debugger: bool = False


class RunContext(Protocol):
    """Driver-side context for one test run."""

    @property
    def run_id(self) -> UUID: ...

    @property
    def run_configuration(self) -> RunConfiguration: ...

    @property
    def result_sink(self) -> ResultSink: ...

    def stop_test_run(self) -> None: ...


class ListResultSink:
    """Thread-safe sink that keeps every record in memory."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._results: list[ResultMessage] = []

    def add_result(self, result: ResultMessage) -> None:
        with self._lock:
            self._results.append(result)

    @property
    def results(self) -> list[ResultMessage]:
        with self._lock:
            return list(self._results)

    def messages(self) -> list[str]:
        """Get the text of every record, in arrival order."""
        return [r.message for r in self.results]


def send_message(
    run_context: RunContext | None, message: str, test: Any | None = None
) -> None:
    """Report a text message, per-test when ``test`` is given.

    Does nothing when there is no run context to report to.
    """
    if run_context is None:
        return
    run_context.result_sink.add_result(
        ResultMessage(run_id=run_context.run_id, message=message, test=test)
    )


def failure_result(
    error: BaseException, run_id: UUID, test: Any | None, diagnostics: bool
) -> ResultMessage:
    """Build the single failure record reported for an initialization error."""
    result = ResultMessage(
        run_id=run_id, message=str(error), test=test, outcome=TestOutcome.FAILED
    )
    if diagnostics and error.__cause__ is not None:
        result.fault = error.__cause__
    return result


__all__ = [
    "TestOutcome",
    "Messages",
    "ResultMessage",
    "ResultSink",
    "TestElement",
    "TestContext",
    "RunConfiguration",
    "RunContext",
    "ListResultSink",
    "send_message",
    "failure_result",
    "variant_option",
]
