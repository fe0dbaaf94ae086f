"""Same-Process Stand-In Host.

Used for the mock application kind: no process is launched and calls go
straight to a ``LocalTestee`` living in the driving process. This lets the
whole adapter pipeline run under test without an external host.
"""

from __future__ import annotations

import os
import threading
import uuid
from collections.abc import Callable
from typing import Any

from testhost.core.reporting import ResultMessage, TestOutcome
from testhost.core.session.host import CancellationToken
from testhost.core.session.types import SessionKey
from testhost.utils.logger import get_logger

logger = get_logger(__name__)

TestExecutor = Callable[[Any, Any], TestOutcome]


class LocalTestee:
    """In-process implementation of the remote call surface.

    Records every call in ``calls``. ``run`` reports one result per test to
    the test context's sink: the executor's outcome if one was supplied,
    otherwise PASSED.
    """

    def __init__(self, executor: TestExecutor | None = None):
        self.executor = executor
        self.calls: list[str] = []
        self.run_context: Any = None
        self.paused = False
        self.stopped = False
        self.aborted = False
        self.closed = False
        self._initialized = False
        self._lock = threading.Lock()

    def _record(self, name: str) -> None:
        with self._lock:
            self.calls.append(name)

    @property
    def is_initialized(self) -> bool:
        return self._initialized and not self.closed

    def initialize(self, run_context: Any) -> None:
        self._record("initialize")
        self.run_context = run_context
        self._initialized = True

    def run(self, test: Any, test_context: Any) -> None:
        self._record("run")
        outcome = (
            self.executor(test, test_context) if self.executor else TestOutcome.PASSED
        )
        run_id = getattr(self.run_context, "run_id", None) or uuid.uuid4()
        test_context.result_sink.add_result(
            ResultMessage(run_id=run_id, message=".", test=test, outcome=outcome)
        )

    def abort(self) -> None:
        self._record("abort")
        self.aborted = True

    def pause(self) -> None:
        self._record("pause")
        self.paused = True

    def resume(self) -> None:
        self._record("resume")
        self.paused = False

    def stop(self) -> None:
        self._record("stop")
        self.stopped = True

    def cleanup(self) -> None:
        self._record("cleanup")

    def receive_message(self, message: Any) -> None:
        self._record("receive_message")

    def pre_test_run_finished(self, run_context: Any) -> None:
        self._record("pre_test_run_finished")

    def close(self) -> None:
        self.closed = True


class InProcessHandle:
    """Handle standing in for a host process; the host is this process."""

    def __init__(self) -> None:
        self.disposed = False

    @property
    def process_id(self) -> int:
        return os.getpid()

    def is_running(self) -> bool:
        return not self.disposed

    def request_shutdown(self) -> None:
        pass

    def dispose(self) -> None:
        self.disposed = True


class InProcessLauncher:
    """Launcher that wires a fresh ``LocalTestee`` for every session."""

    def __init__(self, testee_factory: Callable[[], LocalTestee] = LocalTestee):
        self.testee_factory = testee_factory
        self.testees: list[LocalTestee] = []

    def launch(
        self, key: SessionKey, cancel: CancellationToken
    ) -> tuple[InProcessHandle, str]:
        cancel.raise_if_cancelled()
        endpoint = f"inproc://{uuid.uuid4().hex}"
        logger.debug("in_process_session", key=str(key), endpoint=endpoint)
        return InProcessHandle(), endpoint

    def connect_proxy(self, endpoint: str, cancel: CancellationToken) -> LocalTestee:
        cancel.raise_if_cancelled()
        testee = self.testee_factory()
        self.testees.append(testee)
        return testee


__all__ = ["LocalTestee", "InProcessHandle", "InProcessLauncher", "TestExecutor"]
