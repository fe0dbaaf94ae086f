"""Host Test Adapter.

The lifecycle surface the external test driver calls. Each lifecycle call
becomes one dispatched remote call with its own retry policy:

    call                    attempts  restart host
    run                     2         yes   (total failure -> NOT_RUNNABLE)
    abort / pause / stop    2         no
    resume                  2         no    (failure -> ResumeFailedError)
    cleanup                 2         yes   (session closed afterwards)
    receive_message         2         yes
    pre_test_run_finished   2         yes

Restarts only happen for calls that carry a test, since only a test says
which host configuration to relaunch.
"""

from __future__ import annotations

from enum import Enum
from typing import Any
from uuid import UUID

from testhost.core.config import Settings, get_settings
from testhost.core.debugger import (
    DebuggerAttacher,
    LoggingDebuggerAttacher,
    attach_debugger_if_needed,
)
from testhost.core.dispatch import CallContext, CallDispatcher, RemoteAction
from testhost.core.exceptions import (
    AdapterClosedError,
    ConnectionFailedError,
    HostTestError,
    NoClientAvailableError,
    NoRunContextError,
    ResumeFailedError,
)
from testhost.core.launch_config import (
    LaunchConfig,
    collect_properties,
    resolve_launch_config,
)
from testhost.core.reporting import (
    Messages,
    ResultMessage,
    RunContext,
    TestOutcome,
    failure_result,
    send_message,
)
from testhost.core.session.host import HostLauncher
from testhost.core.session.in_process import InProcessLauncher
from testhost.core.session.manager import SessionManager
from testhost.core.session.process_host import ProcessHostLauncher
from testhost.core.session.types import CallResult, FailureKind, RetryPolicy
from testhost.utils.logger import configure_logging_from_settings, get_logger

logger = get_logger(__name__)


class AdapterState(Enum):
    """Lifecycle state of a ``HostTestAdapter``."""

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    CLOSED = "closed"


class HostTestAdapter:
    """Runs tests inside a separate host process on behalf of a test driver.

    The driver serializes lifecycle calls into one adapter per run.

    Example:
        >>> adapter = HostTestAdapter()
        >>> adapter.initialize(run_context)
        >>> adapter.run(test, test_context)
        >>> adapter.cleanup()

    """

    def __init__(
        self,
        launcher: HostLauncher | None = None,
        mock_launcher: HostLauncher | None = None,
        debugger: DebuggerAttacher | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            launcher: Starts real hosts; a ProcessHostLauncher if None.
            mock_launcher: Wires the same-process stand-in for the mock
                application kind; an InProcessLauncher if None.
            debugger: Attaches the driving debugger to launched hosts.
            settings: Process settings; global settings if None. Their
                logging section configures logging unless the application
                already has.

        """
        self.settings = settings or get_settings()
        configure_logging_from_settings(self.settings)
        self.sessions = SessionManager(launcher or ProcessHostLauncher())
        self.mock_launcher = mock_launcher or InProcessLauncher()
        self.debugger = debugger or LoggingDebuggerAttacher()
        self.dispatcher = CallDispatcher(
            self.sessions,
            self._initialize_for_test,
            diagnostics=self.settings.diagnostics,
        )

        attempts = self.settings.calls.max_attempts
        self.run_policy = RetryPolicy(attempts, restart_session_on_failure=True)
        self.control_policy = RetryPolicy(attempts, restart_session_on_failure=False)

        self._run_context: RunContext | None = None
        self._run_id: UUID | None = None
        self._closed = False
        self._ever_connected = False
        self._is_mock = False

    @property
    def run_id(self) -> UUID | None:
        return self._run_id

    @property
    def is_mock(self) -> bool:
        """Check if the last initialized test used the same-process stand-in."""
        return self._is_mock

    @property
    def state(self) -> AdapterState:
        if self._closed:
            return AdapterState.CLOSED
        if self._run_context is None:
            return AdapterState.UNINITIALIZED
        if self.sessions.has_session:
            return AdapterState.CONNECTED
        if self._ever_connected:
            return AdapterState.DISCONNECTED
        return AdapterState.INITIALIZED

    def _require_run_context(self) -> RunContext:
        if self._closed:
            raise AdapterClosedError(Messages.ADAPTER_CLOSED)
        if self._run_context is None:
            raise NoRunContextError(Messages.NO_RUN_CONTEXT)
        return self._run_context

    # -------------------------------------------------------------------------
    # Per-test initialization
    # -------------------------------------------------------------------------

    def _initialize_for_test(self, test: Any, run_context: RunContext) -> bool:
        """Resolve configuration, connect a session and prepare the remote side.

        Any failure is reported as one FAILED result and stops the run.

        Returns:
            True if the session is ready for ``test``.

        """
        failure: ResultMessage | None = None
        try:
            properties = collect_properties(test, run_context.run_configuration)
            config = resolve_launch_config(properties, self.settings.launch)
            self._connect(config, run_context, test)

            proxy = self.sessions.borrow_proxy()
            if proxy is None:
                raise ConnectionFailedError(Messages.NO_CLIENT)
            proxy.initialize(run_context)

            if not config.is_mock:
                attach_debugger_if_needed(
                    self.debugger,
                    run_context.run_configuration,
                    self.sessions.process_id,
                    config.debug_mixed_mode,
                )
        except HostTestError as e:
            logger.error("test_initialization_failed", error=str(e), code=e.error_code)
            failure = failure_result(
                e, run_context.run_id, test, self.settings.diagnostics
            )
        except Exception as e:
            logger.exception("test_initialization_failed", error=str(e))
            failure = failure_result(
                e, run_context.run_id, test, self.settings.diagnostics
            )
            failure.fault = e

        if failure is not None:
            run_context.result_sink.add_result(failure)
            run_context.stop_test_run()
            return False
        return True

    def _connect(self, config: LaunchConfig, run_context: RunContext, test: Any) -> None:
        self._is_mock = config.is_mock
        self.sessions.connect(
            config.key,
            config.launch_timeout_seconds,
            progress=lambda text: send_message(run_context, text, test),
            launcher=self.mock_launcher if config.is_mock else None,
        )
        self._ever_connected = True

    def _call(
        self,
        call_name: str,
        action: RemoteAction,
        policy: RetryPolicy,
        test: Any | None = None,
    ) -> CallResult:
        run_context = self._require_run_context()
        return self.dispatcher.dispatch(
            action, policy, CallContext(call_name, run_context, test)
        )

    # -------------------------------------------------------------------------
    # Lifecycle surface
    # -------------------------------------------------------------------------

    def initialize(self, run_context: RunContext) -> None:
        """Store the run context; no host is launched until a test runs."""
        if self._closed:
            raise AdapterClosedError(Messages.ADAPTER_CLOSED)
        self._run_context = run_context
        self._run_id = run_context.run_id
        logger.info("adapter_initialized", run_id=str(self._run_id))

    def cleanup(self) -> None:
        """Let the host clean up, then close the session for good."""
        try:
            self._call("cleanup", lambda r: r.cleanup(), self.run_policy)
        finally:
            self.sessions.close()
            self._closed = True
            logger.info("adapter_closed", run_id=str(self._run_id))

    def pre_test_run_finished(self, run_context: RunContext) -> None:
        self._call(
            "pre_test_run_finished",
            lambda r: r.pre_test_run_finished(run_context),
            self.run_policy,
        )

    def receive_message(self, message: Any) -> None:
        """Forward an opaque driver message to the host."""
        self._call("receive_message", lambda r: r.receive_message(message), self.run_policy)

    def abort(self) -> None:
        self._call("abort", lambda r: r.abort(), self.control_policy)

    def pause(self) -> None:
        self._call("pause", lambda r: r.pause(), self.control_policy)

    def resume(self) -> None:
        """Resume a paused run.

        Raises:
            ResumeFailedError: If the host could not be told to resume.

        """
        try:
            result = self._call("resume", lambda r: r.resume(), self.control_policy)
        except NoClientAvailableError as e:
            raise ResumeFailedError(Messages.FAILED_TO_RESUME) from e
        if not result:
            raise ResumeFailedError(Messages.FAILED_TO_RESUME)

    def stop(self) -> None:
        self._call("stop", lambda r: r.stop(), self.control_policy)

    def run(self, test: Any, test_context: Any) -> CallResult:
        """Run one test in the host.

        If no host can run it, the test is reported NOT_RUNNABLE and the
        rest of the run continues.
        """
        run_context = self._require_run_context()
        try:
            result = self._call(
                "run", lambda r: r.run(test, test_context), self.run_policy, test
            )
        except NoClientAvailableError as e:
            result = CallResult.failure(FailureKind.NO_CLIENT, attempts=e.attempts, error=e)

        if not result:
            test_context.result_sink.add_result(
                ResultMessage(
                    run_id=run_context.run_id,
                    message=".",
                    test=test,
                    outcome=TestOutcome.NOT_RUNNABLE,
                )
            )
        return result


__all__ = ["AdapterState", "HostTestAdapter"]
