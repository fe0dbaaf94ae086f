"""Remote Call Dispatcher.

Runs one logical call against the current host session with a bounded
number of attempts. Channel errors never escape: each one becomes a
progress message, the broken proxy is dropped, and the next attempt
reconnects (relaunching the host only where the retry policy allows).
"""

from __future__ import annotations

import traceback
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from testhost.core.exceptions import ChannelError, NoClientAvailableError
from testhost.core.reporting import Messages, RunContext, send_message
from testhost.core.session.host import RemoteProxy
from testhost.core.session.manager import SessionManager
from testhost.core.session.types import CallResult, FailureKind, RetryPolicy
from testhost.utils.logger import get_logger

logger = get_logger(__name__)

RemoteAction = Callable[[RemoteProxy], Any]
Initializer = Callable[[Any, RunContext], bool]


@dataclass(frozen=True)
class CallContext:
    """What a dispatched call is for.

    Attributes:
        call_name: Lifecycle call name, used in messages.
        run_context: Run to report progress to.
        current_test: Test the call runs; None for run-wide calls.

    """

    call_name: str
    run_context: RunContext
    current_test: Any | None = None

    @property
    def target(self) -> str:
        """Name of the test, or of the call when there is no test."""
        if self.current_test is not None:
            return str(getattr(self.current_test, "human_readable_id", self.current_test))
        return self.call_name


class CallDispatcher:
    """Applies retry, restart and error translation to remote calls."""

    def __init__(
        self,
        sessions: SessionManager,
        initializer: Initializer,
        diagnostics: bool = False,
    ):
        """Initialize the dispatcher.

        Args:
            sessions: Owner of the host session.
            initializer: Prepares a session for a test (resolve config,
                connect, post-connect steps). Reports its own failures and
                returns False on failure.
            diagnostics: Include full exception detail in messages.

        """
        self.sessions = sessions
        self.initializer = initializer
        self.diagnostics = diagnostics

    def dispatch(
        self, action: RemoteAction, policy: RetryPolicy, context: CallContext
    ) -> CallResult:
        """Invoke ``action`` on the current session's proxy.

        Returns:
            A successful CallResult, or a failed one when initialization
            failed or no client is available and restart is not allowed.

        Raises:
            NoClientAvailableError: Every attempt failed on the channel.

        """
        run_context = context.run_context
        test = context.current_test

        if test is not None and not self.initializer(test, run_context):
            return CallResult.failure(FailureKind.INITIALIZATION, attempts=0)

        last: CallResult | None = None
        for attempt in range(1, policy.max_attempts + 1):
            if attempt > 1:
                send_message(
                    run_context, Messages.RETRY.format(target=context.target), test
                )

            if not self.sessions.is_alive():
                self.sessions.close()
                if policy.restart_session_on_failure and test is not None:
                    send_message(
                        run_context, Messages.RESTART.format(target=context.target), test
                    )
                    if not self.initializer(test, run_context):
                        return CallResult.failure(
                            FailureKind.INITIALIZATION, attempts=attempt - 1
                        )
                else:
                    send_message(run_context, Messages.NO_CLIENT, test)
                    return CallResult.failure(
                        FailureKind.NO_CLIENT, attempts=attempt - 1
                    )

            proxy = self.sessions.borrow_proxy()
            if proxy is None:
                return CallResult.failure(FailureKind.NO_CLIENT, attempts=attempt - 1)

            last = self._attempt(action, proxy, attempt, policy, context)
            if last.succeeded:
                return last
            if not last.retryable:
                self.sessions.close()
                send_message(run_context, Messages.NO_CLIENT, test)
                return last

        logger.warning(
            "remote_call_exhausted",
            call=context.call_name,
            attempts=policy.max_attempts,
            last_failure=last.kind.value if last else None,
        )
        raise NoClientAvailableError(Messages.NO_CLIENT, attempts=policy.max_attempts)

    def _attempt(
        self,
        action: RemoteAction,
        proxy: RemoteProxy,
        attempt: int,
        policy: RetryPolicy,
        context: CallContext,
    ) -> CallResult:
        try:
            action(proxy)
        except ChannelError as e:
            logger.warning(
                "remote_call_failed",
                call=context.call_name,
                attempt=attempt,
                error=str(e),
            )
            send_message(
                context.run_context,
                self._describe(e, attempt, context.call_name),
                context.current_test,
            )
            self.sessions.discard_proxy(proxy)

            if self.sessions.host_exited():
                can_restart = (
                    policy.restart_session_on_failure
                    and context.current_test is not None
                )
                return CallResult.failure(
                    FailureKind.HOST_EXITED, attempt, error=e, retryable=can_restart
                )
            return CallResult.failure(
                FailureKind.CHANNEL, attempt, error=e, retryable=True
            )
        return CallResult.success(attempt)

    def _describe(self, error: ChannelError, attempt: int, call_name: str) -> str:
        if self.diagnostics:
            return Messages.REMOTE_CALL_ERROR_DEBUG.format(
                attempt=attempt,
                call=call_name,
                message=error.message,
                detail="".join(traceback.format_exception(error)),
            )
        return Messages.REMOTE_CALL_ERROR.format(
            attempt=attempt, call=call_name, message=error.message
        )


__all__ = ["CallDispatcher", "CallContext", "RemoteAction", "Initializer"]
