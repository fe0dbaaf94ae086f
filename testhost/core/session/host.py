"""Host Session Resources.

A ``HostSession`` owns one launched host (its process handle) and the remote
proxy connected to it. The launcher, handle and proxy are collaborator
interfaces; ``process_host`` and ``in_process`` provide implementations.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any, Protocol

from testhost.core.exceptions import ChannelError, LaunchCancelledError
from testhost.core.session.types import SessionKey
from testhost.utils.logger import get_logger

logger = get_logger(__name__)


class CancellationToken:
    """Cancellation flag with an optional deadline.

    Launchers poll ``cancelled`` or call ``raise_if_cancelled`` between
    blocking steps; ``wait`` sleeps until the interval passes or the token
    is cancelled, whichever comes first.
    """

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = (
            time.monotonic() + timeout_seconds if timeout_seconds is not None else None
        )

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    @property
    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        """Raise LaunchCancelledError once the token is cancelled."""
        if self.cancelled:
            raise LaunchCancelledError()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if cancelled meanwhile."""
        remaining = self.remaining
        if remaining is not None:
            seconds = min(seconds, remaining)
        self._event.wait(seconds)
        return self.cancelled


class HostHandle(Protocol):
    """Handle to a launched host process."""

    @property
    def process_id(self) -> int: ...

    def is_running(self) -> bool: ...

    def request_shutdown(self) -> None: ...

    def dispose(self) -> None: ...


class RemoteProxy(Protocol):
    """Local handle to the host's test call surface.

    Every method may raise ``ChannelError`` when the call channel fails.
    """

    @property
    def is_initialized(self) -> bool: ...

    def initialize(self, run_context: Any) -> None: ...

    def run(self, test: Any, test_context: Any) -> None: ...

    def abort(self) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def stop(self) -> None: ...

    def cleanup(self) -> None: ...

    def receive_message(self, message: Any) -> None: ...

    def pre_test_run_finished(self, run_context: Any) -> None: ...

    def close(self) -> None: ...


class HostLauncher(Protocol):
    """Starts hosts and connects proxies to them."""

    def launch(
        self, key: SessionKey, cancel: CancellationToken
    ) -> tuple[HostHandle, str]:
        """Start a host for ``key``; return its handle and endpoint address."""
        ...

    def connect_proxy(self, endpoint: str, cancel: CancellationToken) -> RemoteProxy:
        """Connect to ``endpoint`` before ``cancel`` fires.

        Raise ChannelError if unreachable and LaunchCancelledError if the
        handshake outlives the token.
        """
        ...


def close_proxy(proxy: RemoteProxy | None) -> None:
    """Close ``proxy``, ignoring a channel that is already broken."""
    if proxy is None:
        return
    try:
        proxy.close()
    except ChannelError as e:
        logger.debug("proxy_close_channel_broken", error=str(e))


class HostSession:
    """One launched host plus its connected remote proxy.

    Owned exclusively by ``SessionManager``. Once disposed it is never
    reused.
    """

    def __init__(self, key: SessionKey, handle: HostHandle, proxy: RemoteProxy):
        self.key = key
        self.handle = handle
        self._proxy: RemoteProxy | None = proxy
        self._lock = threading.Lock()
        self._disposed = False

    @property
    def process_id(self) -> int:
        return self.handle.process_id

    @property
    def proxy(self) -> RemoteProxy | None:
        return self._proxy

    @property
    def disposed(self) -> bool:
        return self._disposed

    def detach_proxy(self) -> RemoteProxy | None:
        """Remove and return the proxy in one step."""
        with self._lock:
            proxy, self._proxy = self._proxy, None
        return proxy

    def dispose(self) -> list[tuple[str, Exception]]:
        """Release the proxy and the host process, in that order.

        Every step runs even if an earlier one failed. Failures are logged
        and returned, never raised. A second call does nothing.

        Returns:
            (step name, exception) for each step that failed.

        """
        with self._lock:
            if self._disposed:
                return []
            self._disposed = True
            proxy, self._proxy = self._proxy, None

        steps: list[tuple[str, Callable[[], None]]] = [
            ("close_proxy", lambda: close_proxy(proxy)),
            ("request_shutdown", self.handle.request_shutdown),
            ("dispose_handle", self.handle.dispose),
        ]
        failures: list[tuple[str, Exception]] = []
        for name, step in steps:
            try:
                step()
            except Exception as e:
                logger.warning(
                    "dispose_step_failed",
                    step=name,
                    key=str(self.key),
                    error=str(e),
                )
                failures.append((name, e))
        return failures


__all__ = [
    "CancellationToken",
    "HostHandle",
    "RemoteProxy",
    "HostLauncher",
    "HostSession",
    "close_proxy",
]
