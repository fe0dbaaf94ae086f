"""Host Session Manager.

Owns zero or one ``HostSession``: decides reuse versus relaunch, performs
launch/connect/close and answers liveness probes. The session reference is
swapped under a lock so a probe on one thread never sees a session that a
``close`` on another thread is halfway through disposing.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from testhost.core.exceptions import (
    ChannelError,
    ConnectionFailedError,
    HostTestError,
    LaunchCancelledError,
    LaunchFailedError,
    LaunchTimeoutError,
    RemoteCallError,
)
from testhost.core.reporting import Messages, variant_option
from testhost.core.session.host import (
    CancellationToken,
    HostHandle,
    HostLauncher,
    HostSession,
    RemoteProxy,
    close_proxy,
)
from testhost.core.session.types import SessionKey
from testhost.utils.logger import SessionEventLogger, get_logger

logger = get_logger(__name__)

ProgressSink = Callable[[str], None]


def _format_key(template: str, key: SessionKey) -> str:
    return template.format(
        application=key.application,
        executable=key.executable,
        version=key.version,
        variant=key.variant or "(default)",
        variant_option=variant_option(key.variant),
    )


class SessionManager:
    """Keeps at most one live host session matched to a requested key.

    Usage:
        manager = SessionManager(ProcessHostLauncher())
        manager.connect(key, launch_timeout=30, progress=print)
        if manager.is_alive():
            manager.borrow_proxy().run(test, test_context)
        manager.close()
    """

    def __init__(self, launcher: HostLauncher):
        """Initialize the session manager.

        Args:
            launcher: Default launcher used by ``connect``.

        """
        self.launcher = launcher
        self._session: HostSession | None = None
        self._lock = threading.Lock()
        self._events = SessionEventLogger(logger)

    @property
    def current_key(self) -> SessionKey | None:
        session = self._session
        return session.key if session is not None else None

    @property
    def has_session(self) -> bool:
        return self._session is not None

    @property
    def process_id(self) -> int | None:
        session = self._session
        return session.process_id if session is not None else None

    def connect(
        self,
        key: SessionKey,
        launch_timeout: float,
        progress: ProgressSink | None = None,
        launcher: HostLauncher | None = None,
    ) -> None:
        """Ensure a connected session for ``key`` exists.

        A live session with an equal key is left untouched. Otherwise any
        current session is closed and a new host is launched; it is adopted
        only after its channel is connected.

        Args:
            key: Requested host configuration.
            launch_timeout: Seconds allowed for launch and handshake.
            progress: Receives user-visible progress messages.
            launcher: Overrides the default launcher for this connect.

        Raises:
            LaunchTimeoutError: The host did not come up in time.
            LaunchFailedError: The launcher could not start the host.
            ConnectionFailedError: The host started but its channel did not.

        """
        session = self._session
        if (
            session is not None
            and session.key == key
            and session.proxy is not None
            and session.handle.is_running()
        ):
            self._events.log_reuse(key, session.process_id)
            if progress is not None:
                progress(_format_key(Messages.REUSE, key))
            return

        self.close()

        if progress is not None:
            progress(_format_key(Messages.LAUNCH, key))
        self._events.log_launch(key, launch_timeout)

        launcher = launcher or self.launcher
        cancel = CancellationToken(launch_timeout)
        handle: HostHandle | None = None
        try:
            try:
                handle, endpoint = launcher.launch(key, cancel)
                cancel.raise_if_cancelled()
            except LaunchCancelledError as e:
                raise LaunchTimeoutError(
                    Messages.LAUNCH_TIMEOUT.format(seconds=launch_timeout),
                    timeout_seconds=launch_timeout,
                ) from e
            except HostTestError:
                raise
            except Exception as e:
                raise LaunchFailedError(
                    _format_key(Messages.FAILED_TO_LAUNCH, key),
                    context={"key": str(key)},
                ) from e

            proxy = self._connect_proxy(
                launcher, endpoint, handle, cancel, launch_timeout
            )
            new_session = HostSession(key, handle, proxy)
            handle = None
        finally:
            if handle is not None:
                self._dispose_partial(handle)

        with self._lock:
            previous, self._session = self._session, new_session
        if previous is not None:
            # Another thread connected meanwhile; the newest session wins.
            self._dispose(previous)
        self._events.log_connected(key, new_session.process_id)

    def _connect_proxy(
        self,
        launcher: HostLauncher,
        endpoint: str,
        handle: HostHandle,
        cancel: CancellationToken,
        launch_timeout: float,
    ) -> RemoteProxy:
        try:
            return launcher.connect_proxy(endpoint, cancel)
        except LaunchCancelledError as e:
            raise LaunchTimeoutError(
                Messages.LAUNCH_TIMEOUT.format(seconds=launch_timeout),
                timeout_seconds=launch_timeout,
            ) from e
        except ChannelError as e:
            raise ConnectionFailedError(
                Messages.FAILED_TO_CONNECT.format(process_id=handle.process_id),
                context={"endpoint": endpoint},
            ) from e

    @staticmethod
    def _dispose_partial(handle: HostHandle) -> None:
        try:
            handle.dispose()
        except Exception as e:
            logger.warning(
                "partial_launch_dispose_failed",
                process_id=handle.process_id,
                error=str(e),
            )

    def close(self) -> None:
        """Detach and dispose the current session, if any.

        Safe to call repeatedly. Never raises.
        """
        with self._lock:
            session, self._session = self._session, None
        if session is not None:
            self._dispose(session)

    def _dispose(self, session: HostSession) -> None:
        process_id = session.process_id
        session.dispose()
        self._events.log_closed(session.key, process_id)

    def is_alive(self) -> bool:
        """Check whether the current session can take calls.

        Returns False without any remote call when there is no session, its
        proxy was discarded, or its host process has exited. Otherwise probes
        the proxy; a channel error or an error reported by the host counts as
        not alive.
        """
        session = self._session
        if session is None:
            return False
        proxy = session.proxy
        if proxy is None:
            return False
        if not session.handle.is_running():
            self._events.log_probe_failed(session.key, "host_exited")
            return False
        try:
            return bool(proxy.is_initialized)
        except (ChannelError, RemoteCallError) as e:
            self._events.log_probe_failed(session.key, str(e))
            return False

    def host_exited(self) -> bool:
        """Check whether the current session's host process is gone."""
        session = self._session
        if session is None:
            return True
        try:
            return not session.handle.is_running()
        except Exception as e:
            logger.debug("host_state_unknown", error=str(e))
            return False

    def borrow_proxy(self) -> RemoteProxy | None:
        """Get the current proxy for the duration of one call."""
        session = self._session
        return session.proxy if session is not None else None

    def discard_proxy(self, proxy: RemoteProxy | None = None) -> None:
        """Detach and close the current session's proxy.

        The host process is kept; the next ``is_alive`` reports False so the
        caller reconnects. When ``proxy`` is given, nothing happens unless
        it is still the session's proxy.
        """
        session = self._session
        if session is None:
            return
        if proxy is not None and session.proxy is not proxy:
            return
        close_proxy(session.detach_proxy())


__all__ = ["SessionManager", "ProgressSink"]
