"""Process-Backed Host.

Launches the host executable as a child process and talks to it over a
``multiprocessing.connection`` channel. The child learns the channel address
from the ``TESTHOST_CHANNEL`` environment variable and is expected to listen
there with the same auth key.

Wire format, one dictionary per message:
    request:  {"request_id": int, "method": str, "args": list}
    response: {"request_id": int, "status": "ok", "result": object}
              {"request_id": int, "status": "error", "error": str}

Driver objects never cross the channel. Runs are sent as
``{"run_id": str, "properties": dict}`` and tests as
``{"id": str, "properties": dict}``; ``run`` answers with
``{"results": [{"message": str, "outcome": str}, ...]}`` and those records
are written to the test context's sink on this side.
"""

from __future__ import annotations

import os
import pickle
import subprocess
import sys
import tempfile
import threading
import uuid
from multiprocessing import AuthenticationError
from multiprocessing.connection import Client, Connection
from pathlib import Path
from typing import Any
from uuid import UUID

import psutil

from testhost.core.constants import (
    CHANNEL_ENV_VAR,
    SHUTDOWN_GRACE_SECONDS,
    VARIANT_ARGUMENT,
)
from testhost.core.exceptions import (
    ChannelError,
    HostTestError,
    LaunchCancelledError,
    LaunchFailedError,
    RemoteCallError,
)
from testhost.core.reporting import ResultMessage, TestOutcome
from testhost.core.session.host import CancellationToken
from testhost.core.session.types import SessionKey
from testhost.utils.logger import get_logger

logger = get_logger(__name__)

AUTHKEY_ENV_VAR = "TESTHOST_AUTHKEY"

# Raised by pickle for objects that cannot cross the channel
_SEND_ERRORS = (pickle.PicklingError, TypeError, AttributeError)
_RECV_ERRORS = (pickle.UnpicklingError, AttributeError, ImportError)


def new_channel_address() -> str:
    """Make a fresh channel address for this platform."""
    name = f"testhost-{uuid.uuid4().hex}"
    if sys.platform == "win32":
        return rf"\\.\pipe\{name}"
    return str(Path(tempfile.gettempdir()) / f"{name}.sock")


def _endpoint_ready(address: str) -> bool:
    """Check whether the host is listening at ``address``.

    On Windows the pipe is probed with WaitNamedPipe, which does not occupy
    the listener's pipe instance the way opening the path would.
    """
    if sys.platform == "win32":
        import _winapi

        try:
            _winapi.WaitNamedPipe(address, 1)
        except OSError:
            return False
        return True
    return os.path.exists(address)


def _run_payload(run_context: Any) -> dict[str, Any]:
    run_configuration = getattr(run_context, "run_configuration", None)
    run_id = getattr(run_context, "run_id", None)
    return {
        "run_id": str(run_id) if run_id is not None else None,
        "properties": dict(getattr(run_configuration, "properties", None) or {}),
    }


def _test_payload(test: Any) -> dict[str, Any]:
    return {
        "id": str(getattr(test, "human_readable_id", test)),
        "properties": dict(getattr(test, "properties", None) or {}),
    }


class ProcessHostHandle:
    """Handle to a launched host process.

    The host's process tree is recorded before every shutdown step, so
    children that outlive the host are still found and terminated.
    """

    def __init__(self, process: subprocess.Popen[bytes]):
        self.process = process
        self._tree: dict[int, psutil.Process] = {}

    @property
    def process_id(self) -> int:
        return self.process.pid

    def is_running(self) -> bool:
        return self.process.poll() is None

    def snapshot_tree(self) -> list[psutil.Process]:
        """Record the host and its current descendants."""
        if self.is_running():
            try:
                root = psutil.Process(self.process_id)
                found = [root, *root.children(recursive=True)]
            except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
                logger.debug("process tree unavailable", error=str(e))
                found = []
            for proc in found:
                self._tree.setdefault(proc.pid, proc)
        return list(self._tree.values())

    def request_shutdown(self) -> None:
        """Ask the host to exit and wait briefly for it to do so."""
        self.snapshot_tree()
        if not self.is_running():
            return
        self.process.terminate()
        try:
            self.process.wait(timeout=SHUTDOWN_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            logger.debug("host_ignored_shutdown", pid=self.process_id)

    def dispose(self) -> None:
        """Terminate the host and every recorded descendant, killing survivors."""
        tree = self.snapshot_tree()
        if tree:
            _terminate_processes(tree)
        try:
            self.process.wait(timeout=SHUTDOWN_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            self.process.kill()


def _terminate_processes(processes: list[psutil.Process]) -> None:
    """Terminate a recorded process tree.

    Processes that already exited (or whose pid was reused) are skipped.

    Args:
        processes: psutil.Process objects to terminate

    """
    for proc in processes:
        try:
            proc.terminate()
        except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
            logger.debug("process already gone or inaccessible", error=str(e))

    _, alive = psutil.wait_procs(processes, timeout=SHUTDOWN_GRACE_SECONDS)

    for proc in alive:
        try:
            proc.kill()
        except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
            logger.debug("survivor process already gone or inaccessible", error=str(e))

    logger.debug("terminated process tree", process_count=len(processes))


class ConnectionProxy:
    """Remote proxy that forwards calls over a channel connection.

    Calls are serialized; a failed send or receive, or a payload that cannot
    be pickled, raises ChannelError.
    """

    def __init__(self, connection: Connection):
        self._connection: Connection | None = connection
        self._lock = threading.Lock()
        self._next_request_id = 1
        self._run_id: UUID | None = None

    def _call(self, method: str, *args: Any) -> Any:
        with self._lock:
            connection = self._connection
            if connection is None:
                raise ChannelError(f"Channel is closed; cannot call {method}")

            request_id = self._next_request_id
            self._next_request_id += 1
            request = {"request_id": request_id, "method": method, "args": list(args)}
            try:
                connection.send(request)
            except _SEND_ERRORS as e:
                raise ChannelError(
                    f"Cannot send {method} arguments: {e}",
                    context={"method": method},
                ) from e
            except (BrokenPipeError, EOFError, OSError) as e:
                raise ChannelError(
                    f"Channel failed during {method}: {e}",
                    context={"method": method},
                ) from e
            try:
                response = connection.recv()
            except _RECV_ERRORS as e:
                raise ChannelError(
                    f"Unreadable response to {method}: {e}",
                    context={"method": method},
                ) from e
            except (BrokenPipeError, EOFError, OSError) as e:
                raise ChannelError(
                    f"Channel failed during {method}: {e}",
                    context={"method": method},
                ) from e

        if not isinstance(response, dict) or response.get("request_id") != request_id:
            raise ChannelError(
                f"Unexpected response to {method}", context={"method": method}
            )
        if response.get("status") == "error":
            raise RemoteCallError(method, str(response.get("error")))
        return response.get("result")

    @property
    def is_initialized(self) -> bool:
        return bool(self._call("is_initialized"))

    def initialize(self, run_context: Any) -> None:
        self._run_id = getattr(run_context, "run_id", None)
        self._call("initialize", _run_payload(run_context))

    def run(self, test: Any, test_context: Any) -> None:
        """Run ``test`` in the host and report its result records locally."""
        result = self._call("run", _test_payload(test)) or {}
        records = result.get("results", []) if isinstance(result, dict) else None
        if not isinstance(records, list):
            raise ChannelError("Unexpected response to run", context={"method": "run"})

        run_id = self._run_id or uuid.uuid4()
        for record in records:
            try:
                outcome = TestOutcome(record["outcome"]) if record.get("outcome") else None
                message = str(record.get("message", ""))
            except (KeyError, ValueError, AttributeError) as e:
                raise ChannelError(
                    f"Malformed result record from run: {e}", context={"method": "run"}
                ) from e
            test_context.result_sink.add_result(
                ResultMessage(run_id=run_id, message=message, test=test, outcome=outcome)
            )

    def abort(self) -> None:
        self._call("abort")

    def pause(self) -> None:
        self._call("pause")

    def resume(self) -> None:
        self._call("resume")

    def stop(self) -> None:
        self._call("stop")

    def cleanup(self) -> None:
        self._call("cleanup")

    def receive_message(self, message: Any) -> None:
        self._call("receive_message", message)

    def pre_test_run_finished(self, run_context: Any) -> None:
        self._call("pre_test_run_finished", _run_payload(run_context))

    def close(self) -> None:
        with self._lock:
            connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            connection.close()
        except OSError as e:
            raise ChannelError(f"Channel close failed: {e}") from e


class ProcessHostLauncher:
    """Starts host executables and connects ``ConnectionProxy`` instances.

    Usage:
        launcher = ProcessHostLauncher()
        manager = SessionManager(launcher)
    """

    def __init__(
        self,
        authkey: bytes | None = None,
        poll_interval: float = 0.25,
        extra_args: list[str] | None = None,
    ):
        """Initialize the launcher.

        Args:
            authkey: Channel auth key shared with the host; random if None.
            poll_interval: Seconds between endpoint readiness checks.
            extra_args: Arguments appended to every host command line.

        """
        self.authkey = authkey or uuid.uuid4().bytes
        self.poll_interval = poll_interval
        self.extra_args = list(extra_args or [])

    def build_command(self, key: SessionKey) -> list[str]:
        command = [key.executable]
        if key.variant:
            command += [VARIANT_ARGUMENT, key.variant]
        return command + self.extra_args

    def launch(
        self, key: SessionKey, cancel: CancellationToken
    ) -> tuple[ProcessHostHandle, str]:
        """Start the host and wait until its channel endpoint exists.

        Raises:
            LaunchFailedError: The executable could not be started or exited early.
            LaunchCancelledError: ``cancel`` fired before the endpoint appeared.

        """
        address = new_channel_address()
        env = os.environ.copy()
        env[CHANNEL_ENV_VAR] = address
        env[AUTHKEY_ENV_VAR] = self.authkey.hex()

        command = self.build_command(key)
        logger.debug("launching host", command=command, address=address)
        try:
            process = subprocess.Popen(
                command,
                env=env,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise LaunchFailedError(
                f"Cannot start {key.executable}: {e}", context={"key": str(key)}
            ) from e

        handle = ProcessHostHandle(process)
        try:
            while not _endpoint_ready(address):
                exit_code = process.poll()
                if exit_code is not None:
                    raise LaunchFailedError(
                        f"{key.executable} exited with code {exit_code} before "
                        "opening its channel",
                        context={"key": str(key), "exit_code": exit_code},
                    )
                if cancel.wait(self.poll_interval):
                    raise LaunchCancelledError()
        except HostTestError:
            handle.dispose()
            raise
        handle.snapshot_tree()
        return handle, address

    def connect_proxy(self, endpoint: str, cancel: CancellationToken) -> ConnectionProxy:
        """Connect and authenticate to ``endpoint`` before ``cancel`` fires.

        The handshake runs on a worker thread so a host that never answers
        cannot block past the launch deadline. A connection completed after
        the deadline is closed by the worker.

        Raises:
            ChannelError: The endpoint refused or failed the handshake.
            LaunchCancelledError: ``cancel`` fired before the handshake finished.

        """
        lock = threading.Lock()
        done = threading.Event()
        outcome: dict[str, Any] = {"abandoned": False}

        def handshake() -> None:
            try:
                connection = Client(endpoint, authkey=self.authkey)
            except Exception as e:
                with lock:
                    outcome["error"] = e
            else:
                with lock:
                    if outcome["abandoned"]:
                        connection.close()
                    else:
                        outcome["connection"] = connection
            finally:
                done.set()

        threading.Thread(
            target=handshake, name=f"testhost-connect-{endpoint}", daemon=True
        ).start()

        while not done.wait(self.poll_interval):
            if cancel.cancelled:
                with lock:
                    outcome["abandoned"] = "connection" not in outcome
                if outcome["abandoned"]:
                    logger.warning("channel_handshake_timeout", endpoint=endpoint)
                    raise LaunchCancelledError()
                break

        error = outcome.get("error")
        if isinstance(error, (OSError, EOFError, AuthenticationError)):
            raise ChannelError(
                f"Cannot connect to {endpoint}: {error}", context={"endpoint": endpoint}
            ) from error
        if error is not None:
            raise error
        return ConnectionProxy(outcome["connection"])


__all__ = [
    "ConnectionProxy",
    "ProcessHostHandle",
    "ProcessHostLauncher",
    "RemoteCallError",
    "new_channel_address",
]
