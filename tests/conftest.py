"""
Pytest configuration and shared fixtures for host test adapter tests.

The fakes here stand in for the host collaborator (launcher, process
handle, remote proxy) and for the driver (run context, test, sink).
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from testhost.core.config import CallConfig, LaunchDefaults, Settings
from testhost.core.exceptions import ChannelError
from testhost.core.reporting import ListResultSink, RunConfiguration
from testhost.core.session.host import CancellationToken
from testhost.core.session.types import HostVersion, SessionKey


class FakeProxy:
    """Remote proxy whose calls can be scripted to fail on the channel.

    Attributes:
        failures: call name -> number of upcoming calls that raise ChannelError.
        calls: names of every call that reached the proxy.

    """

    def __init__(
        self,
        failures: dict[str, int] | None = None,
        probe_fails: bool = False,
        initialized: bool = True,
        events: list[str] | None = None,
    ) -> None:
        self.failures = dict(failures or {})
        self.probe_fails = probe_fails
        self.initialized = initialized
        self.calls: list[str] = []
        self.probes = 0
        self.close_count = 0
        self.events = events if events is not None else []

    def _call(self, name: str) -> None:
        self.calls.append(name)
        remaining = self.failures.get(name, 0)
        if remaining:
            if remaining > 0:
                self.failures[name] = remaining - 1
            raise ChannelError(f"channel broke during {name}")

    @property
    def is_initialized(self) -> bool:
        self.probes += 1
        if self.probe_fails:
            raise ChannelError("probe failed")
        return self.initialized

    def initialize(self, run_context: Any) -> None:
        self._call("initialize")

    def run(self, test: Any, test_context: Any) -> None:
        self._call("run")

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
        self._call("receive_message")

    def pre_test_run_finished(self, run_context: Any) -> None:
        self._call("pre_test_run_finished")

    def close(self) -> None:
        self.close_count += 1
        self.events.append("close_proxy")


class FakeHandle:
    """Host process handle that records shutdown and disposal."""

    _next_pid = 4000

    def __init__(
        self,
        events: list[str] | None = None,
        shutdown_error: Exception | None = None,
    ) -> None:
        FakeHandle._next_pid += 1
        self._pid = FakeHandle._next_pid
        self.running = True
        self.shutdown_requests = 0
        self.dispose_count = 0
        self.shutdown_error = shutdown_error
        self.events = events if events is not None else []

    @property
    def process_id(self) -> int:
        return self._pid

    def is_running(self) -> bool:
        return self.running

    def request_shutdown(self) -> None:
        self.shutdown_requests += 1
        self.events.append("request_shutdown")
        if self.shutdown_error is not None:
            raise self.shutdown_error

    def dispose(self) -> None:
        self.dispose_count += 1
        self.running = False
        self.events.append("dispose_handle")


class FakeLauncher:
    """Launcher that hands out FakeHandle/FakeProxy pairs.

    ``proxy_factory`` builds the proxy for each launch in order, so a test
    can script how the first, second, ... host behaves.
    """

    def __init__(
        self,
        proxy_factory: Callable[[int], FakeProxy] | None = None,
        launch_error: Exception | None = None,
        connect_error: Exception | None = None,
        events: list[str] | None = None,
    ) -> None:
        self.proxy_factory = proxy_factory or (lambda index: FakeProxy())
        self.launch_error = launch_error
        self.connect_error = connect_error
        self.events = events if events is not None else []
        self.launched_keys: list[SessionKey] = []
        self.handles: list[FakeHandle] = []
        self.proxies: list[FakeProxy] = []

    @property
    def launch_count(self) -> int:
        return len(self.launched_keys)

    def launch(
        self, key: SessionKey, cancel: CancellationToken
    ) -> tuple[FakeHandle, str]:
        self.launched_keys.append(key)
        self.events.append(f"launch:{key.application}")
        if self.launch_error is not None:
            raise self.launch_error
        handle = FakeHandle(events=self.events)
        self.handles.append(handle)
        return handle, f"fake://{handle.process_id}"

    def connect_proxy(self, endpoint: str, cancel: CancellationToken) -> FakeProxy:
        if self.connect_error is not None:
            raise self.connect_error
        proxy = self.proxy_factory(len(self.proxies))
        proxy.events = self.events
        self.proxies.append(proxy)
        return proxy


@dataclass
class FakeTest:
    """Driver-side test element."""

    human_readable_id: str = "TestSuite.test_case"
    properties: dict[str, str] = field(default_factory=dict)


@dataclass
class FakeTestContext:
    """Driver-side per-test context."""

    result_sink: ListResultSink = field(default_factory=ListResultSink)


@dataclass
class FakeRunContext:
    """Driver-side run context that records stop requests."""

    run_configuration: RunConfiguration = field(default_factory=RunConfiguration)
    run_id: uuid.UUID = field(default_factory=uuid.uuid4)
    result_sink: ListResultSink = field(default_factory=ListResultSink)
    stop_requests: int = 0

    def stop_test_run(self) -> None:
        self.stop_requests += 1


@pytest.fixture
def key_a() -> SessionKey:
    return SessionKey("VisualStudio", "devenv.exe", HostVersion.parse("12.0"), "Exp")


@pytest.fixture
def key_b() -> SessionKey:
    return SessionKey("VisualStudio", "devenv.exe", HostVersion.parse("14.0"), "Exp")


@pytest.fixture
def events() -> list[str]:
    """Shared event log for ordering assertions."""
    return []


@pytest.fixture
def fake_launcher(events: list[str]) -> FakeLauncher:
    return FakeLauncher(events=events)


@pytest.fixture
def launcher_factory(events: list[str]) -> Callable[..., FakeLauncher]:
    """Build a FakeLauncher with custom behaviour."""

    def _make(**kwargs: Any) -> FakeLauncher:
        kwargs.setdefault("events", events)
        return FakeLauncher(**kwargs)

    return _make


@pytest.fixture
def proxy_class() -> type[FakeProxy]:
    return FakeProxy


@pytest.fixture
def handle_class() -> type[FakeHandle]:
    return FakeHandle


@pytest.fixture
def run_context() -> FakeRunContext:
    return FakeRunContext()


@pytest.fixture
def run_context_factory() -> Callable[..., FakeRunContext]:
    def _make(
        properties: dict[str, str] | None = None, under_debugger: bool = False
    ) -> FakeRunContext:
        return FakeRunContext(
            run_configuration=RunConfiguration(
                properties=properties or {}, executed_under_debugger=under_debugger
            )
        )

    return _make


@pytest.fixture
def make_test() -> Callable[..., FakeTest]:
    def _make(name: str = "TestSuite.test_case", **properties: str) -> FakeTest:
        return FakeTest(human_readable_id=name, properties=dict(properties))

    return _make


@pytest.fixture
def test_context() -> FakeTestContext:
    return FakeTestContext()


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment."""
    return Settings(
        diagnostics=False,
        launch=LaunchDefaults(
            application="VisualStudio",
            executable="devenv",
            version="12.0",
            timeout_seconds=30,
        ),
        calls=CallConfig(max_attempts=2),
    )


@pytest.fixture
def diagnostic_settings(settings: Settings) -> Settings:
    return settings.model_copy(update={"diagnostics": True})
