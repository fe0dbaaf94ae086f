"""Tests for the same-process stand-in host."""

import os

from testhost.core.reporting import ListResultSink, TestOutcome
from testhost.core.session.host import CancellationToken
from testhost.core.session.in_process import InProcessHandle, InProcessLauncher, LocalTestee
from testhost.core.session.manager import SessionManager


class TestLocalTestee:
    """Test LocalTestee call handling."""

    def test_initialized_after_initialize(self, run_context):
        testee = LocalTestee()
        assert testee.is_initialized is False

        testee.initialize(run_context)

        assert testee.is_initialized is True
        assert testee.calls == ["initialize"]

    def test_close_ends_initialized(self, run_context):
        testee = LocalTestee()
        testee.initialize(run_context)

        testee.close()

        assert testee.is_initialized is False

    def test_run_reports_passed(self, run_context, make_test, test_context):
        testee = LocalTestee()
        testee.initialize(run_context)
        test = make_test()

        testee.run(test, test_context)

        result = test_context.result_sink.results[0]
        assert result.outcome == TestOutcome.PASSED
        assert result.test is test
        assert result.run_id == run_context.run_id

    def test_run_uses_executor_outcome(self, make_test, test_context):
        testee = LocalTestee(executor=lambda test, ctx: TestOutcome.FAILED)

        testee.run(make_test(), test_context)

        assert test_context.result_sink.results[0].outcome == TestOutcome.FAILED

    def test_control_flags(self):
        testee = LocalTestee()

        testee.pause()
        assert testee.paused
        testee.resume()
        assert not testee.paused
        testee.stop()
        testee.abort()

        assert testee.stopped and testee.aborted
        assert testee.calls == ["pause", "resume", "stop", "abort"]


class TestInProcessLauncher:
    """Test InProcessLauncher with the session manager."""

    def test_handle_is_this_process(self):
        handle = InProcessHandle()

        assert handle.process_id == os.getpid()
        handle.dispose()
        assert not handle.is_running()

    def test_launch_and_connect(self, key_a):
        launcher = InProcessLauncher()

        handle, endpoint = launcher.launch(key_a, CancellationToken(5))
        testee = launcher.connect_proxy(endpoint, CancellationToken(5))

        assert endpoint.startswith("inproc://")
        assert handle.is_running()
        assert launcher.testees == [testee]

    def test_manager_round_trip(self, key_a, run_context):
        launcher = InProcessLauncher()
        manager = SessionManager(launcher)

        manager.connect(key_a, 30)
        manager.borrow_proxy().initialize(run_context)

        assert manager.is_alive()
        manager.close()
        assert launcher.testees[0].closed
        assert not manager.is_alive()

    def test_custom_factory(self, key_a):
        sink = ListResultSink()
        launcher = InProcessLauncher(lambda: LocalTestee(lambda t, c: TestOutcome.TIMEOUT))
        manager = SessionManager(launcher)
        manager.connect(key_a, 30)

        manager.borrow_proxy().run("t", type("Ctx", (), {"result_sink": sink})())

        assert sink.results[0].outcome == TestOutcome.TIMEOUT
