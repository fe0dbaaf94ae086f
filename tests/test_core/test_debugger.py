"""Tests for debugger attachment."""

from unittest.mock import Mock

from testhost.core.debugger import LoggingDebuggerAttacher, attach_debugger_if_needed
from testhost.core.reporting import RunConfiguration


class TestAttachDebuggerIfNeeded:
    """Test attach_debugger_if_needed."""

    def test_attaches_under_debugger(self):
        attacher = Mock()

        attached = attach_debugger_if_needed(
            attacher, RunConfiguration(executed_under_debugger=True), 1234, True
        )

        assert attached is True
        attacher.attach.assert_called_once_with(1234, True)

    def test_skips_without_debugger(self):
        attacher = Mock()

        assert not attach_debugger_if_needed(attacher, RunConfiguration(), 1234, False)
        attacher.attach.assert_not_called()

    def test_skips_without_process(self):
        attacher = Mock()

        assert not attach_debugger_if_needed(
            attacher, RunConfiguration(executed_under_debugger=True), None, False
        )
        attacher.attach.assert_not_called()


class TestLoggingDebuggerAttacher:
    """Test the default attacher."""

    def test_records_requests(self):
        attacher = LoggingDebuggerAttacher()

        attacher.attach(77, False)

        assert attacher.requests == [(77, False)]
