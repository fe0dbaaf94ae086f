"""Tests for HostSession disposal and CancellationToken."""

from __future__ import annotations

import time

import pytest

from testhost.core.exceptions import ChannelError, LaunchCancelledError
from testhost.core.session.host import CancellationToken, HostSession


class TestHostSessionDispose:
    """Tests for ordered, failure-tolerant disposal."""

    def test_dispose_order(self, key_a, proxy_class, handle_class, events) -> None:
        """Test proxy closes first, then shutdown, then forced disposal."""
        session = HostSession(
            key_a, handle_class(events=events), proxy_class(events=events)
        )

        failures = session.dispose()

        assert failures == []
        assert events == ["close_proxy", "request_shutdown", "dispose_handle"]
        assert session.disposed
        assert session.proxy is None

    def test_dispose_is_idempotent(self, key_a, proxy_class, handle_class) -> None:
        """Test a second dispose does nothing."""
        handle = handle_class()
        session = HostSession(key_a, handle, proxy_class())

        session.dispose()
        assert session.dispose() == []

        assert handle.dispose_count == 1

    def test_broken_proxy_close_is_ignored(
        self, key_a, proxy_class, handle_class
    ) -> None:
        """Test a channel error while closing the proxy is not a failure."""
        proxy = proxy_class()

        def broken_close() -> None:
            raise ChannelError("already broken")

        proxy.close = broken_close  # type: ignore[method-assign]
        handle = handle_class()
        session = HostSession(key_a, handle, proxy)

        assert session.dispose() == []
        assert handle.dispose_count == 1

    def test_failed_steps_reported_not_raised(self, key_a, proxy_class, handle_class) -> None:
        """Test every step runs and failures are returned."""
        handle = handle_class(shutdown_error=RuntimeError("quit refused"))
        session = HostSession(key_a, handle, proxy_class())

        failures = session.dispose()

        assert [name for name, _ in failures] == ["request_shutdown"]
        assert handle.dispose_count == 1

    def test_detach_proxy_returns_once(self, key_a, proxy_class, handle_class) -> None:
        """Test the proxy can only be detached once."""
        proxy = proxy_class()
        session = HostSession(key_a, handle_class(), proxy)

        assert session.detach_proxy() is proxy
        assert session.detach_proxy() is None


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_no_deadline_never_expires(self) -> None:
        token = CancellationToken()

        assert token.cancelled is False
        assert token.remaining is None

    def test_explicit_cancel(self) -> None:
        token = CancellationToken(60)

        token.cancel()

        assert token.cancelled is True
        with pytest.raises(LaunchCancelledError):
            token.raise_if_cancelled()

    def test_deadline_expires(self) -> None:
        token = CancellationToken(0)

        assert token.cancelled is True
        assert token.remaining == 0.0

    def test_wait_is_bounded_by_deadline(self) -> None:
        """Test wait returns at the deadline rather than the full interval."""
        token = CancellationToken(0.05)
        start = time.monotonic()

        assert token.wait(5.0) is True
        assert time.monotonic() - start < 2.0
