"""
Test Host - run tests inside a separate, heavyweight host process.

This package keeps one live host session matched to the requested
configuration, routes test-lifecycle calls to it, recovers from dead or
unreachable hosts, and reports every failure as a structured test result.
"""

__version__ = "1.0.0"
__license__ = "MIT"

from testhost.core.adapter import AdapterState, HostTestAdapter
from testhost.core.exceptions import HostTestError
from testhost.core.reporting import ResultMessage, TestOutcome
from testhost.core.session.manager import SessionManager
from testhost.core.session.types import RetryPolicy, SessionKey

__all__ = [
    "__version__",
    "__license__",
    "AdapterState",
    "HostTestAdapter",
    "HostTestError",
    "ResultMessage",
    "TestOutcome",
    "SessionManager",
    "RetryPolicy",
    "SessionKey",
]
