"""Core host test functionality.

This module contains the session lifecycle, the retrying call dispatcher,
the driver-facing adapter and their configuration and error types.
"""

from .adapter import AdapterState, HostTestAdapter
from .config import Settings, get_settings
from .dispatch import CallContext, CallDispatcher
from .exceptions import (
    AdapterClosedError,
    ChannelError,
    ConnectionFailedError,
    HostTestError,
    InvalidConfigurationError,
    LaunchFailedError,
    LaunchTimeoutError,
    NoClientAvailableError,
    NoRunContextError,
    RemoteCallError,
    ResumeFailedError,
)
from .launch_config import LaunchConfig, resolve_launch_config
from .reporting import ResultMessage, RunConfiguration, TestOutcome

__all__ = [
    "AdapterState",
    "HostTestAdapter",
    "Settings",
    "get_settings",
    "CallContext",
    "CallDispatcher",
    "AdapterClosedError",
    "ChannelError",
    "ConnectionFailedError",
    "HostTestError",
    "InvalidConfigurationError",
    "LaunchFailedError",
    "LaunchTimeoutError",
    "NoClientAvailableError",
    "NoRunContextError",
    "RemoteCallError",
    "ResumeFailedError",
    "LaunchConfig",
    "resolve_launch_config",
    "ResultMessage",
    "RunConfiguration",
    "TestOutcome",
]
