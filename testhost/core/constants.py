"""Shared constants for host test sessions.

Run property keys understood by the configuration resolver and the
defaults applied when a run leaves them out.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# Run Property Keys
# =============================================================================

#: Registry-style application name, e.g. "VisualStudio"
PROP_APPLICATION: Final[str] = "HostApplication"

#: Executable name or path, e.g. "devenv"
PROP_EXECUTABLE: Final[str] = "HostExecutable"

#: Dotted version string, e.g. "12.0"
PROP_VERSION: Final[str] = "HostVersion"

#: Optional variant (hive) name, e.g. "Exp"
PROP_VARIANT: Final[str] = "HostVariant"

#: Launch timeout in whole seconds
PROP_LAUNCH_TIMEOUT: Final[str] = "HostLaunchTimeoutInSeconds"

#: "true" to attach the debugger in mixed (native + managed) mode
PROP_DEBUG_MIXED_MODE: Final[str] = "HostDebugMixedMode"

# =============================================================================
# Defaults
# =============================================================================

DEFAULT_APPLICATION: Final[str] = "VisualStudio"
DEFAULT_EXECUTABLE: Final[str] = "devenv"

#: Version used when none is given or it cannot be parsed
BUILD_DEFAULT_VERSION: Final[str] = "12.0"

DEFAULT_LAUNCH_TIMEOUT_SECONDS: Final[int] = 30
DEFAULT_CALL_ATTEMPTS: Final[int] = 2
DEFAULT_EXECUTABLE_EXTENSION: Final[str] = ".exe"

#: Application kind that wires the same-process stand-in instead of a host
MOCK_APPLICATION: Final[str] = "Mock"

#: Command-line option that selects a host variant
VARIANT_ARGUMENT: Final[str] = "/rootSuffix"

#: Environment variable carrying the channel address to the launched host
CHANNEL_ENV_VAR: Final[str] = "TESTHOST_CHANNEL"

#: Seconds a host gets to exit after a graceful shutdown request
SHUTDOWN_GRACE_SECONDS: Final[float] = 2.0
