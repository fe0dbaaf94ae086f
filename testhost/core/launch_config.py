"""Launch Configuration Resolution.

Turns the string key/value properties of a run and test into a typed
``LaunchConfig``. Absent values fall back to the process-level launch
defaults from ``testhost.core.config``; explicitly empty values count as
missing.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, cast

from testhost.core.config import LaunchDefaults, get_settings
from testhost.core.constants import (
    DEFAULT_EXECUTABLE_EXTENSION,
    DEFAULT_LAUNCH_TIMEOUT_SECONDS,
    MOCK_APPLICATION,
    PROP_APPLICATION,
    PROP_DEBUG_MIXED_MODE,
    PROP_EXECUTABLE,
    PROP_LAUNCH_TIMEOUT,
    PROP_VARIANT,
    PROP_VERSION,
)
from testhost.core.exceptions import InvalidConfigurationError
from testhost.core.reporting import Messages, RunConfiguration
from testhost.core.session.types import HostVersion, SessionKey


@dataclass(frozen=True)
class LaunchConfig:
    """Resolved launch parameters for one test.

    Attributes:
        application: Application kind.
        executable: Executable with extension.
        version: Host version.
        variant: Optional variant (hive) name.
        launch_timeout_seconds: Seconds allowed for launch and handshake.
        debug_mixed_mode: Attach the debugger in mixed mode.

    """

    application: str
    executable: str
    version: HostVersion
    variant: str | None = None
    launch_timeout_seconds: int = DEFAULT_LAUNCH_TIMEOUT_SECONDS
    debug_mixed_mode: bool = False

    @property
    def key(self) -> SessionKey:
        return SessionKey(
            application=self.application,
            executable=self.executable,
            version=self.version,
            variant=self.variant,
        )

    @property
    def is_mock(self) -> bool:
        """Check if this configuration selects the same-process stand-in."""
        return self.application == MOCK_APPLICATION


def collect_properties(
    test: Any | None, run_configuration: RunConfiguration | None
) -> dict[str, str]:
    """Merge run-level and test-level properties; the test wins."""
    merged: dict[str, str] = {}
    if run_configuration is not None:
        merged.update(run_configuration.properties)
    if test is not None:
        merged.update(getattr(test, "properties", None) or {})
    return merged


def normalize_executable(executable: str) -> str:
    """Give an extensionless executable the default extension."""
    if executable and not os.path.splitext(executable)[1]:
        return executable + DEFAULT_EXECUTABLE_EXTENSION
    return executable


def _parse_int(text: str | None, default: int) -> int:
    if text is None:
        return default
    try:
        return int(text.strip())
    except ValueError:
        return default


def _parse_bool(text: str | None) -> bool:
    return text is not None and text.strip().lower() == "true"


def resolve_launch_config(
    properties: Mapping[str, str | None],
    defaults: LaunchDefaults | None = None,
) -> LaunchConfig:
    """Resolve typed launch parameters from string properties.

    Args:
        properties: Merged run/test properties.
        defaults: Launch defaults; process settings if None.

    Returns:
        LaunchConfig ready to build a session key from.

    Raises:
        InvalidConfigurationError: If application, executable or version
            cannot be determined. The error names every missing field.

    """
    if defaults is None:
        defaults = get_settings().launch

    application = properties.get(PROP_APPLICATION)
    if application is None:
        application = defaults.application

    executable = properties.get(PROP_EXECUTABLE)
    if executable is None:
        executable = defaults.executable
    executable = normalize_executable(executable)

    version = HostVersion.try_parse(properties.get(PROP_VERSION))
    if version is None:
        version = HostVersion.try_parse(defaults.version)

    variant = properties.get(PROP_VARIANT) or None
    timeout = _parse_int(properties.get(PROP_LAUNCH_TIMEOUT), defaults.timeout_seconds)
    if timeout <= 0:
        timeout = defaults.timeout_seconds

    missing = [
        name
        for name, value in (
            ("application", application),
            ("executable", executable),
            ("version", version),
        )
        if not value
    ]
    if missing:
        raise InvalidConfigurationError(
            Messages.MISSING_CONFIGURATION.format(
                missing=", ".join(missing),
                application=application or "(null)",
                executable=executable or "(null)",
                version=version if version is not None else "(null)",
                variant=variant or "(default)",
            ),
            missing_fields=missing,
        )
    return LaunchConfig(
        application=application,
        executable=executable,
        version=cast(HostVersion, version),
        variant=variant,
        launch_timeout_seconds=timeout,
        debug_mixed_mode=_parse_bool(properties.get(PROP_DEBUG_MIXED_MODE)),
    )


__all__ = [
    "LaunchConfig",
    "collect_properties",
    "normalize_executable",
    "resolve_launch_config",
]
