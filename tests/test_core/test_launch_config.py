"""Tests for launch configuration resolution."""

from __future__ import annotations

import pytest

from testhost.core.config import LaunchDefaults
from testhost.core.exceptions import InvalidConfigurationError
from testhost.core.launch_config import (
    collect_properties,
    normalize_executable,
    resolve_launch_config,
)
from testhost.core.reporting import RunConfiguration
from testhost.core.session.types import HostVersion


@pytest.fixture
def defaults() -> LaunchDefaults:
    return LaunchDefaults(
        application="VisualStudio",
        executable="devenv",
        version="12.0",
        timeout_seconds=30,
    )


class TestResolveLaunchConfig:
    """Tests for resolve_launch_config."""

    def test_all_defaults(self, defaults) -> None:
        """Test an empty property set resolves entirely from defaults."""
        config = resolve_launch_config({}, defaults)

        assert config.application == "VisualStudio"
        assert config.executable == "devenv.exe"
        assert config.version == HostVersion.parse("12.0")
        assert config.variant is None
        assert config.launch_timeout_seconds == 30
        assert config.debug_mixed_mode is False

    def test_explicit_values(self, defaults) -> None:
        config = resolve_launch_config(
            {
                "HostApplication": "VisualStudio",
                "HostExecutable": "devenv",
                "HostVersion": "14.0",
                "HostVariant": "Exp",
                "HostLaunchTimeoutInSeconds": "90",
                "HostDebugMixedMode": "True",
            },
            defaults,
        )

        assert config.executable == "devenv.exe"
        assert str(config.version) == "14.0"
        assert config.variant == "Exp"
        assert config.launch_timeout_seconds == 90
        assert config.debug_mixed_mode is True

    @pytest.mark.parametrize("version", ["", "latest", "12"])
    def test_unparsable_version_falls_back(self, defaults, version: str) -> None:
        config = resolve_launch_config({"HostVersion": version}, defaults)

        assert config.version == HostVersion.parse("12.0")

    def test_missing_application_and_executable_named(self, defaults) -> None:
        """Test both missing fields appear in one error."""
        with pytest.raises(InvalidConfigurationError) as exc_info:
            resolve_launch_config(
                {"HostApplication": "", "HostExecutable": ""}, defaults
            )

        error = exc_info.value
        assert error.missing_fields == ["application", "executable"]
        assert "application, executable" in str(error)
        assert error.error_code == "invalid_configuration"

    def test_unusable_default_version_is_missing(self) -> None:
        broken = LaunchDefaults(version="not-a-version")

        with pytest.raises(InvalidConfigurationError) as exc_info:
            resolve_launch_config({}, broken)

        assert exc_info.value.missing_fields == ["version"]

    @pytest.mark.parametrize("timeout", ["0", "-5", "soon"])
    def test_bad_timeout_uses_default(self, defaults, timeout: str) -> None:
        config = resolve_launch_config(
            {"HostLaunchTimeoutInSeconds": timeout}, defaults
        )

        assert config.launch_timeout_seconds == 30

    def test_empty_variant_is_none(self, defaults) -> None:
        assert resolve_launch_config({"HostVariant": ""}, defaults).variant is None

    def test_mock_application(self, defaults) -> None:
        config = resolve_launch_config({"HostApplication": "Mock"}, defaults)

        assert config.is_mock
        assert config.key.application == "Mock"

    def test_key_matches_config(self, defaults) -> None:
        config = resolve_launch_config({"HostVariant": "Exp"}, defaults)

        key = config.key
        assert (key.application, key.executable, key.variant) == (
            "VisualStudio",
            "devenv.exe",
            "Exp",
        )


class TestHelpers:
    """Tests for property merging and executable normalization."""

    @pytest.mark.parametrize(
        "given,expected",
        [
            ("devenv", "devenv.exe"),
            ("devenv.exe", "devenv.exe"),
            ("/opt/host/run.sh", "/opt/host/run.sh"),
            ("", ""),
        ],
    )
    def test_normalize_executable(self, given: str, expected: str) -> None:
        assert normalize_executable(given) == expected

    def test_test_properties_override_run(self, make_test) -> None:
        run_configuration = RunConfiguration(
            properties={"HostVersion": "12.0", "HostVariant": "Exp"}
        )
        test = make_test(HostVersion="14.0")

        merged = collect_properties(test, run_configuration)

        assert merged == {"HostVersion": "14.0", "HostVariant": "Exp"}

    def test_no_test_uses_run_properties(self) -> None:
        merged = collect_properties(None, RunConfiguration(properties={"A": "1"}))

        assert merged == {"A": "1"}
