"""
Tests for Settings loading and validation.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from mta_supervisor.core.config import Settings


def test_settings_defaults():
    """Test defaults match the stock launcher behaviour."""
    settings = Settings()

    assert settings.server_stop_delay == 10
    assert settings.time_unit == 1.0
    assert settings.server_argv == ["-t", "-n", "-u"]
    assert settings.shared_dir == Path(".") / "shared-databases"
    assert settings.channel_dir == Path("/tmp")
    assert settings.report_best_effort_failures is False


def test_stop_delay_from_environment(monkeypatch):
    """Test SERVER_STOP_DELAY overrides the grace period."""
    monkeypatch.setenv("SERVER_STOP_DELAY", "3")

    assert Settings().server_stop_delay == 3


def test_negative_stop_delay_rejected(monkeypatch):
    """Test that a negative grace period is a configuration error."""
    monkeypatch.setenv("SERVER_STOP_DELAY", "-1")

    with pytest.raises(ValidationError):
        Settings()


def test_zero_time_unit_rejected():
    """Test that the polling interval must be positive."""
    with pytest.raises(ValidationError):
        Settings(time_unit=0)


def test_log_level_normalized():
    """Test log level is upper-cased."""
    assert Settings(log_level="debug").log_level == "DEBUG"


def test_invalid_log_format_rejected():
    """Test only json and console formats are accepted."""
    with pytest.raises(ValidationError):
        Settings(log_format="xml")


def test_machine_uses_override():
    """Test ARCH override wins over the detected machine."""
    assert Settings(arch="aarch64").machine == "aarch64"


def test_machine_detected(monkeypatch):
    """Test machine falls back to platform detection."""
    monkeypatch.setattr("platform.machine", lambda: "x86_64")

    assert Settings().machine == "x86_64"


def test_server_args_split(monkeypatch):
    """Test SERVER_ARGS is split like a shell command line."""
    monkeypatch.setenv("SERVER_ARGS", "-t -n --config 'my server.conf'")

    assert Settings().server_argv == ["-t", "-n", "--config", "my server.conf"]
