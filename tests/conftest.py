"""
Pytest configuration and fixtures for supervisor tests.
"""

import asyncio
import signal
from pathlib import Path

import pytest

from mta_supervisor.core.config import Settings


SUPERVISOR_ENV_VARS = (
    "SERVER_STOP_DELAY",
    "TIME_UNIT",
    "BASE_DIR",
    "SHARED_DIR_NAME",
    "CHANNEL_DIR",
    "ARCH",
    "SERVER_ARGS",
    "LINE_BUFFERED",
    "REPORT_BEST_EFFORT_FAILURES",
    "LOG_LEVEL",
    "LOG_FORMAT",
)

# Logs every command and exits 0 on a control word
ECHO_SERVER = """#!/bin/sh
while IFS= read -r line; do
  echo "$line" >> commands.log
  case "$line" in
    shutdown|quit|exit) exit 0 ;;
  esac
done
exit 0
"""


@pytest.fixture(autouse=True)
def clean_supervisor_env(monkeypatch):
    """Keep host environment variables out of Settings."""
    for name in SUPERVISOR_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings(tmp_path):
    """Fast settings rooted in a temporary working area."""
    channel_dir = tmp_path / "run"
    channel_dir.mkdir()
    return Settings(
        base_dir=tmp_path,
        channel_dir=channel_dir,
        arch="x86_64",
        time_unit=0.1,
        server_stop_delay=1.0,
        line_buffered=False,
    )


@pytest.fixture
def make_server(tmp_path):
    """Write an executable stub server into the x86_64 layout (echo server by default)."""
    def _make(script: str = ECHO_SERVER) -> Path:
        server_dir = tmp_path / "multitheftauto_linux_x64"
        server_dir.mkdir(parents=True, exist_ok=True)
        executable = server_dir / "mta-server64"
        executable.write_text(script)
        executable.chmod(0o755)
        return executable
    return _make


@pytest.fixture
def make_state(tmp_path):
    """Populate the server's database directory."""
    def _make() -> Path:
        state_dir = tmp_path / "multitheftauto_linux_x64" / "mods" / "deathmatch"
        (state_dir / "databases" / "global").mkdir(parents=True, exist_ok=True)
        (state_dir / "internal.db").write_bytes(b"internal-v1")
        (state_dir / "registry.db").write_bytes(b"registry-v1")
        (state_dir / "databases" / "global" / "race.db").write_bytes(b"race-v1")
        return state_dir
    return _make


class FakeProcess:
    """Stand-in for ``asyncio.subprocess.Process``."""

    def __init__(self, exit_on=(), pid: int = 4242):
        self.pid = pid
        self.returncode = None
        self.signals = []
        self.exit_on = set(exit_on)
        self._exited = asyncio.Event()

    def send_signal(self, signum):
        self.signals.append(signum)
        if signum in self.exit_on:
            self.finish(-signum)

    def kill(self):
        self.send_signal(signal.SIGKILL)

    def finish(self, code: int):
        self.returncode = code
        self._exited.set()

    async def wait(self):
        await self._exited.wait()
        return self.returncode


class RecordingChannel:
    """Channel double that records lines instead of writing a FIFO."""

    def __init__(self, fail: bool = False, on_line=None):
        self.lines = []
        self.fail = fail
        self.on_line = on_line
        self.path = Path("/nonexistent/mta_input_test")

    def send_line(self, line: str) -> None:
        if self.fail:
            raise BrokenPipeError("server stopped reading")
        self.lines.append(line)
        if self.on_line:
            self.on_line(line)

    def destroy(self) -> None:
        pass


@pytest.fixture
def fake_process():
    """Factory for fake server processes."""
    return FakeProcess


@pytest.fixture
def recording_channel():
    """Factory for recording channels."""
    return RecordingChannel
