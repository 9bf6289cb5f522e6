"""Data models for the server supervisor."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from mta_supervisor.core.config import Settings
from mta_supervisor.core.layout import ServerLayout
from mta_supervisor.supervisor.channel import Channel


CONTROL_WORDS = frozenset({"shutdown", "quit", "exit"})


class ShutdownState(Enum):
    """Shutdown progress of the supervised server."""
    RUNNING = "running"
    GRACE_PERIOD = "grace_period"
    FORCE_STOP = "force_stop"
    EXITED = "exited"


class RelayOutcome(Enum):
    """Why the command relay stopped."""
    CHILD_EXITED = "child_exited"
    CONTROL_WORD = "control_word"
    SHUTDOWN_REQUESTED = "shutdown_requested"


@dataclass
class SupervisorContext:
    """State shared by the supervisor components."""

    settings: Settings
    layout: ServerLayout
    channel: Channel
    process: Optional[asyncio.subprocess.Process] = None
    input_active: bool = True
    state: ShutdownState = ShutdownState.RUNNING
    shutdown_requested: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def child_alive(self) -> bool:
        """Non-blocking liveness check of the server process."""
        return self.process is not None and self.process.returncode is None

    @property
    def time_unit(self) -> float:
        return self.settings.time_unit

    @property
    def verbose_failures(self) -> bool:
        return self.settings.report_best_effort_failures


def exit_status(returncode: Optional[int]) -> int:
    """Convert a subprocess return code to a shell-style exit status."""
    if returncode is None:
        return 1
    if returncode < 0:
        return 128 - returncode
    return returncode
