"""Server supervisor - launch, console relay, shutdown and state persistence."""

from .supervisor import Supervisor
from .channel import Channel
from .persistence import StatePersister

__all__ = ["Supervisor", "Channel", "StatePersister"]
