"""MTA Supervisor - console relay and shutdown guard for the MTA:SA dedicated server."""

__version__ = "0.1.0"

from mta_supervisor.core.config import Settings
from mta_supervisor.supervisor import Supervisor

__all__ = ["Settings", "Supervisor", "__version__"]
