"""Custom exceptions for the MTA server supervisor."""

from typing import Optional


class SupervisorError(Exception):
    """Base exception for all fatal supervisor errors."""
    
    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class ConfigurationError(SupervisorError):
    """Configuration error."""
    pass


class UnsupportedArchitectureError(ConfigurationError):
    """Host architecture has no matching server build."""
    pass


class ExecutableNotFoundError(SupervisorError):
    """Server executable missing from the server directory."""
    pass


class ChannelError(SupervisorError):
    """Command channel could not be created or opened."""
    pass


class ChildStartupError(SupervisorError):
    """Server process failed to start or died immediately."""
    pass
