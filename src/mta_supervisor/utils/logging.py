"""Logging configuration utilities."""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.contextvars import bind_contextvars


SENSITIVE_KEYS = {
    "password",
    "secret",
    "token",
    "rcon_password",
    "admin_password",
}


def _redact_sensitive(_, __, event_dict: dict) -> dict:
    """Redact sensitive fields in the structured log."""
    for key in list(event_dict.keys()):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = "[REDACTED]"
    return event_dict


def setup_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Configure structured logging."""

    # Configure standard logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        _redact_sensitive,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def bind_supervisor_context(server_pid: Optional[int] = None, channel: Optional[str] = None) -> None:
    """Bind correlation fields for supervisor logs using contextvars."""
    if server_pid:
        bind_contextvars(serverPid=server_pid)
    if channel:
        bind_contextvars(channel=channel)


def report_best_effort(verbose: bool, event: str, **fields: Any) -> None:
    """Log a swallowed failure: warning when ``verbose``, debug otherwise."""
    logger = structlog.get_logger()
    if verbose:
        logger.warning(event, **fields)
    else:
        logger.debug(event, **fields)
