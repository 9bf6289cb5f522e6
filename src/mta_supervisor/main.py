"""Main entry point for the MTA server supervisor."""

import argparse
import asyncio
import sys
from typing import List, Optional

import structlog
from pydantic import ValidationError

from mta_supervisor import __version__
from mta_supervisor.core.config import Settings
from mta_supervisor.core.exceptions import SupervisorError
from mta_supervisor.core.layout import ServerLayout
from mta_supervisor.supervisor import StatePersister, Supervisor
from mta_supervisor.utils.logging import setup_logging

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mta-supervisor",
        description="Run the MTA:SA server with console relay, graceful shutdown and database persistence",
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=["run", "persist"],
        default="run",
        help="run the server (default) or only copy its databases to the shared directory",
    )
    parser.add_argument("--base-dir", help="Working area holding the server directory")
    parser.add_argument("--stop-delay", type=float, help="Seconds to wait for a graceful stop")
    parser.add_argument("--arch", help="Override the detected architecture (x86_64, aarch64)")
    parser.add_argument("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)")
    parser.add_argument("--log-format", choices=["json", "console"], help="Log output format")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    """Settings from the environment with command line overrides applied."""
    overrides = {
        "base_dir": args.base_dir,
        "server_stop_delay": args.stop_delay,
        "arch": args.arch,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    return Settings(**{key: value for key, value in overrides.items() if value is not None})


async def supervise(settings: Settings) -> int:
    """Run the supervisor, mapping fatal errors to exit code 1."""
    try:
        return await Supervisor(settings).run()
    except SupervisorError as e:
        logger.error(str(e), code=e.code)
        return 1


async def persist_state(settings: Settings) -> int:
    """Copy the server databases without starting the server."""
    try:
        layout = ServerLayout.for_machine(settings.machine, settings.base_dir)
    except SupervisorError as e:
        logger.error(str(e), code=e.code)
        return 1
    await StatePersister(
        layout,
        settings.shared_dir,
        verbose_failures=settings.report_best_effort_failures,
    ).persist()
    return 0


def run(argv: Optional[List[str]] = None) -> None:
    """Run the application."""
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args)
    except ValidationError as e:
        setup_logging()
        logger.error("Invalid configuration", error=str(e))
        sys.exit(1)

    setup_logging(settings.log_level, settings.log_format)

    if args.command == "persist":
        code = asyncio.run(persist_state(settings))
    else:
        code = asyncio.run(supervise(settings))
    sys.exit(code)


if __name__ == "__main__":
    run()
