"""Starts the server process wired to the command channel."""

import asyncio
import contextlib
import os
import shutil
from typing import List

import structlog

from mta_supervisor.core.exceptions import ChannelError, ChildStartupError
from mta_supervisor.supervisor.models import SupervisorContext
from mta_supervisor.utils.logging import bind_supervisor_context

logger = structlog.get_logger()


class ChildLauncher:
    """Launches the server with its stdin attached to the channel."""

    def __init__(self, ctx: SupervisorContext):
        self.ctx = ctx

    def build_command(self) -> List[str]:
        """Command line used to start the server."""
        executable = self.ctx.layout.ensure_executable()
        cmd = [str(executable.resolve()), *self.ctx.settings.server_argv]
        if self.ctx.settings.line_buffered:
            stdbuf = shutil.which("stdbuf")
            if stdbuf:
                cmd = [stdbuf, "-oL", *cmd]
        return cmd

    async def launch(self) -> asyncio.subprocess.Process:
        """Start the server and wait for it to settle.

        Ordering matters: the placeholder writer lets the read end open without
        blocking, the persistent writer can only be opened once the server is
        reading, and the placeholder is dropped last.

        Returns:
            The running server process

        Raises:
            ChildStartupError: If the server cannot be spawned or dies immediately
            ChannelError: If any end of the command channel cannot be opened
        """
        cmd = self.build_command()
        channel = self.ctx.channel

        logger.info("Starting MTA:SA server", command=" ".join(cmd))

        try:
            placeholder_fd = channel.open_placeholder()
        except OSError as e:
            raise ChannelError(f"Failed to open command channel: {e}", code="pipe_open") from e

        try:
            process = await self._spawn(cmd)
            self.ctx.process = process
            try:
                channel.open_writer()
            except OSError as e:
                await self._abort(process)
                raise ChannelError(
                    f"Failed to open command channel for writing: {e}", code="pipe_open"
                ) from e
        finally:
            with contextlib.suppress(OSError):
                os.close(placeholder_fd)

        bind_supervisor_context(server_pid=process.pid, channel=str(channel.path))
        logger.info("Server process started", pid=process.pid)

        await asyncio.sleep(self.ctx.time_unit)
        if process.returncode is not None:
            raise ChildStartupError(
                f"Server process died immediately (exit code {process.returncode})",
                code="child_died",
            )
        return process

    async def _spawn(self, cmd: List[str]) -> asyncio.subprocess.Process:
        try:
            reader_fd = self.ctx.channel.open_reader()
        except OSError as e:
            raise ChannelError(
                f"Failed to open command channel for reading: {e}", code="pipe_open"
            ) from e
        try:
            return await asyncio.create_subprocess_exec(
                *cmd,
                stdin=reader_fd,
                cwd=str(self.ctx.layout.base_dir),
            )
        except OSError as e:
            raise ChildStartupError(f"Failed to start server: {e}", code="spawn") from e
        finally:
            os.close(reader_fd)

    async def _abort(self, process: asyncio.subprocess.Process) -> None:
        """Kill and reap a server that cannot be supervised."""
        if process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
        await process.wait()
