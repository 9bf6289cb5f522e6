"""Graceful stop with escalation for the server process."""

import asyncio
import contextlib
import signal

import structlog

from mta_supervisor.supervisor.models import ShutdownState, SupervisorContext
from mta_supervisor.utils.logging import report_best_effort

logger = structlog.get_logger()

SHUTDOWN_COMMAND = "shutdown"


class ShutdownCoordinator:
    """Stops the server: console ``shutdown``, then SIGTERM, then SIGKILL."""

    def __init__(self, ctx: SupervisorContext):
        self.ctx = ctx

    async def shutdown(self) -> None:
        """Run the full shutdown sequence.

        Sends ``shutdown`` over the channel and waits up to
        ``server_stop_delay`` seconds for the server to exit before forcing it.
        """
        logger.info("Shutting down...", grace_sec=self.ctx.settings.server_stop_delay)
        self.ctx.state = ShutdownState.GRACE_PERIOD

        try:
            self.ctx.channel.send_line(SHUTDOWN_COMMAND)
        except OSError as e:
            report_best_effort(
                self.ctx.verbose_failures,
                "Failed to send shutdown command",
                error=str(e),
            )

        if await self._wait_for_exit(self.ctx.settings.server_stop_delay):
            logger.info("Server stopped gracefully")
        else:
            await self.force_stop()

        self.ctx.state = ShutdownState.EXITED

    async def force_stop(self) -> None:
        """SIGTERM, one time unit, then SIGKILL; reaps the process."""
        process = self.ctx.process
        if process is None:
            return

        self.ctx.state = ShutdownState.FORCE_STOP
        if self.ctx.child_alive:
            logger.warning("Server did not stop gracefully, terminating", pid=process.pid)
            self._send_signal(signal.SIGTERM)
            if not await self._wait_for_exit(self.ctx.time_unit):
                logger.warning("Server ignored SIGTERM, killing", pid=process.pid)
                self._send_signal(signal.SIGKILL)

        await process.wait()
        logger.info("Server process reaped", exit_code=process.returncode)

    async def _wait_for_exit(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for the server to exit."""
        process = self.ctx.process
        if process is None or not self.ctx.child_alive:
            return True
        try:
            await asyncio.wait_for(process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def _send_signal(self, signum: int) -> None:
        # The process may exit between the liveness check and the signal
        with contextlib.suppress(ProcessLookupError):
            self.ctx.process.send_signal(signum)
