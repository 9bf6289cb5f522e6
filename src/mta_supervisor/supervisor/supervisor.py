"""Main supervisor driver for the MTA:SA server."""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Optional

import structlog

from mta_supervisor.core.config import Settings
from mta_supervisor.core.layout import ServerLayout
from mta_supervisor.supervisor.channel import Channel
from mta_supervisor.supervisor.launcher import ChildLauncher
from mta_supervisor.supervisor.models import SupervisorContext, exit_status
from mta_supervisor.supervisor.persistence import StatePersister
from mta_supervisor.supervisor.relay import CommandRelay, ConsoleInput, open_input_stream
from mta_supervisor.supervisor.shutdown import ShutdownCoordinator

logger = structlog.get_logger()

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class Supervisor:
    """Runs one server process from launch to persisted shutdown."""

    def __init__(
        self,
        settings: Settings,
        input_stream: Optional[ConsoleInput] = None,
        handle_signals: bool = True,
    ):
        self.settings = settings
        self.ctx: Optional[SupervisorContext] = None
        self._input_stream = input_stream
        self._handle_signals = handle_signals
        self._installed_signals = []
        self._finalized = False

    async def run(self) -> int:
        """Supervise the server and return the process exit code.

        Returns:
            0 after a coordinated shutdown, otherwise the server's own status

        Raises:
            SupervisorError: On any fatal startup error. Teardown has already
                run if the channel was created.
        """
        layout = ServerLayout.for_machine(self.settings.machine, self.settings.base_dir)
        layout.ensure_executable()

        channel = Channel.for_process(self.settings.channel_dir)
        channel.create()
        self.ctx = SupervisorContext(settings=self.settings, layout=layout, channel=channel)

        self._install_signal_handlers()
        try:
            async with self._teardown():
                return await self._supervise()
        finally:
            self._remove_signal_handlers()

    def request_shutdown(self, signum: Optional[int] = None) -> None:
        """Ask the supervisor to stop the server; duplicate requests are ignored."""
        if self.ctx is None:
            return
        if self.ctx.shutdown_requested.is_set():
            logger.debug("Shutdown already in progress", signal=signum)
            return
        name = signal.Signals(signum).name if signum else None
        logger.info("Received shutdown signal", signal=name)
        self.ctx.shutdown_requested.set()

    async def _supervise(self) -> int:
        ctx = self.ctx
        coordinator = ShutdownCoordinator(ctx)

        await ChildLauncher(ctx).launch()

        if not ctx.shutdown_requested.is_set():
            stream = self._input_stream or open_input_stream()
            try:
                outcome = await CommandRelay(ctx, stream).run()
            finally:
                if stream is not self._input_stream:
                    stream.close()
            logger.debug("Command relay finished", outcome=outcome.value)

        if ctx.shutdown_requested.is_set():
            await coordinator.shutdown()
            return 0

        return await self._wait_for_server(coordinator)

    async def _wait_for_server(self, coordinator: ShutdownCoordinator) -> int:
        """Wait for the server to exit unless a shutdown request comes first."""
        process = self.ctx.process
        exit_waiter = asyncio.ensure_future(process.wait())
        stop_waiter = asyncio.ensure_future(self.ctx.shutdown_requested.wait())
        try:
            await asyncio.wait({exit_waiter, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            exit_waiter.cancel()
            stop_waiter.cancel()

        if process.returncode is None:
            await coordinator.shutdown()
            return 0

        status = exit_status(process.returncode)
        logger.info("Server exited", exit_code=status)
        return status

    @asynccontextmanager
    async def _teardown(self):
        """Release the channel and persist state on every exit path."""
        try:
            yield
        except BaseException:
            if self.ctx.child_alive:
                await ShutdownCoordinator(self.ctx).force_stop()
            raise
        finally:
            await self._finalize()

    async def _finalize(self) -> None:
        if self._finalized:
            return
        self._finalized = True
        self.ctx.channel.destroy()
        await StatePersister(
            self.ctx.layout,
            self.settings.shared_dir,
            verbose_failures=self.settings.report_best_effort_failures,
        ).persist()

    def _install_signal_handlers(self) -> None:
        if not self._handle_signals:
            return
        loop = asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig)
            except (ValueError, RuntimeError, NotImplementedError) as e:
                # Only the main thread of a Unix loop can own signals
                logger.debug("Signal handler not installed", signal=sig.name, error=str(e))
                continue
            self._installed_signals.append(sig)

    def _remove_signal_handlers(self) -> None:
        if not self._installed_signals:
            return
        loop = asyncio.get_running_loop()
        for sig in self._installed_signals:
            loop.remove_signal_handler(sig)
        self._installed_signals = []
