"""Forwards console input from the supervisor's stdin to the server."""

import asyncio
import concurrent.futures
import contextlib
import sys
import threading
from typing import IO, Optional

import structlog

from mta_supervisor.supervisor.models import CONTROL_WORDS, RelayOutcome, SupervisorContext
from mta_supervisor.utils.logging import report_best_effort

logger = structlog.get_logger()

INPUT_LINE_LIMIT = 1024 * 1024
INPUT_QUEUE_SIZE = 64
PUT_POLL_INTERVAL = 0.2


class ConsoleInput:
    """Bounded queue of raw console lines.

    ``readline()`` matches ``asyncio.StreamReader.readline``: it returns
    ``b""`` once input has ended. Closing it stops the pump feeding it.
    """

    def __init__(self, maxsize: int = INPUT_QUEUE_SIZE):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize)
        self._eof = False
        self.closed = threading.Event()

    async def put(self, line: bytes) -> None:
        await self._queue.put(line)

    async def readline(self) -> bytes:
        if self._eof:
            return b""
        line = await self._queue.get()
        if not line:
            self._eof = True
        return line

    def feed_eof(self) -> None:
        self._eof = True

    def close(self) -> None:
        self.closed.set()


class InputPump:
    """Reads lines from a blocking binary stream on a daemon thread.

    Each line is handed to the loop only once the queue has room, so a slow
    relay holds the reader back instead of growing a buffer.
    """

    def __init__(self, source: IO[bytes], lines: ConsoleInput, loop: asyncio.AbstractEventLoop):
        self.source = source
        self.lines = lines
        self.loop = loop
        self._thread = threading.Thread(target=self._run, name="stdin-pump", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the pump thread; True once it has finished."""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _put(self, line: bytes) -> bool:
        if self.lines.closed.is_set():
            return False
        try:
            future = asyncio.run_coroutine_threadsafe(self.lines.put(line), self.loop)
        except RuntimeError:
            # Loop already closed
            return False
        while not self.lines.closed.is_set():
            try:
                future.result(timeout=PUT_POLL_INTERVAL)
                return True
            except concurrent.futures.TimeoutError:
                continue
            except concurrent.futures.CancelledError:
                return False
        with contextlib.suppress(RuntimeError):
            future.cancel()
        return False

    def _skip_rest_of_line(self) -> None:
        while True:
            chunk = self.source.readline(INPUT_LINE_LIMIT)
            if not chunk or chunk.endswith(b"\n"):
                return

    def _run(self) -> None:
        try:
            while not self.lines.closed.is_set():
                line = self.source.readline(INPUT_LINE_LIMIT + 1)
                if not line:
                    break
                if len(line) > INPUT_LINE_LIMIT and not line.endswith(b"\n"):
                    self._skip_rest_of_line()
                    logger.warning("Discarded over-long console line", limit=INPUT_LINE_LIMIT)
                    continue
                if not self._put(line):
                    return
        except (OSError, ValueError) as e:
            logger.debug("Input read failed", error=str(e))
        finally:
            self._put(b"")


def open_input_stream(stream: Optional[IO] = None) -> ConsoleInput:
    """Expose ``stream`` (stdin by default) as a queue of console lines.

    Must be called from a running event loop. Close the result once it is no
    longer read.
    """
    loop = asyncio.get_running_loop()
    lines = ConsoleInput()
    stream = sys.stdin if stream is None else stream
    try:
        stream.fileno()
    except (AttributeError, ValueError, OSError):
        lines.feed_eof()
        return lines
    InputPump(getattr(stream, "buffer", stream), lines, loop).start()
    return lines


class CommandRelay:
    """Relays input lines into the command channel until the server exits,
    a control word is forwarded or shutdown is requested.

    ``input_stream`` is anything with an async ``readline()`` returning bytes,
    such as ``ConsoleInput`` or ``asyncio.StreamReader``.
    """

    def __init__(self, ctx: SupervisorContext, input_stream: ConsoleInput):
        self.ctx = ctx
        self.input = input_stream
    async def run(self) -> RelayOutcome:
        """Run the relay loop.

        Each wait lasts at most one time unit; a shutdown request wakes it
        immediately.
        """
        stop_waiter = asyncio.ensure_future(self.ctx.shutdown_requested.wait())
        pending: Optional[asyncio.Future] = None
        try:
            while True:
                if self.ctx.shutdown_requested.is_set():
                    return RelayOutcome.SHUTDOWN_REQUESTED
                if not self.ctx.child_alive:
                    return RelayOutcome.CHILD_EXITED

                if not self.ctx.input_active:
                    await asyncio.wait({stop_waiter}, timeout=self.ctx.time_unit)
                    continue

                if pending is None:
                    pending = asyncio.ensure_future(self.input.readline())
                done, _ = await asyncio.wait(
                    {pending, stop_waiter},
                    timeout=self.ctx.time_unit,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if pending not in done:
                    continue

                read, pending = pending, None
                line = self._take_line(read)
                if line is None:
                    continue

                self._forward(line)
                if line in CONTROL_WORDS:
                    logger.info("Control word forwarded, leaving relay", command=line)
                    return RelayOutcome.CONTROL_WORD
        finally:
            stop_waiter.cancel()
            if pending is not None:
                pending.cancel()

    def _take_line(self, read: asyncio.Future) -> Optional[str]:
        """Decode a completed read; ``None`` when there is nothing to forward."""
        try:
            raw = read.result()
        except ValueError as e:
            # Over-long line, already dropped by the reader
            logger.warning("Discarded over-long console line", error=str(e))
            return None
        except OSError as e:
            self._input_closed(error=str(e))
            return None
        if not raw:
            self._input_closed()
            return None
        return raw.decode("utf-8", errors="replace").rstrip("\r\n")

    def _input_closed(self, **fields) -> None:
        self.ctx.input_active = False
        logger.info("Console input closed, waiting for server to exit", **fields)

    def _forward(self, line: str) -> None:
        try:
            self.ctx.channel.send_line(line)
        except OSError as e:
            report_best_effort(
                self.ctx.verbose_failures,
                "Failed to forward command to server",
                command=line,
                error=str(e),
            )
