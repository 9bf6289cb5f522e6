"""Named pipe used to deliver console commands to the server."""

import contextlib
import os
from pathlib import Path
from typing import Optional

import structlog

from mta_supervisor.core.exceptions import ChannelError

logger = structlog.get_logger()


class Channel:
    """Unidirectional FIFO written by the supervisor and read by the server.

    A FIFO blocks ``open()`` until both ends are present, so the launcher
    opens a placeholder writer first, then the server's read end, then the
    persistent writer kept here.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._writer_fd: Optional[int] = None

    @classmethod
    def for_process(cls, channel_dir: Path, pid: Optional[int] = None) -> "Channel":
        """Channel path unique to this supervisor process."""
        return cls(Path(channel_dir) / f"mta_input_{pid or os.getpid()}")

    @property
    def is_open(self) -> bool:
        return self._writer_fd is not None

    def create(self) -> None:
        """Replace any stale object at the path with a fresh FIFO."""
        try:
            if self.path.exists() or self.path.is_symlink():
                self.path.unlink()
            os.mkfifo(self.path, 0o600)
        except OSError as e:
            raise ChannelError(
                f"Failed to create named pipe: {self.path}: {e}", code="pipe_create"
            ) from e
        logger.debug("Created command channel", path=str(self.path))

    def open_placeholder(self) -> int:
        """Open a transient writer that never blocks.

        Opening a FIFO read/write succeeds immediately on Linux and counts as a
        writer, which lets the server's read end open without waiting.
        """
        return os.open(self.path, os.O_RDWR)

    def open_reader(self) -> int:
        """Open the read end handed to the server as stdin."""
        return os.open(self.path, os.O_RDONLY)

    def open_writer(self) -> None:
        """Open the supervisor's persistent write handle in non-blocking mode."""
        if self._writer_fd is None:
            fd = os.open(self.path, os.O_WRONLY)
            # A server that stops reading must never stall the event loop
            os.set_blocking(fd, False)
            self._writer_fd = fd

    def send_line(self, line: str) -> None:
        """Write one line to the server without blocking.

        Lines up to ``select.PIPE_BUF`` bytes are written whole or not at all.

        Raises:
            BlockingIOError: If the pipe is full because the server stopped
                reading. The unwritten part of the line is dropped.
            OSError: If the channel is closed or the server closed its input
        """
        if self._writer_fd is None:
            raise BrokenPipeError(f"Channel not open for writing: {self.path}")
        data = (line + "\n").encode("utf-8")
        while data:
            written = os.write(self._writer_fd, data)
            data = data[written:]

    def close_writer(self) -> None:
        if self._writer_fd is not None:
            fd, self._writer_fd = self._writer_fd, None
            with contextlib.suppress(OSError):
                os.close(fd)

    def destroy(self) -> None:
        """Close the writer and remove the FIFO. Never raises."""
        self.close_writer()
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.debug("Failed to remove command channel", path=str(self.path), error=str(e))
            return
        logger.debug("Removed command channel", path=str(self.path))
