"""Copies server databases to the shared output directory."""

import asyncio
import shutil
from pathlib import Path
from typing import List

import aiofiles.os
import structlog

from mta_supervisor.core.layout import STATE_DIRECTORY, STATE_FILES, ServerLayout
from mta_supervisor.utils.logging import report_best_effort

logger = structlog.get_logger()


class StatePersister:
    """Mirrors the server's database files into a shared directory.

    Safe to repeat: existing copies are overwritten and missing sources are
    skipped. No step raises.
    """

    def __init__(self, layout: ServerLayout, destination: Path, verbose_failures: bool = False):
        self.layout = layout
        self.destination = Path(destination)
        self.verbose_failures = verbose_failures

    async def persist(self) -> List[Path]:
        """Copy every present artifact and return the destination paths written."""
        logger.info("Saving databases..", destination=str(self.destination))
        copied: List[Path] = []

        try:
            await aiofiles.os.makedirs(self.destination, exist_ok=True)
        except OSError as e:
            report_best_effort(
                self.verbose_failures,
                "Failed to create shared directory",
                destination=str(self.destination),
                error=str(e),
            )
            return copied

        state_dir = self.layout.state_dir
        for name in STATE_FILES:
            source = state_dir / name
            if not await aiofiles.os.path.isfile(source):
                continue
            target = self.destination / name
            if await self._copy(shutil.copyfile, source, target):
                copied.append(target)

        source_dir = state_dir / STATE_DIRECTORY
        if await aiofiles.os.path.isdir(source_dir):
            target = self.destination / STATE_DIRECTORY
            if await self._copy(_copy_tree, source_dir, target):
                copied.append(target)

        logger.info("Databases saved", count=len(copied))
        return copied

    async def _copy(self, copier, source: Path, target: Path) -> bool:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, copier, source, target)
        except OSError as e:
            report_best_effort(
                self.verbose_failures,
                "Failed to copy server state",
                source=str(source),
                target=str(target),
                error=str(e),
            )
            return False
        return True


def _copy_tree(source: Path, target: Path) -> None:
    shutil.copytree(source, target, dirs_exist_ok=True)
