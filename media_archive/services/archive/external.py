"""Incremental capture of output produced by an external process."""

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .writer import ArchiveWriter, PendingArchive

logger = logging.getLogger(__name__)


class ExternalOutputArchive:
    """Four-phase archive handle: initialize, write, finalize or abort.

    Example:
        handle = await writer.archive_external_output("youtube", "clip.mp3")
        if handle and await handle.initialize():
            async for chunk in transcoder_output():
                await handle.write(chunk)
            path = await handle.finalize()
    """

    def __init__(
        self,
        writer: "ArchiveWriter",
        service: str,
        filename: str,
        mime: Optional[str] = None,
    ):
        self.service = service
        self.filename = filename
        self.mime = mime
        self._writer = writer
        self._pending: Optional["PendingArchive"] = None
        self._initialized = False
        self._finished = False
        self._failed = False
        self._lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def part_path(self) -> Optional[Path]:
        return self._pending.part_path if self._pending is not None else None

    async def initialize(self) -> bool:
        """Create the directory and open the temporary file, once.

        Returns:
            True when writes will be captured
        """
        async with self._lock:
            if self._finished:
                return False
            if self._initialized:
                return True
            try:
                self._pending = await self._writer.open_pending(self.service, self.filename)
            except Exception:
                logger.exception(f"Failed to start capture of {self.service}/{self.filename}")
                return False
            self._initialized = self._pending is not None
            return self._initialized

    async def write(self, chunk: bytes) -> None:
        """Append a chunk; ignored before initialize() or after a failure."""
        if not self._initialized or self._finished or self._failed:
            return
        try:
            await self._pending.write(chunk)
        except Exception:
            logger.exception(f"Write to {self._pending.part_path} failed, capture will be discarded")
            self._failed = True

    async def finalize(self) -> Optional[Path]:
        """Commit the captured output and index it.

        Returns:
            Final path, or None if the capture never started or failed
        """
        async with self._lock:
            if not self._initialized or self._finished:
                return None
            self._finished = True

            if self._failed:
                await self._writer.discard(self._pending)
                return None
            try:
                return await self._writer.commit(self._pending, self.service, self.mime)
            except Exception:
                logger.exception(f"Failed to finalize capture of {self.service}/{self.filename}")
                await self._writer.discard(self._pending)
                return None

    async def abort(self) -> None:
        """Throw the captured output away."""
        async with self._lock:
            if not self._initialized or self._finished:
                self._finished = True
                return
            self._finished = True
            await self._writer.discard(self._pending)
            logger.info(f"Aborted capture of {self.service}/{self.filename}")

    async def capture_process(
        self,
        process: asyncio.subprocess.Process,
        read_size: Optional[int] = None,
    ) -> Optional[Path]:
        """Capture a subprocess's stdout until it exits.

        The capture is finalized when the process exits with status 0 and
        aborted otherwise.

        Args:
            process: Process started with stdout=asyncio.subprocess.PIPE
            read_size: Maximum bytes per read, the writer's copy chunk size
                if omitted

        Returns:
            Final path, or None if the process failed or capture failed
        """
        read_size = read_size or self._writer.copy_chunk_size
        await self.initialize()
        try:
            while True:
                chunk = await process.stdout.read(read_size)
                if not chunk:
                    break
                await self.write(chunk)
            returncode = await process.wait()
        except asyncio.CancelledError:
            await self.abort()
            raise
        except Exception:
            logger.exception(f"Reading output for {self.service}/{self.filename} failed")
            await self.abort()
            return None

        if returncode != 0:
            logger.warning(f"Process for {self.service}/{self.filename} exited with {returncode}")
            await self.abort()
            return None
        return await self.finalize()
