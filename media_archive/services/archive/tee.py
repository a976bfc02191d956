"""Tee persistence: archive a stream while it is relayed to a live consumer.

One producer (the relay loop) feeds two sinks: the live consumer, which
receives every chunk as soon as it arrives, and a background task writing
the same chunks to disk. The disk side never slows the relay. Chunks wait
in a queue of at most max_pending_chunks; if the disk falls further behind,
archival of the stream is abandoned and the relay carries on.
"""

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, AsyncIterator, Optional

from .protocols import ByteSource, aiter_chunks

if TYPE_CHECKING:
    from .writer import ArchiveWriter

logger = logging.getLogger(__name__)

_END_OF_STREAM = object()
_ABANDONED = object()


class ArchiveTee:
    """Async iterator relaying a byte stream unchanged while archiving it.

    Example:
        tee = writer.create_archive_tee("youtube", "clip.mp4", upstream)
        return StreamingResponse(tee, media_type="video/mp4")
    """

    def __init__(
        self,
        writer: "ArchiveWriter",
        service: str,
        filename: str,
        source: ByteSource,
        mime: Optional[str] = None,
        max_pending_chunks: int = 64,
    ):
        self.service = service
        self.filename = filename
        self.mime = mime
        self.max_pending_chunks = max_pending_chunks
        self._writer = writer
        self._source = source
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._started = False
        self._abandoned = False

    @property
    def abandoned(self) -> bool:
        """True once archival of this stream has been given up."""
        return self._abandoned

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._started:
            raise RuntimeError("ArchiveTee can only be iterated once")
        self._started = True
        return self._relay()

    async def _relay(self) -> AsyncIterator[bytes]:
        self._task = asyncio.create_task(self._persist())
        chunks = aiter_chunks(self._source)
        completed = False
        try:
            async for chunk in chunks:
                self._offer(chunk)
                yield chunk
            completed = True
        finally:
            await chunks.aclose()
            if completed and not self._abandoned:
                self._queue.put_nowait(_END_OF_STREAM)
            else:
                self._abandon()

    def _offer(self, chunk: bytes) -> None:
        if self._abandoned:
            return
        if self._queue.qsize() >= self.max_pending_chunks:
            logger.warning(
                f"Archive of {self.service}/{self.filename} fell "
                f"{self.max_pending_chunks} chunks behind the relay, abandoning it"
            )
            self._abandon()
            return
        self._queue.put_nowait(chunk)

    def _abandon(self) -> None:
        if self._abandoned:
            return
        self._abandoned = True
        # Release queued chunks and wake the disk task if it is waiting
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_ABANDONED)

    async def _persist(self) -> Optional[Path]:
        pending = None
        try:
            pending = await self._writer.open_pending(self.service, self.filename)
            if pending is None:
                # Disabled: keep relaying, stop queueing
                self._abandon()
                return None

            while True:
                if self._abandoned:
                    await self._writer.discard(pending)
                    logger.info(f"Discarded partial archive of {self.service}/{self.filename}")
                    return None
                chunk = await self._queue.get()
                if chunk is _END_OF_STREAM:
                    break
                if chunk is _ABANDONED:
                    continue
                await pending.write(chunk)
            return await self._writer.commit(pending, self.service, self.mime)
        except asyncio.CancelledError:
            if pending is not None:
                await self._writer.discard(pending)
            raise
        except Exception:
            logger.exception(f"Failed to archive relayed stream {self.service}/{self.filename}")
            self._abandon()
            if pending is not None:
                await self._writer.discard(pending)
            return None

    async def result(self) -> Optional[Path]:
        """Wait for the disk side to finish.

        Call after the relay has been fully iterated or closed.

        Returns:
            Final path of the archived copy, or None if the tee was never
            iterated, archiving is disabled, or the archive was abandoned
        """
        if self._task is None:
            return None
        try:
            return await self._task
        except asyncio.CancelledError:
            if self._task.cancelled():
                return None
            raise
