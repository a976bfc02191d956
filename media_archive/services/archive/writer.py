"""Archive writer: crash-safe, collision-free persistence of byte streams.

Every archive is written to a ".part" file that is claimed with exclusive
create, then committed under its final name in one filesystem operation and
recorded in the index. Archiving is best-effort: failures are logged, the
temporary file is removed and callers get None instead of an exception.
"""

import asyncio
import errno
import logging
import mimetypes
from pathlib import Path
from typing import Iterator, Optional

import aiofiles
import aiofiles.os

from media_archive.lib.logging_config import log_with_context

from .config_store import ConfigStore
from .external import ExternalOutputArchive
from .index import ArchiveIndex
from .models import DEFAULT_MIME
from .paths import (
    candidate_names,
    climbs_out,
    is_within,
    part_path_for,
    sanitize_dir_name,
    sanitize_filename,
)
from .protocols import ByteSource, aiter_chunks
from .storage import remove_quietly
from .tee import ArchiveTee

logger = logging.getLogger(__name__)

DEFAULT_TEE_MAX_PENDING_CHUNKS = 64
DEFAULT_COPY_CHUNK_SIZE = 65536
MAX_NAME_ATTEMPTS = 10000

# Filesystems without hard links report one of these from os.link
_NO_HARDLINK_ERRNOS = {errno.EPERM, errno.EXDEV, errno.EMLINK, errno.ENOTSUP, errno.EOPNOTSUPP}


def resolve_mime(filename: str, mime: Optional[str] = None) -> str:
    """Use the given MIME type, else guess from the filename."""
    if mime:
        return mime
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or DEFAULT_MIME


class PendingArchive:
    """An in-flight write: a claimed .part file and its intended final path."""

    def __init__(self, root: Path, final_path: Path, requested_name: str, handle):
        self.root = root
        self.final_path = final_path
        self.part_path = part_path_for(final_path)
        self.requested_name = requested_name
        self.size = 0
        self._handle = handle

    @property
    def closed(self) -> bool:
        return self._handle is None

    async def write(self, chunk: bytes) -> None:
        if not chunk:
            return
        await self._handle.write(chunk)
        self.size += len(chunk)

    async def close(self) -> None:
        """Flush and close the .part file. Safe to call more than once."""
        handle, self._handle = self._handle, None
        if handle is not None:
            await handle.close()


class ArchiveWriter:
    """Persists byte sources under the archive root and indexes them."""

    def __init__(
        self,
        config_store: ConfigStore,
        index: ArchiveIndex,
        tee_max_pending_chunks: int = DEFAULT_TEE_MAX_PENDING_CHUNKS,
        copy_chunk_size: int = DEFAULT_COPY_CHUNK_SIZE,
    ):
        self.config_store = config_store
        self.index = index
        self.tee_max_pending_chunks = tee_max_pending_chunks
        self.copy_chunk_size = copy_chunk_size
        self._dir_locks: dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    def _directory_lock(self, directory: Path) -> asyncio.Lock:
        key = str(directory)
        lock = self._dir_locks.get(key)
        if lock is None:
            lock = self._dir_locks[key] = asyncio.Lock()
        return lock

    async def target_directory(self, service: str) -> Optional[tuple[Path, Path]]:
        """Resolve (archive root, service directory), or None if disabled."""
        config = await self.config_store.get()
        if not config.enabled:
            logger.debug(f"Archiving disabled, skipping {service}")
            return None

        root = Path(config.archive_root).expanduser()
        raw_dir = self.config_store.resolve_service_dir(service)
        service_dir = None if climbs_out(raw_dir) else sanitize_dir_name(raw_dir)
        if service_dir is None:
            logger.warning(f"Service {service!r} has no usable archive directory")
            return None

        directory = root / service_dir
        if not await is_within(directory, root):
            logger.warning(f"Archive directory {directory} escapes root {root}")
            return None
        return root, directory

    async def open_pending(self, service: str, filename: str) -> Optional[PendingArchive]:
        """Claim a collision-free name for a new archive and open its .part file.

        Returns:
            PendingArchive ready for writes, or None when archiving is disabled

        Raises:
            OSError: If the directory or the temporary file cannot be created
        """
        target = await self.target_directory(service)
        if target is None:
            return None
        root, directory = target
        requested = sanitize_filename(filename)

        await aiofiles.os.makedirs(directory, exist_ok=True)
        async with self._directory_lock(directory):
            for attempt, name in enumerate(candidate_names(requested)):
                if attempt >= MAX_NAME_ATTEMPTS:
                    break
                final_path = directory / name
                if await self._is_taken(final_path):
                    continue
                try:
                    handle = await aiofiles.open(part_path_for(final_path), "xb")
                except FileExistsError:
                    continue
                return PendingArchive(root, final_path, requested, handle)

        raise FileExistsError(f"No free name for {requested} in {directory}")

    @staticmethod
    async def _is_taken(final_path: Path) -> bool:
        return await aiofiles.os.path.exists(final_path) or await aiofiles.os.path.exists(
            part_path_for(final_path)
        )

    async def _publish(self, pending: PendingArchive) -> Path:
        """Move the .part file to a final name that nothing else holds."""
        directory = pending.final_path.parent
        async with self._directory_lock(directory):
            names = candidate_names(pending.requested_name)
            final_path = pending.final_path
            for _ in range(MAX_NAME_ATTEMPTS):
                try:
                    await aiofiles.os.link(pending.part_path, final_path)
                except FileExistsError:
                    final_path = await self._next_free(directory, names)
                    continue
                except OSError as e:
                    if e.errno not in _NO_HARDLINK_ERRNOS:
                        raise
                    # No hard links on this filesystem; the name claim still holds
                    await aiofiles.os.replace(pending.part_path, final_path)
                    return final_path

                await remove_quietly(pending.part_path)
                return final_path

        raise FileExistsError(f"No free name for {pending.requested_name} in {directory}")

    async def _next_free(self, directory: Path, names: Iterator[str]) -> Path:
        for name in names:
            candidate = directory / name
            if not await self._is_taken(candidate):
                return candidate
        raise FileExistsError(f"No free name in {directory}")

    # ------------------------------------------------------------------
    # Commit / discard
    # ------------------------------------------------------------------

    async def commit(self, pending: PendingArchive, service: str, mime: Optional[str] = None) -> Path:
        """Close, publish and index a pending archive.

        On failure the temporary file (and a published file whose index
        record could not be written) is removed before the error propagates.
        """
        try:
            await pending.close()
            final_path = await self._publish(pending)
        except BaseException:
            await self.discard(pending)
            raise

        relative_path = final_path.relative_to(pending.root).as_posix()
        try:
            await self.index.append(
                service=service,
                filename=final_path.name,
                relative_path=relative_path,
                size=pending.size,
                mime=resolve_mime(pending.requested_name, mime),
            )
        except BaseException:
            await remove_quietly(final_path)
            raise

        log_with_context(
            logger,
            "info",
            f"Archived {service}/{relative_path} ({pending.size} bytes)",
            service=service,
            relative_path=relative_path,
            size=pending.size,
        )
        return final_path

    async def discard(self, pending: PendingArchive) -> None:
        """Drop a pending archive and its temporary file."""
        try:
            await pending.close()
        except OSError as e:
            logger.debug(f"Error closing {pending.part_path}: {e}")
        await remove_quietly(pending.part_path)

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    async def archive_stream(
        self,
        service: str,
        filename: str,
        stream: ByteSource,
        mime: Optional[str] = None,
    ) -> Optional[Path]:
        """Persist a complete byte stream.

        Args:
            service: Logical service name used to pick the directory
            filename: Desired filename (sanitized and disambiguated)
            stream: Sync or async iterable of byte chunks
            mime: Already resolved MIME type, guessed from filename if omitted

        Returns:
            Final path of the archived file, or None if disabled or failed
        """
        pending = None
        try:
            pending = await self.open_pending(service, filename)
            if pending is None:
                return None
            async for chunk in aiter_chunks(stream):
                await pending.write(chunk)
            return await self.commit(pending, service, mime)
        except asyncio.CancelledError:
            if pending is not None:
                await self.discard(pending)
            raise
        except Exception:
            logger.exception(f"Failed to archive {service}/{filename}")
            if pending is not None:
                await self.discard(pending)
            return None

    def create_archive_tee(
        self,
        service: str,
        filename: str,
        relayed_stream: ByteSource,
        mime: Optional[str] = None,
    ) -> ArchiveTee:
        """Wrap a relayed stream so its chunks are archived as they pass.

        The returned tee yields exactly the chunks of relayed_stream. When
        archiving is disabled it is a plain pass-through.
        """
        return ArchiveTee(
            self,
            service,
            filename,
            relayed_stream,
            mime=mime,
            max_pending_chunks=self.tee_max_pending_chunks,
        )

    async def archive_external_output(
        self,
        service: str,
        filename: str,
        mime: Optional[str] = None,
    ) -> Optional[ExternalOutputArchive]:
        """Create a four-phase capture handle for an external producer.

        Returns:
            ExternalOutputArchive, or None when archiving is disabled
        """
        config = await self.config_store.get()
        if not config.enabled:
            return None
        return ExternalOutputArchive(self, service, filename, mime=mime)
