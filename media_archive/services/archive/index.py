"""Append-only catalog of archived files.

The catalog lives in memory as a newest-first list and is persisted as JSON
lines, one entry per line. Every accepted append rewrites the whole file;
all mutations go through a single lock so concurrent appends never lose a
record.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os
from nanoid import generate

from .models import DEFAULT_MIME, ArchiveIndexEntry, ArchiveListing, FileStats
from .storage import write_text_atomic

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 10000
DEFAULT_PAGE_SIZE = 50
ID_LENGTH = 12


class ArchiveIndex:
    """JSON-lines backed catalog bounded to the most recent entries."""

    def __init__(self, path: Path, max_entries: int = DEFAULT_MAX_ENTRIES):
        self.path = Path(path)
        self.max_entries = max_entries
        self._entries: list[ArchiveIndexEntry] = []
        self._loaded = False
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def load(self) -> int:
        """Load the catalog from disk, replacing what is in memory.

        Returns:
            Number of entries loaded
        """
        async with self._lock:
            await self._load()
        return len(self._entries)

    async def _ensure_loaded(self) -> None:
        if not self._loaded:
            async with self._lock:
                if not self._loaded:
                    await self._load()

    async def _load(self) -> None:
        entries: list[ArchiveIndexEntry] = []
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                content = await f.read()
        except FileNotFoundError:
            content = ""
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read archive index {self.path}: {e}")
            content = ""

        try:
            entries = [
                ArchiveIndexEntry.model_validate_json(line)
                for line in content.split("\n")
                if line.strip()
            ]
        except ValueError as e:
            logger.error(f"Archive index {self.path} is corrupt, starting with an empty catalog: {e}")
            entries = []

        self._entries = entries[: self.max_entries]
        self._loaded = True
        logger.debug(f"Loaded {len(self._entries)} archive index entries from {self.path}")

    async def save(self) -> None:
        """Persist the catalog.

        Raises:
            OSError: If the file cannot be written
        """
        async with self._lock:
            await self._save()

    async def _save(self) -> None:
        lines = [entry.model_dump_json(by_alias=True) for entry in self._entries]
        try:
            await write_text_atomic(self.path, "\n".join(lines) + "\n")
        except OSError as e:
            logger.error(f"Failed to save archive index to {self.path}: {e}")
            raise

    def _new_id(self) -> str:
        taken = {entry.id for entry in self._entries}
        while True:
            entry_id = generate(size=ID_LENGTH)
            if entry_id not in taken:
                return entry_id

    async def append(
        self,
        *,
        service: str,
        filename: str,
        relative_path: str,
        size: int = 0,
        mime: Optional[str] = None,
    ) -> ArchiveIndexEntry:
        """Record a newly archived file at the head of the catalog.

        The oldest entries are evicted once the catalog exceeds max_entries.

        Returns:
            The stored entry, with its id and creation time

        Raises:
            OSError: If the catalog cannot be persisted (the entry is dropped)
        """
        async with self._lock:
            if not self._loaded:
                await self._load()

            entry = ArchiveIndexEntry(
                id=self._new_id(),
                service=service,
                filename=filename,
                relative_path=relative_path,
                size=size or 0,
                mime=mime or DEFAULT_MIME,
                created_at=datetime.now(timezone.utc),
            )

            previous = self._entries
            self._entries = [entry, *previous][: self.max_entries]
            try:
                await self._save()
            except OSError:
                self._entries = previous
                raise

            evicted = len(previous) + 1 - len(self._entries)
            if evicted:
                logger.debug(f"Archive index full, evicted {evicted} oldest entries")
            return entry

    async def get(self, entry_id: str) -> Optional[ArchiveIndexEntry]:
        """Look up an entry by id."""
        await self._ensure_loaded()
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    async def list_entries(
        self,
        service: Optional[str] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: int = 0,
    ) -> ArchiveListing:
        """Page through entries, newest first.

        Args:
            service: Only return entries of this service
            limit: Page size; non-positive values fall back to 50
            cursor: Offset of the first entry to return

        Returns:
            ArchiveListing with the page, the filtered total and has_more
        """
        await self._ensure_loaded()

        limit = limit if limit and limit > 0 else DEFAULT_PAGE_SIZE
        cursor = max(cursor or 0, 0)

        entries = [e for e in self._entries if not service or e.service == service]
        # Stable sort keeps newest-inserted first among equal timestamps
        entries.sort(key=lambda e: e.created_at, reverse=True)

        total = len(entries)
        return ArchiveListing(
            entries=entries[cursor : cursor + limit],
            total=total,
            cursor=cursor,
            limit=limit,
            has_more=cursor + limit < total,
        )

    async def count(self) -> int:
        await self._ensure_loaded()
        return len(self._entries)

    @staticmethod
    async def stat_file(path: Path) -> Optional[FileStats]:
        """Size and creation time of a file, or None if it cannot be stat'ed."""
        try:
            stats = await aiofiles.os.stat(path)
        except (OSError, ValueError):
            return None

        created = getattr(stats, "st_birthtime", None) or stats.st_ctime
        return FileStats(
            size=stats.st_size,
            created_at=datetime.fromtimestamp(created, tz=timezone.utc),
        )
