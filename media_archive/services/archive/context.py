"""Process-wide archive context.

Built once at startup and handed to everything that needs the archive,
instead of module-level lazily-loaded state.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from media_archive.lib.config_manager import config

from .config_store import ConfigStore
from .index import ArchiveIndex
from .models import ArchiveConfig, ArchiveIndexEntry
from .paths import is_within
from .writer import ArchiveWriter

logger = logging.getLogger(__name__)


@dataclass
class ArchiveSettings:
    """Settings for the archive context.

    Values are read from the environment (or .env) when an instance is
    created, falling back to media_archive.lib.defaults.
    """

    archive_root: str = field(default_factory=lambda: config.get("MEDIA_ARCHIVE_ROOT"))
    config_path: Path = field(default_factory=lambda: Path(config.get("ARCHIVE_CONFIG_PATH")))
    index_path: Path = field(default_factory=lambda: Path(config.get("ARCHIVE_INDEX_PATH")))
    index_max_entries: int = field(default_factory=lambda: config.get("ARCHIVE_INDEX_MAX_ENTRIES"))
    tee_max_pending_chunks: int = field(
        default_factory=lambda: config.get("ARCHIVE_TEE_MAX_PENDING_CHUNKS")
    )
    copy_chunk_size: int = field(default_factory=lambda: config.get("ARCHIVE_COPY_CHUNK_SIZE"))

    def __post_init__(self):
        """Validate settings."""
        if self.index_max_entries < 1:
            raise ValueError(f"index_max_entries must be positive, got {self.index_max_entries}")
        if self.tee_max_pending_chunks < 1:
            raise ValueError(
                f"tee_max_pending_chunks must be positive, got {self.tee_max_pending_chunks}"
            )
        if self.copy_chunk_size < 1:
            raise ValueError(f"copy_chunk_size must be positive, got {self.copy_chunk_size}")


class ArchiveContext:
    """Owns the config store, the index and the writer."""

    def __init__(self, settings: Optional[ArchiveSettings] = None):
        self.settings = settings or ArchiveSettings()
        self.config_store = ConfigStore(
            self.settings.config_path,
            default_root=self.settings.archive_root,
        )
        self.index = ArchiveIndex(
            self.settings.index_path,
            max_entries=self.settings.index_max_entries,
        )
        self.writer = ArchiveWriter(
            self.config_store,
            self.index,
            tee_max_pending_chunks=self.settings.tee_max_pending_chunks,
            copy_chunk_size=self.settings.copy_chunk_size,
        )

    async def load(self) -> None:
        """Load configuration and catalog from disk."""
        archive_config = await self.config_store.load()
        entries = await self.index.load()
        if archive_config.enabled:
            logger.info(f"Archiving to {archive_config.archive_root} ({entries} indexed files)")
        else:
            logger.info(f"Archiving disabled ({entries} indexed files)")

    async def save(self) -> None:
        """Persist configuration and catalog."""
        await self.config_store.save()
        await self.index.save()

    async def entry_path(self, entry: ArchiveIndexEntry, archive_config: ArchiveConfig) -> Optional[Path]:
        """Absolute path of an entry's file, or None if it would leave the root."""
        if not archive_config.enabled:
            return None
        root = Path(archive_config.archive_root).expanduser()
        path = root / entry.relative_path
        if not await is_within(path, root):
            logger.warning(f"Index entry {entry.id} points outside the archive root")
            return None
        return path


def create_archive_context(settings: Optional[ArchiveSettings] = None) -> ArchiveContext:
    """Create an archive context (not yet loaded).

    Args:
        settings: Optional settings; read from the environment if omitted

    Returns:
        ArchiveContext; call and await load() before serving requests
    """
    return ArchiveContext(settings)
