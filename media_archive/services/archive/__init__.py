"""Archive service for persisting fetched media files.

Composition-based design: a config store, an append-only index and a
writer, owned by one ArchiveContext built at process start.

Example usage:
    >>> from media_archive.services.archive import create_archive_context
    >>>
    >>> context = create_archive_context()
    >>> await context.load()
    >>> path = await context.writer.archive_stream("youtube", "clip.mp4", chunks)
    >>>
    >>> # Relay and archive at the same time
    >>> tee = context.writer.create_archive_tee("youtube", "clip.mp4", upstream)
    >>> async for chunk in tee:
    ...     await send(chunk)
"""

from .config_store import ConfigStore, InvalidDirectoryName
from .context import ArchiveContext, ArchiveSettings, create_archive_context
from .external import ExternalOutputArchive
from .index import ArchiveIndex
from .models import ArchiveConfig, ArchiveIndexEntry, ArchiveListing, FileStats
from .paths import sanitize_dir_name, sanitize_filename
from .protocols import ByteSource, OutputCapture
from .tee import ArchiveTee
from .writer import ArchiveWriter

__all__ = [
    # Models
    "ArchiveConfig",
    "ArchiveIndexEntry",
    "ArchiveListing",
    "FileStats",
    # Protocols
    "ByteSource",
    "OutputCapture",
    # Components
    "ConfigStore",
    "ArchiveIndex",
    "ArchiveWriter",
    "ArchiveTee",
    "ExternalOutputArchive",
    "ArchiveContext",
    "ArchiveSettings",
    # Errors
    "InvalidDirectoryName",
    # Helpers
    "sanitize_dir_name",
    "sanitize_filename",
    # Factories
    "create_archive_context",
]
