"""Archive configuration store.

Keeps the archive root and the per-service directory overrides in memory
and persists them as a single JSON document:

    {"archiveRoot": "/srv/media", "serviceDirs": {"youtube": "video/yt"}}

Every mutation rewrites the whole document.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import aiofiles

from .models import ArchiveConfig
from .paths import climbs_out, sanitize_dir_name
from .storage import write_text_atomic

logger = logging.getLogger(__name__)


class InvalidDirectoryName(ValueError):
    """Raised when a service directory override is not a usable relative path."""

    def __init__(self, directory: Optional[str]):
        super().__init__(f"Invalid directory name: {directory!r}")
        self.directory = directory


def clean_service_dir(directory: str) -> str:
    """Sanitize an override, rejecting names that escape the archive root.

    Raises:
        InvalidDirectoryName: If nothing usable is left after sanitizing
    """
    if not isinstance(directory, str) or climbs_out(directory):
        raise InvalidDirectoryName(directory)

    sanitized = sanitize_dir_name(directory)
    if sanitized is None:
        raise InvalidDirectoryName(directory)
    return sanitized


class ConfigStore:
    """Loads, caches and persists the ArchiveConfig document."""

    def __init__(self, path: Path, default_root: str = ""):
        """Initialize the store.

        Args:
            path: Location of the JSON document
            default_root: Archive root used when the document sets none
        """
        self.path = Path(path)
        self._default_root = default_root or ""
        self._config = self._defaults()
        self._loaded = False
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._loaded

    def _defaults(self) -> ArchiveConfig:
        return ArchiveConfig(archive_root=self._default_root)

    async def load(self) -> ArchiveConfig:
        """Read the document from disk, degrading to defaults on failure.

        A missing file is the normal first-run state and is not logged.
        """
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                data = json.loads(await f.read())
            self._config = self._from_document(data)
        except FileNotFoundError:
            self._config = self._defaults()
        except (OSError, ValueError, AttributeError) as e:
            logger.error(f"Failed to load archive config from {self.path}: {e}")
            self._config = self._defaults()

        self._loaded = True
        return self.snapshot()

    def _from_document(self, data: dict) -> ArchiveConfig:
        service_dirs = {}
        for service, directory in (data.get("serviceDirs") or {}).items():
            try:
                service_dirs[service] = clean_service_dir(directory)
            except InvalidDirectoryName:
                logger.warning(f"Ignoring invalid directory override for {service}: {directory!r}")

        return ArchiveConfig(
            archive_root=data.get("archiveRoot") or self._default_root,
            service_dirs=service_dirs,
        )

    async def save(self) -> None:
        """Persist the current document.

        Raises:
            OSError: If the document cannot be written
        """
        async with self._lock:
            await self._save()

    async def _save(self) -> None:
        document = json.dumps(self._config.model_dump(by_alias=True), indent=2)
        try:
            await write_text_atomic(self.path, document + "\n")
        except OSError as e:
            logger.error(f"Failed to save archive config to {self.path}: {e}")
            raise

    async def get(self) -> ArchiveConfig:
        """Return the current config, loading it on first use."""
        if not self._loaded:
            async with self._lock:
                if not self._loaded:
                    await self.load()
        return self.snapshot()

    def snapshot(self) -> ArchiveConfig:
        """Copy of the in-memory config, without touching disk."""
        return self._config.model_copy(deep=True)

    async def set(
        self,
        archive_root: Optional[str] = None,
        service_dirs: Optional[dict[str, Optional[str]]] = None,
    ) -> ArchiveConfig:
        """Merge the given fields into the config and persist it.

        Args:
            archive_root: New archive root ("" disables archiving)
            service_dirs: Replacement override map; entries mapping a service
                to itself or to None are dropped

        Returns:
            The updated config

        Raises:
            InvalidDirectoryName: If an override in service_dirs is unusable
            OSError: If the document cannot be written
        """
        updates = {}
        if archive_root is not None:
            updates["archive_root"] = archive_root
        if service_dirs is not None:
            updates["service_dirs"] = {
                service: clean_service_dir(directory)
                for service, directory in service_dirs.items()
                if directory is not None and directory != service
            }

        async with self._lock:
            if not self._loaded:
                await self.load()

            previous = self._config
            self._config = previous.model_copy(update=updates, deep=True)
            try:
                await self._save()
            except OSError:
                self._config = previous
                raise

            logger.info(f"Archive config updated: {sorted(updates)}")
            return self.snapshot()

    def resolve_service_dir(self, service: str) -> str:
        """Directory name for a service: its override, else the service name."""
        return self._config.service_dirs.get(service) or service

    async def set_service_dir(self, service: str, directory: Optional[str]) -> ArchiveConfig:
        """Set or clear one service's directory override.

        Passing None, or the service name itself, removes the override.

        Raises:
            InvalidDirectoryName: If the directory sanitizes to nothing usable
            OSError: If the document cannot be written
        """
        sanitized = None
        if directory is not None and directory != service:
            sanitized = clean_service_dir(directory)

        async with self._lock:
            if not self._loaded:
                await self.load()

            previous = self._config
            service_dirs = dict(previous.service_dirs)
            if sanitized is None:
                service_dirs.pop(service, None)
            else:
                service_dirs[service] = sanitized

            self._config = previous.model_copy(update={"service_dirs": service_dirs})
            try:
                await self._save()
            except OSError:
                self._config = previous
                raise

            logger.info(f"Service directory for {service}: {self.resolve_service_dir(service)}")
            return self.snapshot()
