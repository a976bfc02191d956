"""Pydantic models for the media archive.

Field names are snake_case in Python; the persisted JSON and the HTTP API
use the camelCase aliases (archiveRoot, relativePath, createdAt, ...).
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_MIME = "application/octet-stream"


class ArchiveConfig(BaseModel):
    """Archive root plus per-service directory overrides.

    An empty archive_root disables archiving.
    """

    model_config = ConfigDict(populate_by_name=True)

    archive_root: str = Field(default="", alias="archiveRoot")
    service_dirs: dict[str, str] = Field(default_factory=dict, alias="serviceDirs")

    @property
    def enabled(self) -> bool:
        return bool(self.archive_root)


class ArchiveIndexEntry(BaseModel):
    """One archived file. Immutable once created."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    service: str
    filename: str
    relative_path: str = Field(alias="relativePath")
    size: int = Field(default=0, ge=0)
    mime: str = DEFAULT_MIME
    created_at: datetime = Field(alias="createdAt")


class ArchiveListing(BaseModel):
    """One page of index entries."""

    model_config = ConfigDict(populate_by_name=True)

    entries: list[ArchiveIndexEntry]
    total: int
    cursor: int
    limit: int
    has_more: bool = Field(alias="hasMore")


class FileStats(BaseModel):
    """Size and creation time of a file on disk."""

    size: int
    created_at: Optional[datetime] = None
