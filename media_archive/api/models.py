"""Request and response models for the API."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from media_archive.services.archive import ArchiveConfig, ArchiveIndexEntry


class UpdateConfigRequest(BaseModel):
    """Partial update of the archive configuration."""

    model_config = ConfigDict(populate_by_name=True)

    archive_root: Optional[str] = Field(
        default=None,
        alias="archiveRoot",
        description="Absolute archive root; empty string disables archiving",
    )
    service_dirs: Optional[dict[str, Optional[str]]] = Field(
        default=None,
        alias="serviceDirs",
        description="Replacement map of service to directory overrides",
    )


class UpdateServiceDirRequest(BaseModel):
    """Set or clear one service's directory override."""

    directory: Optional[str] = Field(
        default=None,
        description="Relative directory under the archive root; null clears the override",
    )


class ConfigResponse(BaseModel):
    """Current archive configuration."""

    success: bool = True
    config: ArchiveConfig


class ServiceDirResponse(BaseModel):
    """Result of a service directory update."""

    success: bool = True
    service: str
    directory: str = Field(description="Effective directory after the update")
    config: ArchiveConfig


class DownloadsResponse(BaseModel):
    """One page of archived downloads, newest first."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    entries: list[ArchiveIndexEntry]
    total: int
    cursor: int
    limit: int
    has_more: bool = Field(alias="hasMore")


class EntryResponse(BaseModel):
    """A single index entry."""

    success: bool = True
    entry: ArchiveIndexEntry


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str
    checks: dict[str, dict]
