"""Archive API endpoints.

Endpoints:
- GET /archive/config - Current archive configuration
- PUT /archive/config - Update archive root and/or service directories
- PUT /archive/config/services/{service} - Set or clear one service directory
- GET /archive/downloads - Page through archived files, newest first
- GET /archive/entries/{id} - Get one index entry
- GET /archive/file/{id} - Download an archived file
"""

import logging
from pathlib import Path
from typing import AsyncIterator, Optional
from urllib.parse import quote

import aiofiles
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from media_archive.api.models import (
    ConfigResponse,
    DownloadsResponse,
    EntryResponse,
    ServiceDirResponse,
    UpdateConfigRequest,
    UpdateServiceDirRequest,
)
from media_archive.services.archive import ArchiveContext, InvalidDirectoryName

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/archive", tags=["archive"])


# =============================================================================
# Dependencies
# =============================================================================


def get_archive_context(request: Request) -> ArchiveContext:
    """Archive context created by the application lifespan."""
    context = getattr(request.app.state, "archive", None)
    if context is None:
        raise HTTPException(status_code=503, detail="Archive not initialized")
    return context


def content_disposition(filename: str) -> str:
    """Attachment header value, RFC 5987 encoded for non-ASCII names."""
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


async def iter_file(path: Path, chunk_size: int) -> AsyncIterator[bytes]:
    async with aiofiles.open(path, "rb") as f:
        while True:
            chunk = await f.read(chunk_size)
            if not chunk:
                break
            yield chunk


# =============================================================================
# Configuration
# =============================================================================


@router.get("/config", response_model=ConfigResponse)
async def get_config(context: ArchiveContext = Depends(get_archive_context)):
    """Get the archive root and service directory overrides."""
    return ConfigResponse(config=await context.config_store.get())


@router.put("/config", response_model=ConfigResponse)
async def update_config(
    request: UpdateConfigRequest,
    context: ArchiveContext = Depends(get_archive_context),
):
    """Update the archive root and/or replace the service directory map."""
    try:
        config = await context.config_store.set(
            archive_root=request.archive_root,
            service_dirs=request.service_dirs,
        )
    except InvalidDirectoryName as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to save archive config: {e}")

    return ConfigResponse(config=config)


@router.put("/config/services/{service}", response_model=ServiceDirResponse)
async def update_service_dir(
    service: str,
    request: UpdateServiceDirRequest,
    context: ArchiveContext = Depends(get_archive_context),
):
    """Set a service's directory override, or clear it with null."""
    try:
        config = await context.config_store.set_service_dir(service, request.directory)
    except InvalidDirectoryName as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to save archive config: {e}")

    return ServiceDirResponse(
        service=service,
        directory=config.service_dirs.get(service) or service,
        config=config,
    )


# =============================================================================
# Catalog
# =============================================================================


@router.get("/downloads", response_model=DownloadsResponse)
async def list_downloads(
    service: Optional[str] = Query(default=None, description="Only this service"),
    limit: int = Query(default=50, description="Page size"),
    cursor: int = Query(default=0, description="Offset of the first entry"),
    context: ArchiveContext = Depends(get_archive_context),
):
    """List archived files, newest first."""
    listing = await context.index.list_entries(service=service, limit=limit, cursor=cursor)
    return DownloadsResponse(
        entries=listing.entries,
        total=listing.total,
        cursor=listing.cursor,
        limit=listing.limit,
        has_more=listing.has_more,
    )


@router.get("/entries/{entry_id}", response_model=EntryResponse)
async def get_entry(entry_id: str, context: ArchiveContext = Depends(get_archive_context)):
    """Get one index entry by id."""
    entry = await context.index.get(entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Entry not found")
    return EntryResponse(entry=entry)


@router.get("/file/{entry_id}")
async def download_file(entry_id: str, context: ArchiveContext = Depends(get_archive_context)):
    """Stream an archived file back to the client."""
    entry = await context.index.get(entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Entry not found")

    config = await context.config_store.get()
    if not config.enabled:
        raise HTTPException(status_code=500, detail="Archive root is not configured")

    path = await context.entry_path(entry, config)
    stats = await context.index.stat_file(path) if path else None
    if stats is None:
        logger.warning(f"Archived file for {entry_id} is missing: {entry.relative_path}")
        raise HTTPException(status_code=404, detail="File not found")

    return StreamingResponse(
        iter_file(path, context.settings.copy_chunk_size),
        media_type=entry.mime,
        headers={
            "Content-Disposition": content_disposition(entry.filename),
            "Content-Length": str(stats.size),
        },
    )
