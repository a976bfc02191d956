"""Health check endpoints."""

import os
from pathlib import Path

from fastapi import APIRouter, Request

from media_archive.api.models import HealthCheckResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(request: Request):
    """Check overall service health."""
    context = getattr(request.app.state, "archive", None)
    if context is None:
        return HealthCheckResponse(
            status="error",
            checks={"archive": {"status": "error", "message": "Archive not initialized"}},
        )

    config = await context.config_store.get()
    checks = {
        "config": check_backing_file(context.config_store.path),
        "index": check_backing_file(context.index.path),
        "archive_root": check_archive_root(config.archive_root),
    }

    # Determine overall status
    all_ok = all(check["status"] in ("ok", "disabled") for check in checks.values())
    status = "ok" if all_ok else "degraded"

    return HealthCheckResponse(status=status, checks=checks)


def check_backing_file(path: Path) -> dict:
    """Check that a state file can be written (it may not exist yet)."""
    path = Path(path)
    if path.exists():
        if os.access(path, os.W_OK):
            return {"status": "ok", "message": f"{path} is writable"}
        return {"status": "error", "message": f"{path} is not writable"}

    parent = path.parent if str(path.parent) else Path(".")
    if parent.exists() and os.access(parent, os.W_OK):
        return {"status": "ok", "message": f"{path} will be created on first write"}
    return {"status": "error", "message": f"Cannot create {path}"}


def check_archive_root(archive_root: str) -> dict:
    """Check the configured archive root."""
    if not archive_root:
        return {"status": "disabled", "message": "No archive root configured"}

    root = Path(archive_root).expanduser()
    if not root.exists():
        return {"status": "ok", "message": f"{root} will be created on first archive"}
    if not root.is_dir():
        return {"status": "error", "message": f"{root} is not a directory"}
    if not os.access(root, os.W_OK):
        return {"status": "error", "message": f"{root} is not writable"}
    return {"status": "ok", "message": f"Archiving to {root}"}
