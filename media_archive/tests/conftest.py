"""
Pytest configuration and fixtures for media_archive/ tests.

Provides:
- Temp-dir backed archive settings and context
- FastAPI app built around that context
- Sync and async test clients
"""

import tempfile
from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from media_archive.services.archive import ArchiveContext, ArchiveSettings


# ============ Archive Setup ============


@pytest.fixture
def temp_dir():
    """Temporary directory for tests."""
    with tempfile.TemporaryDirectory(ignore_cleanup_errors=True) as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def archive_root(temp_dir) -> Path:
    return temp_dir / "archive"


@pytest.fixture
def archive_settings(temp_dir, archive_root) -> ArchiveSettings:
    """Settings pointing every backing file into the temp dir."""
    return ArchiveSettings(
        archive_root=str(archive_root),
        config_path=temp_dir / "archive-config.json",
        index_path=temp_dir / "archive-index.jsonl",
        index_max_entries=10000,
        tee_max_pending_chunks=64,
        copy_chunk_size=65536,
    )


@pytest.fixture
def archive_context(archive_settings) -> ArchiveContext:
    """Archive context, loaded by the app lifespan or by the test."""
    return ArchiveContext(archive_settings)


# ============ FastAPI Test Client ============


@pytest.fixture
def app(archive_context):
    """Create FastAPI app instance for testing."""
    from media_archive.api.main import create_app

    return create_app(context=archive_context, configure_logging=False)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Synchronous test client for FastAPI (runs the lifespan)."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
async def async_client(app, archive_context) -> AsyncGenerator:
    """Async test client for FastAPI.

    ASGITransport does not run the lifespan, so the context is loaded
    and attached here.
    """
    from httpx import ASGITransport, AsyncClient

    await archive_context.load()
    app.state.archive = archive_context
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
