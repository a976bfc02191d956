"""Shared pytest fixtures for services tests."""

import tempfile
from pathlib import Path

import pytest

from media_archive.services.archive import (
    ArchiveContext,
    ArchiveSettings,
    ConfigStore,
    ArchiveIndex,
    ArchiveWriter,
)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def temp_dir():
    """Temporary directory for tests.

    Automatically cleaned up after test completes.
    """
    with tempfile.TemporaryDirectory(ignore_cleanup_errors=True) as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def archive_root(temp_dir) -> Path:
    """Archive root inside the temp dir (not created up front)."""
    return temp_dir / "archive"


@pytest.fixture
def archive_settings(temp_dir, archive_root) -> ArchiveSettings:
    """Settings pointing every backing file into the temp dir."""
    return ArchiveSettings(
        archive_root=str(archive_root),
        config_path=temp_dir / "state" / "archive-config.json",
        index_path=temp_dir / "state" / "archive-index.jsonl",
        index_max_entries=10000,
        tee_max_pending_chunks=64,
        copy_chunk_size=65536,
    )


@pytest.fixture
def disabled_settings(temp_dir) -> ArchiveSettings:
    """Settings with no archive root."""
    return ArchiveSettings(
        archive_root="",
        config_path=temp_dir / "state" / "archive-config.json",
        index_path=temp_dir / "state" / "archive-index.jsonl",
        index_max_entries=10000,
        tee_max_pending_chunks=64,
        copy_chunk_size=65536,
    )


@pytest.fixture
async def archive_context(archive_settings) -> ArchiveContext:
    """Loaded archive context with archiving enabled."""
    context = ArchiveContext(archive_settings)
    await context.load()
    return context


@pytest.fixture
async def disabled_context(disabled_settings) -> ArchiveContext:
    """Loaded archive context with archiving disabled."""
    context = ArchiveContext(disabled_settings)
    await context.load()
    return context


@pytest.fixture
def config_store(archive_settings) -> ConfigStore:
    return ConfigStore(archive_settings.config_path, default_root=archive_settings.archive_root)


@pytest.fixture
def archive_index(archive_settings) -> ArchiveIndex:
    return ArchiveIndex(archive_settings.index_path)


@pytest.fixture
def writer(archive_context) -> ArchiveWriter:
    return archive_context.writer
