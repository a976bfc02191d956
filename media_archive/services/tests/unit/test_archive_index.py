"""Tests for the archive index.

Run with: pytest media_archive/services/tests/unit/test_archive_index.py -v
"""

import json
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from media_archive.services.archive import ArchiveIndex, ArchiveIndexEntry
from media_archive.services.archive import index as index_module
from media_archive.services.archive.index import DEFAULT_MAX_ENTRIES, DEFAULT_PAGE_SIZE, ID_LENGTH


async def append_n(index: ArchiveIndex, n: int, service: str = "youtube") -> list[ArchiveIndexEntry]:
    entries = []
    for i in range(n):
        entries.append(
            await index.append(
                service=service,
                filename=f"file{i}.mp4",
                relative_path=f"{service}/file{i}.mp4",
                size=i,
            )
        )
    return entries


# =============================================================================
# Append
# =============================================================================


@pytest.mark.unit
class TestAppend:
    """Recording new entries."""

    @pytest.mark.asyncio
    async def test_append_assigns_id_and_time(self, archive_index):
        before = datetime.now(timezone.utc)
        entry = await archive_index.append(
            service="youtube",
            filename="clip.mp4",
            relative_path="youtube/clip.mp4",
            size=42,
            mime="video/mp4",
        )

        assert len(entry.id) == ID_LENGTH
        assert entry.created_at >= before
        assert entry.size == 42
        assert entry.mime == "video/mp4"
        assert await archive_index.count() == 1

    @pytest.mark.asyncio
    async def test_defaults_for_size_and_mime(self, archive_index):
        entry = await archive_index.append(
            service="youtube", filename="blob", relative_path="youtube/blob"
        )

        assert entry.size == 0
        assert entry.mime == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, archive_index):
        entries = await append_n(archive_index, 25)
        assert len({e.id for e in entries}) == 25

    @pytest.mark.asyncio
    async def test_entries_are_immutable(self, archive_index):
        entry = await archive_index.append(
            service="youtube", filename="a", relative_path="youtube/a"
        )
        with pytest.raises(ValidationError):
            entry.size = 99

    @pytest.mark.asyncio
    async def test_newest_first(self, archive_index):
        first, second = await append_n(archive_index, 2)
        listing = await archive_index.list_entries()
        assert [e.id for e in listing.entries] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_failed_save_drops_entry(self, archive_index, monkeypatch):
        await append_n(archive_index, 1)

        async def failing_write(path, text):
            raise OSError("disk full")

        monkeypatch.setattr(index_module, "write_text_atomic", failing_write)

        with pytest.raises(OSError):
            await archive_index.append(service="youtube", filename="x", relative_path="youtube/x")
        assert await archive_index.count() == 1


# =============================================================================
# Bounded size
# =============================================================================


@pytest.mark.unit
class TestEviction:
    """Oldest entries are evicted once the bound is reached."""

    @pytest.mark.asyncio
    async def test_small_bound(self, temp_dir):
        index = ArchiveIndex(temp_dir / "index.jsonl", max_entries=3)
        entries = await append_n(index, 5)

        listing = await index.list_entries()
        assert listing.total == 3
        assert [e.id for e in listing.entries] == [e.id for e in reversed(entries[2:])]

    @pytest.mark.asyncio
    async def test_default_bound_evicts_oldest(self, temp_dir):
        path = temp_dir / "index.jsonl"
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        # Newest first on disk, oldest last
        seeded = [
            ArchiveIndexEntry(
                id=f"seed{i:08d}",
                service="youtube",
                filename=f"{i}.mp4",
                relative_path=f"youtube/{i}.mp4",
                size=1,
                created_at=start + timedelta(seconds=i),
            )
            for i in reversed(range(DEFAULT_MAX_ENTRIES))
        ]
        path.write_text(
            "\n".join(e.model_dump_json(by_alias=True) for e in seeded) + "\n",
            encoding="utf-8",
        )

        index = ArchiveIndex(path)
        assert await index.load() == DEFAULT_MAX_ENTRIES

        newest = await index.append(service="youtube", filename="new.mp4", relative_path="youtube/new.mp4")

        assert await index.count() == DEFAULT_MAX_ENTRIES
        assert await index.get("seed00000000") is None
        assert await index.get("seed00000001") is not None
        assert await index.get(newest.id) == newest

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == DEFAULT_MAX_ENTRIES


# =============================================================================
# Listing
# =============================================================================


@pytest.mark.unit
class TestListEntries:
    """Pagination and filtering."""

    @pytest.mark.asyncio
    async def test_pages_cover_all_entries_once(self, archive_index):
        entries = await append_n(archive_index, 5)
        expected = [e.id for e in reversed(entries)]

        page1 = await archive_index.list_entries(limit=2, cursor=0)
        page2 = await archive_index.list_entries(limit=2, cursor=2)
        page3 = await archive_index.list_entries(limit=2, cursor=4)

        assert page1.has_more is True
        assert page2.has_more is True
        assert page3.has_more is False
        assert page1.total == page2.total == page3.total == 5

        seen = [e.id for page in (page1, page2, page3) for e in page.entries]
        assert seen == expected

        times = [e.created_at for page in (page1, page2, page3) for e in page.entries]
        assert times == sorted(times, reverse=True)

    @pytest.mark.asyncio
    async def test_filters_by_service(self, archive_index):
        await append_n(archive_index, 3, service="youtube")
        await append_n(archive_index, 2, service="soundcloud")

        listing = await archive_index.list_entries(service="soundcloud")

        assert listing.total == 2
        assert {e.service for e in listing.entries} == {"soundcloud"}

    @pytest.mark.asyncio
    async def test_unknown_service_is_empty(self, archive_index):
        await append_n(archive_index, 2)
        listing = await archive_index.list_entries(service="vimeo")
        assert listing.entries == []
        assert listing.total == 0
        assert listing.has_more is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, -5])
    async def test_non_positive_limit_uses_default(self, archive_index, limit):
        listing = await archive_index.list_entries(limit=limit)
        assert listing.limit == DEFAULT_PAGE_SIZE

    @pytest.mark.asyncio
    async def test_negative_cursor_starts_at_zero(self, archive_index):
        await append_n(archive_index, 3)
        listing = await archive_index.list_entries(cursor=-3)
        assert listing.cursor == 0
        assert len(listing.entries) == 3

    @pytest.mark.asyncio
    async def test_cursor_past_end(self, archive_index):
        await append_n(archive_index, 3)
        listing = await archive_index.list_entries(cursor=10)
        assert listing.entries == []
        assert listing.has_more is False

    @pytest.mark.asyncio
    async def test_get_unknown_id(self, archive_index):
        assert await archive_index.get("nope") is None


# =============================================================================
# Persistence
# =============================================================================


@pytest.mark.unit
class TestIndexPersistence:
    """JSON lines file and reload."""

    @pytest.mark.asyncio
    async def test_reload_restores_entries(self, archive_index):
        entries = await append_n(archive_index, 4)

        restarted = ArchiveIndex(archive_index.path)
        assert await restarted.load() == 4

        listing = await restarted.list_entries()
        assert listing.entries == list(reversed(entries))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("separator", ["\u2028", "\u2029", "\x85", "\x1c", "\x1e", "\r"])
    async def test_reload_keeps_names_with_unicode_line_breaks(self, archive_index, separator):
        await archive_index.append(service="youtube", filename="ok.mp4", relative_path="youtube/ok.mp4")
        odd = await archive_index.append(
            service="youtube",
            filename=f"a{separator}b.mp4",
            relative_path=f"youtube/a{separator}b.mp4",
        )

        restarted = ArchiveIndex(archive_index.path)
        assert await restarted.load() == 2

        reloaded = await restarted.get(odd.id)
        assert reloaded.filename == f"a{separator}b.mp4"

    @pytest.mark.asyncio
    async def test_file_is_json_lines_with_camel_case(self, archive_index):
        await append_n(archive_index, 2)

        lines = archive_index.path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        record = json.loads(lines[0])
        assert {"id", "service", "filename", "relativePath", "size", "mime", "createdAt"} == set(record)

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, temp_dir):
        index = ArchiveIndex(temp_dir / "nothing.jsonl")
        assert await index.load() == 0

    @pytest.mark.asyncio
    async def test_corrupt_file_is_empty_catalog(self, temp_dir):
        path = temp_dir / "index.jsonl"
        path.write_text('{"id": "ok"}\nnot json at all\n', encoding="utf-8")

        index = ArchiveIndex(path)
        assert await index.load() == 0

        # The catalog stays usable
        await append_n(index, 1)
        assert await index.count() == 1

    @pytest.mark.asyncio
    async def test_blank_lines_ignored(self, archive_index):
        await append_n(archive_index, 2)
        content = archive_index.path.read_text(encoding="utf-8")
        archive_index.path.write_text("\n" + content.replace("\n", "\n\n"), encoding="utf-8")

        assert await ArchiveIndex(archive_index.path).load() == 2

    @pytest.mark.asyncio
    async def test_save_writes_current_entries(self, archive_index):
        await append_n(archive_index, 2)
        archive_index.path.unlink()

        await archive_index.save()

        assert await ArchiveIndex(archive_index.path).load() == 2


# =============================================================================
# stat_file
# =============================================================================


@pytest.mark.unit
class TestStatFile:
    """Size and creation time of archived files."""

    @pytest.mark.asyncio
    async def test_existing_file(self, temp_dir):
        path = temp_dir / "clip.mp4"
        path.write_bytes(b"12345")

        stats = await ArchiveIndex.stat_file(path)

        assert stats.size == 5
        assert stats.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_missing_file(self, temp_dir):
        assert await ArchiveIndex.stat_file(temp_dir / "missing") is None
