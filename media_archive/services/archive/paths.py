"""Name sanitizing and placement helpers for archived files."""

import asyncio
import itertools
import os
import posixpath
import re
from pathlib import Path
from typing import Iterator, Optional

PART_SUFFIX = ".part"
FALLBACK_FILENAME = "download"
MAX_DIR_NAME_LENGTH = 100
MAX_FILENAME_LENGTH = 200
# Common filesystem limit for one path component, in bytes
MAX_NAME_BYTES = 255
# Room left for a " (9999)" counter and the temporary suffix
MAX_FILENAME_BYTES = MAX_NAME_BYTES - len(" (9999)") - len(PART_SUFFIX)
# Longer "extensions" are treated as part of the name
MAX_EXTENSION_LENGTH = 16

_MULTI_DOT = re.compile(r"\.{2,}")
_LEADING_DOTS_AND_SLASHES = re.compile(r"^[./\\]+")
_RESERVED_DIR_CHARS = re.compile(r'[<>:"|?*\x00-\x1f]')
_RESERVED_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_dir_name(name: Optional[str]) -> Optional[str]:
    """Turn a user supplied directory name into a safe relative path.

    Normalizes the path, converts backslashes, collapses dot runs, strips
    leading dots and slashes, replaces reserved and control characters with
    "_" and truncates to 100 characters.

    Returns:
        The sanitized name, or None when nothing usable is left
    """
    if not name or not isinstance(name, str):
        return None

    sanitized = posixpath.normpath(name)
    # normpath drops a trailing separator, which the stored override keeps
    if name.endswith("/") and not sanitized.endswith("/"):
        sanitized += "/"
    sanitized = sanitized.replace("\\", "/")
    sanitized = _MULTI_DOT.sub(".", sanitized)
    sanitized = _LEADING_DOTS_AND_SLASHES.sub("", sanitized)
    sanitized = _RESERVED_DIR_CHARS.sub("_", sanitized)
    sanitized = sanitized[:MAX_DIR_NAME_LENGTH]

    if not sanitized or sanitized in (".", ".."):
        return None
    return sanitized


def climbs_out(name: str) -> bool:
    """True when the normalized name starts with a ".." segment."""
    normalized = posixpath.normpath(name.replace("\\", "/"))
    return normalized == ".." or normalized.startswith("../")


def sanitize_filename(filename: Optional[str]) -> str:
    """Make a filename safe to create inside a single directory."""
    cleaned = _RESERVED_FILENAME_CHARS.sub("_", filename or "")
    cleaned = _MULTI_DOT.sub(".", cleaned)
    cleaned = _truncate_filename(cleaned)

    if not cleaned.strip(". "):
        return FALLBACK_FILENAME
    return cleaned


def _truncate_filename(filename: str) -> str:
    """Shorten the stem so the name fits both caps, keeping the extension.

    The character cap is MAX_FILENAME_LENGTH. The byte cap is
    MAX_FILENAME_BYTES of UTF-8, so disambiguated and temporary names still
    fit in one path component.
    """
    if len(filename) <= MAX_FILENAME_LENGTH and len(filename.encode("utf-8")) <= MAX_FILENAME_BYTES:
        return filename

    stem, ext = os.path.splitext(filename)
    if len(ext) > MAX_EXTENSION_LENGTH:
        stem, ext = filename, ""

    stem = stem[: MAX_FILENAME_LENGTH - len(ext)]
    byte_budget = MAX_FILENAME_BYTES - len(ext.encode("utf-8"))
    # Cut on a character boundary
    stem = stem.encode("utf-8")[:byte_budget].decode("utf-8", errors="ignore")
    return stem + ext


def candidate_names(filename: str) -> Iterator[str]:
    """Yield filename, then "name (1).ext", "name (2).ext", ..."""
    stem, ext = os.path.splitext(filename)
    yield filename
    for counter in itertools.count(1):
        yield f"{stem} ({counter}){ext}"


def part_path_for(final_path: Path) -> Path:
    """Temporary path a file is written to before its atomic commit."""
    return final_path.with_name(final_path.name + PART_SUFFIX)


def _resolves_within(path: Path, parent: Path) -> bool:
    resolved = Path(path).resolve()
    resolved_parent = Path(parent).resolve()
    return resolved != resolved_parent and resolved.is_relative_to(resolved_parent)


async def is_within(path: Path, parent: Path) -> bool:
    """True when path resolves strictly inside parent.

    Resolving follows symlinks on disk, so it runs in a worker thread.
    """
    return await asyncio.to_thread(_resolves_within, path, parent)
