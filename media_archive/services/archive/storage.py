"""Async filesystem helpers shared by the archive components."""

import logging
from pathlib import Path

import aiofiles
import aiofiles.os
from nanoid import generate

logger = logging.getLogger(__name__)


async def write_text_atomic(path: Path, text: str) -> None:
    """Replace the file at path with text in a single rename.

    The content is written to a sibling temporary file first, so readers
    never observe a half-written document.

    Raises:
        OSError: If the directory cannot be created or the write fails
    """
    path = Path(path)
    await aiofiles.os.makedirs(path.parent, exist_ok=True)

    tmp_path = path.with_name(f".{path.name}.{generate(size=8)}.tmp")
    replaced = False
    try:
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(text)
        await aiofiles.os.replace(tmp_path, path)
        replaced = True
    finally:
        if not replaced:
            await remove_quietly(tmp_path)


async def remove_quietly(path: Path) -> None:
    """Delete a file, ignoring any failure."""
    try:
        await aiofiles.os.remove(path)
    except OSError as e:
        if not isinstance(e, FileNotFoundError):
            logger.debug(f"Could not remove {path}: {e}")
