"""Protocol definitions for archive byte sources and output capture.

Collaborators (download relays, transcoding processes) depend on these
shapes rather than on the concrete writer classes.
"""

from pathlib import Path
from typing import (
    AsyncIterable,
    AsyncIterator,
    Iterable,
    Optional,
    Protocol,
    Union,
    runtime_checkable,
)

ByteSource = Union[AsyncIterable[bytes], Iterable[bytes]]


async def aiter_chunks(source: ByteSource) -> AsyncIterator[bytes]:
    """Iterate a sync or async byte source asynchronously."""
    if hasattr(source, "__aiter__"):
        async for chunk in source:
            yield chunk
    else:
        for chunk in source:
            yield chunk


@runtime_checkable
class OutputCapture(Protocol):
    """Four-phase handle for output that arrives as discrete writes.

    Used for producers that emit bytes over time instead of exposing a
    single readable stream, such as an external transcoding process.
    """

    async def initialize(self) -> bool:
        """Create the target directory and open the temporary file.

        Idempotent: later calls are no-ops.

        Returns:
            True when the capture is ready to accept writes
        """
        ...

    async def write(self, chunk: bytes) -> None:
        """Append a chunk. Dropped silently before initialize()."""
        ...

    async def finalize(self) -> Optional[Path]:
        """Commit the file and record it in the index.

        Returns:
            Final path, or None if nothing was committed
        """
        ...

    async def abort(self) -> None:
        """Discard the temporary file without committing."""
        ...
