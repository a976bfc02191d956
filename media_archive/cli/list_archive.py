#!/usr/bin/env python
"""List archived media files.

Usage:
    # Default (first 50, newest first)
    python -m media_archive.cli.list_archive

    # Only one service
    python -m media_archive.cli.list_archive --service youtube

    # With offset for pagination
    python -m media_archive.cli.list_archive --limit 20 --offset 40

    # Show the archive configuration
    python -m media_archive.cli.list_archive --config
"""

import argparse
import asyncio
import sys
from typing import Optional

from media_archive.lib.config_manager import config as settings
from media_archive.services.archive import ArchiveContext, create_archive_context


def format_size(size: int) -> str:
    """Human readable byte count."""
    if size < 1024:
        return f"{size} B"
    value = size / 1024
    for unit in ("KB", "MB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


async def show_config(context: ArchiveContext):
    """Print the archive root and service directory overrides."""
    config = await context.config_store.get()

    print(f"\n{'='*80}")
    print("Archive configuration")
    print(f"{'='*80}\n")
    print(f"Config file: {context.config_store.path}")
    print(f"Index file:  {context.index.path}")
    print(f"Root:        {config.archive_root or '(disabled)'}")

    if config.service_dirs:
        print("\nService directories:")
        for service, directory in sorted(config.service_dirs.items()):
            print(f"    {service} -> {directory}")
    else:
        print("\nNo service directory overrides.")

    print("\nSettings:")
    for key, value in settings.get_all().items():
        print(f"    {key}={value}")
    print()


async def list_archive(
    context: ArchiveContext,
    service: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
):
    """List archived files.

    Args:
        context: Loaded archive context
        service: Only list entries of this service
        limit: Maximum number of entries to show
        offset: Number of entries to skip (for pagination)
    """
    listing = await context.index.list_entries(service=service, limit=limit, cursor=offset)

    title = f"Archived files for {service}" if service else "Archived files"
    print(f"\n{'='*80}")
    print(title)
    print(f"{'='*80}\n")

    print(f"Total entries: {listing.total}")
    if not listing.entries:
        print("[INFO] No archived files found.\n")
        return

    print(f"Showing: {offset + 1} to {offset + len(listing.entries)}\n")
    print(f"{'='*80}\n")

    for i, entry in enumerate(listing.entries, offset + 1):
        print(f"[{i}] {entry.filename}")
        print(f"    ID: {entry.id}")
        print(f"    Service: {entry.service}")
        print(f"    Path: {entry.relative_path}")
        print(f"    Size: {format_size(entry.size)} ({entry.mime})")
        print(f"    Archived: {entry.created_at.isoformat()}")
        print()

    print(f"{'='*80}")
    print(f"Showing {len(listing.entries)} of {listing.total} entries")
    if listing.has_more:
        print(f"Next page: --offset {offset + listing.limit}")
    print(f"{'='*80}\n")


async def run(args: argparse.Namespace):
    context = create_archive_context()
    await context.load()

    if args.config:
        await show_config(context)
    else:
        await list_archive(context, service=args.service, limit=args.limit, offset=args.offset)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="List archived media files")
    parser.add_argument(
        "--service",
        "-s",
        help="Only list files archived for this service",
    )
    parser.add_argument(
        "--limit",
        "-l",
        type=int,
        default=50,
        help="Maximum number of entries to show (default: 50)",
    )
    parser.add_argument(
        "--offset",
        "-o",
        type=int,
        default=0,
        help="Number of entries to skip (default: 0)",
    )
    parser.add_argument(
        "--config",
        action="store_true",
        help="Show the archive configuration instead of the catalog",
    )

    args = parser.parse_args()

    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\n[INFO] Interrupted")
        sys.exit(1)


if __name__ == "__main__":
    main()
