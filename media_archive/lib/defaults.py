"""Default configuration values for the archive service.

All hardcoded defaults live here. The service runs with these defaults;
archiving stays disabled until an archive root is configured.

Config hierarchy: .env / environment → these defaults
"""

from typing import Any

# =============================================================================
# Configuration Defaults
# =============================================================================

DEFAULTS: dict[str, Any] = {
    # -------------------------------------------------------------------------
    # Archive storage
    # -------------------------------------------------------------------------
    "MEDIA_ARCHIVE_ROOT": "",  # Empty = archiving disabled
    "ARCHIVE_CONFIG_PATH": "./archive-config.json",
    "ARCHIVE_INDEX_PATH": "./archive-index.jsonl",
    "ARCHIVE_INDEX_MAX_ENTRIES": 10000,

    # -------------------------------------------------------------------------
    # Streaming
    # -------------------------------------------------------------------------
    "ARCHIVE_TEE_MAX_PENDING_CHUNKS": 64,
    "ARCHIVE_COPY_CHUNK_SIZE": 65536,

    # -------------------------------------------------------------------------
    # HTTP server
    # -------------------------------------------------------------------------
    "API_HOST": "0.0.0.0",
    "API_PORT": 8000,

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    "SERVICE_NAME": "media-archive",
    "LOG_LEVEL": "INFO",
}


def get_default(key: str) -> Any:
    """Get the default value for a configuration key.

    Args:
        key: Configuration key

    Returns:
        Default value, or None if the key is unknown
    """
    return DEFAULTS.get(key)
