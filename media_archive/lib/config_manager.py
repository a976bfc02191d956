"""Configuration manager with hierarchy: .env / environment → defaults.

Usage:
    from media_archive.lib.config_manager import config

    root = config.get("MEDIA_ARCHIVE_ROOT")
    bound = config.get("ARCHIVE_TEE_MAX_PENDING_CHUNKS")  # coerced to int
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from media_archive.lib.defaults import DEFAULTS, get_default

logger = logging.getLogger(__name__)

PROJECT_MARKERS = (".git", "pyproject.toml")
TRUTHY = ("true", "1", "yes", "on")


def _find_project_root(start_path: Optional[Path] = None) -> Path:
    """Walk up the directory tree to the first folder holding a project marker."""
    current = (start_path or Path.cwd()).resolve()

    while current != current.parent:
        if any((current / marker).exists() for marker in PROJECT_MARKERS):
            return current
        current = current.parent

    raise FileNotFoundError("No project root found in any parent directory")


def _coerce_type(value: str, default: Any) -> Any:
    """Convert an environment string to the type of its default.

    Unparseable numbers fall back to the default itself.
    """
    if default is None or isinstance(default, str):
        return value
    if isinstance(default, bool):
        return value.strip().lower() in TRUTHY

    try:
        return type(default)(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unparseable value {value!r}, using {default!r}")
        return default


class ConfigManager:
    """Resolves configuration keys from the environment, then DEFAULTS.

    The project's .env file is loaded once, on first construction. Values
    already present in the process environment are left untouched.
    """

    def __init__(self, load_env: bool = True):
        self._env_loaded = False
        if load_env:
            self._load_env()

    def _load_env(self) -> None:
        """Load .env from the project root."""
        if self._env_loaded:
            return

        try:
            env_path = _find_project_root() / ".env"
            if env_path.exists():
                load_dotenv(dotenv_path=env_path, override=False)
                logger.debug(f"Loaded .env from {env_path}")
            else:
                logger.debug(f"No .env file found at {env_path}")
        except FileNotFoundError:
            logger.debug("Could not find project root, .env not loaded")

        self._env_loaded = True

    def get(self, key: str, default: Any = None) -> Any:
        """Resolve a key: environment first, then the given default or DEFAULTS."""
        fallback = get_default(key) if default is None else default
        raw = os.getenv(key)
        return fallback if raw is None else _coerce_type(raw, fallback)

    def get_all(self) -> dict[str, Any]:
        """Get every known configuration value.

        Returns:
            Dictionary of all config keys and their resolved values
        """
        return {key: self.get(key) for key in DEFAULTS}


# Singleton instance
config = ConfigManager()
