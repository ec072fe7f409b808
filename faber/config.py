"""Configuration management for faber.

Loads configuration from:
1. .faber/config.toml (found in the current or a parent directory)
2. Environment variables (overrides, .env supported)
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from faber.extensions.catalog import CACHE_DURATION_SECONDS, DEFAULT_CATALOG_URL

logger = logging.getLogger(__name__)

CONFIG_DIR = ".faber"
CONFIG_FILE = "config.toml"


@dataclass
class CatalogConfig:
    """Remote extension catalog settings."""

    url: str = DEFAULT_CATALOG_URL
    cache_seconds: int = CACHE_DURATION_SECONDS
    timeout: float = 30.0


@dataclass
class ExtensionsConfig:
    """Extension install settings."""

    # Agents to render commands for when none are detected or passed with --ai
    default_agents: list[str] = field(default_factory=list)


@dataclass
class FaberConfig:
    """Main configuration container."""

    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    extensions: ExtensionsConfig = field(default_factory=ExtensionsConfig)
    log_level: str = "WARNING"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FaberConfig:
        """Create FaberConfig from dictionary."""
        catalog_data = data.get("catalog", {})
        extensions_data = data.get("extensions", {})

        return cls(
            catalog=CatalogConfig(**catalog_data),
            extensions=ExtensionsConfig(**extensions_data),
            log_level=str(data.get("log_level", "WARNING")),
        )


def find_config_file(start: Path | None = None) -> Path | None:
    """Find .faber/config.toml in the start directory or its parents.

    Returns:
        Path to config.toml or None if not found.
    """
    current = (start or Path.cwd()).resolve()

    for directory in [current, *current.parents]:
        config_path = directory / CONFIG_DIR / CONFIG_FILE
        if config_path.exists():
            return config_path

    return None


def load_config(config_path: Path | str | None = None) -> FaberConfig:
    """Load configuration from file and environment.

    Args:
        config_path: Optional explicit path to config.toml

    Returns:
        FaberConfig with merged settings.
    """
    load_dotenv()

    config_data: dict[str, Any] = {}

    if config_path is None:
        config_path = find_config_file()

    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            try:
                with open(path, "rb") as f:
                    config_data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                logger.warning("Ignoring invalid config file %s: %s", path, e)

    env_overrides = {
        "catalog": {
            "url": os.getenv("FABER_CATALOG_URL"),
            "cache_seconds": _int_or_none(os.getenv("FABER_CATALOG_CACHE_SECONDS")),
        },
    }

    for section, values in env_overrides.items():
        if not isinstance(config_data.get(section), dict):
            config_data[section] = {}
        for key, value in values.items():
            if value is not None:
                config_data[section][key] = value

    log_level = os.getenv("FABER_LOG_LEVEL")
    if log_level:
        config_data["log_level"] = log_level

    return FaberConfig.from_dict(config_data)


def _int_or_none(value: str | None) -> int | None:
    """Convert string to int, or return None."""
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


# Global config instance (lazy loaded)
_config: FaberConfig | None = None


def get_config() -> FaberConfig:
    """Get the global configuration instance (loaded once, cached)."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> FaberConfig:
    """Force reload of configuration."""
    global _config
    _config = load_config()
    return _config
