"""Layered configuration for installed extensions.

An extension's effective configuration is merged, lowest priority first,
from:

1. the ``defaults`` mapping of its manifest
2. ``.faber/extensions/<id>/<id>-config.yml`` (project, committed)
3. ``.faber/extensions/<id>/<id>-config.local.yml`` (local, ignored by git)
4. ``FABER_<ID>_*`` environment variables
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

logger = logging.getLogger(__name__)

Config = Mapping[str, Any]


def deep_merge(base: Config, override: Config) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base`` without mutating either.

    Nested mappings merge; any other value in ``override`` (lists included)
    replaces the base value.
    """
    result: dict[str, Any] = dict(base)
    for key, over_val in override.items():
        base_val = base.get(key)
        if isinstance(base_val, Mapping) and isinstance(over_val, Mapping):
            result[key] = deep_merge(base_val, over_val)
        else:
            result[key] = over_val
    return result


def merge_configs(defaults: Config, project: Config, local: Config, env: Config) -> dict[str, Any]:
    return deep_merge(deep_merge(deep_merge(defaults, project), local), env)


def env_prefix(extension_id: str) -> str:
    return f"FABER_{extension_id.replace('-', '_').upper()}_"


def env_to_config(extension_id: str, environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Collect ``FABER_<ID>_A_B=value`` variables as ``{"a": {"b": "value"}}``."""
    env = os.environ if environ is None else environ
    prefix = env_prefix(extension_id)
    config: dict[str, Any] = {}

    for key, value in env.items():
        if not key.startswith(prefix) or len(key) == len(prefix):
            continue

        parts = key[len(prefix):].lower().split("_")
        current = config
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[parts[-1]] = value

    return config


def _walk(config: Config, key_path: str) -> tuple[bool, Any]:
    current: Any = config
    for key in key_path.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return False, None
        current = current[key]
    return True, current


def get_value(config: Config, key_path: str, default: Any = None) -> Any:
    found, value = _walk(config, key_path)
    return value if found else default


def has_value(config: Config, key_path: str) -> bool:
    """True when every segment of ``key_path`` exists, whatever the value."""
    found, _ = _walk(config, key_path)
    return found


class ConfigContext:
    """Condition context backed by a configuration mapping."""

    def __init__(self, config: Config):
        self.config = config

    def config_has(self, key_path: str) -> bool:
        return has_value(self.config, key_path)

    def config_get(self, key_path: str) -> Any:
        return get_value(self.config, key_path)


def _load_yaml_layer(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        logger.debug("Ignoring unreadable config %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def config_file_paths(ext_dir: Path, extension_id: str) -> tuple[Path, Path]:
    """Project and local config file paths for an installed extension."""
    return (
        ext_dir / f"{extension_id}-config.yml",
        ext_dir / f"{extension_id}-config.local.yml",
    )


def load_extension_config(
    ext_dir: Path,
    extension_id: str,
    defaults: Config | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Build the effective configuration of an installed extension.

    Missing or unparsable files contribute empty layers.
    """
    project_path, local_path = config_file_paths(ext_dir, extension_id)
    return merge_configs(
        defaults or {},
        _load_yaml_layer(project_path),
        _load_yaml_layer(local_path),
        env_to_config(extension_id, environ),
    )
