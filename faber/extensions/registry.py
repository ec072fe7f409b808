"""Installed extension registry.

The registry is an immutable value: every mutation returns a new
``Registry`` and leaves the original untouched. It is persisted as JSON at
``.faber/extensions/.registry`` using snake_case keys and read back
leniently so that a damaged file degrades to "nothing installed".
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping

from faber.extensions.errors import Err, NotFoundError, Ok, Result

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"


@dataclass(frozen=True)
class ExtensionEntry:
    """Installation record for one extension."""

    version: str
    source: str
    installed_at: str


@dataclass(frozen=True)
class Registry:
    schema_version: str = SCHEMA_VERSION
    extensions: Mapping[str, ExtensionEntry] = field(
        default_factory=lambda: MappingProxyType({})
    )


def empty_registry() -> Registry:
    return Registry()


def _with_extensions(registry: Registry, extensions: dict[str, ExtensionEntry]) -> Registry:
    return replace(registry, extensions=MappingProxyType(extensions))


def add_extension(registry: Registry, ext_id: str, entry: ExtensionEntry) -> Registry:
    """Insert or overwrite the entry for ``ext_id``."""
    return _with_extensions(registry, {**registry.extensions, ext_id: entry})


def remove_extension(registry: Registry, ext_id: str) -> Result[Registry, NotFoundError]:
    if ext_id not in registry.extensions:
        return Err(NotFoundError(id=ext_id))
    remaining = {k: v for k, v in registry.extensions.items() if k != ext_id}
    return Ok(_with_extensions(registry, remaining))


def get_extension(registry: Registry, ext_id: str) -> Result[ExtensionEntry, NotFoundError]:
    entry = registry.extensions.get(ext_id)
    return Ok(entry) if entry is not None else Err(NotFoundError(id=ext_id))


def list_extensions(registry: Registry) -> list[tuple[str, ExtensionEntry]]:
    """All ``(id, entry)`` pairs. Order is not meaningful; sort for display."""
    return list(registry.extensions.items())


def is_installed(registry: Registry, ext_id: str) -> bool:
    return ext_id in registry.extensions


# =============================================================================
# Persistence
# =============================================================================


def _field_text(raw: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return str(value)
    return ""


def _from_dict(data: Any) -> Registry | None:
    if not isinstance(data, dict):
        return None

    raw_extensions = data.get("extensions", {})
    if raw_extensions is None:
        raw_extensions = {}
    if not isinstance(raw_extensions, dict):
        return None

    extensions: dict[str, ExtensionEntry] = {}
    for ext_id, raw in raw_extensions.items():
        if not isinstance(raw, dict):
            return None
        extensions[str(ext_id)] = ExtensionEntry(
            version=_field_text(raw, "version"),
            source=_field_text(raw, "source"),
            installed_at=_field_text(raw, "installed_at", "installedAt"),
        )

    schema_version = _field_text(data, "schema_version", "schemaVersion") or SCHEMA_VERSION
    return Registry(
        schema_version=schema_version,
        extensions=MappingProxyType(extensions),
    )


def parse_registry(text: str) -> Registry:
    """Parse a persisted registry, never failing.

    Unparsable JSON or a structurally invalid document yields an empty
    registry. Both ``installed_at`` and ``installedAt`` are accepted.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        logger.debug("Registry is not valid JSON, treating as empty")
        return empty_registry()

    registry = _from_dict(data)
    if registry is None:
        logger.debug("Registry has an unexpected shape, treating as empty")
        return empty_registry()
    return registry


def serialize_registry(registry: Registry) -> str:
    """Serialize to pretty-printed JSON with snake_case keys."""
    extensions = {
        ext_id: {
            "version": entry.version,
            "source": entry.source,
            "installed_at": entry.installed_at,
        }
        for ext_id, entry in registry.extensions.items()
    }
    payload = {"schema_version": registry.schema_version, "extensions": extensions}
    return json.dumps(payload, indent=2) + "\n"
