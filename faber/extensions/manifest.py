"""Extension manifest schema for faber extensions.

Defines the structure and validation for extension manifests
(``extension.yml``). Validation is all-or-nothing: the checks run in a fixed
order and the first failing field is reported.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping

import yaml

from faber.extensions.errors import (
    DocumentParseError,
    Err,
    Ok,
    Result,
    ValidationError,
)

SCHEMA_VERSION = "1.0"
COMMAND_NAMESPACE = "faber"
MANIFEST_FILE = "extension.yml"

EXTENSION_ID_RE = re.compile(r"^[a-z0-9-]+$")
SEMVER_RE = re.compile(r"^\d+\.\d+\.\d+$")
COMMAND_NAME_RE = re.compile(rf"^{COMMAND_NAMESPACE}\.[a-z0-9-]+\.[a-z0-9-]+$")

MISSING = "Missing required field"


@dataclass(frozen=True)
class ManifestCommand:
    """A command the extension provides: its full name and source file."""

    name: str
    file: str

    @property
    def short_name(self) -> str:
        """The trailing segment of ``faber.<ext>.<cmd>``."""
        return self.name.rsplit(".", 1)[-1]


@dataclass(frozen=True)
class ExtensionInfo:
    id: str
    name: str
    version: str
    description: str


@dataclass(frozen=True)
class Requirements:
    faber_version: str


@dataclass(frozen=True)
class Manifest:
    """Validated extension manifest.

    Attributes:
        schema_version: Always ``SCHEMA_VERSION``.
        extension: Identity block (id, name, version, description).
        requires: Host tool version constraint.
        commands: Provided commands, in declaration order.
        hooks: Opaque hooks map, passed through unvalidated.
        defaults: Opaque default configuration for the extension.
    """

    schema_version: str
    extension: ExtensionInfo
    requires: Requirements
    commands: tuple[ManifestCommand, ...]
    hooks: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    defaults: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def id(self) -> str:
        return self.extension.id

    @property
    def version(self) -> str:
        return self.extension.version


# =============================================================================
# Parsing
# =============================================================================


def parse_document(text: str) -> Result[dict[str, Any], DocumentParseError]:
    """Parse YAML text into a raw mapping.

    Anything other than a mapping at the root (a list, a scalar, an empty
    document) is a ``document_parse`` failure.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        return Err(DocumentParseError(message=str(e)))

    if not isinstance(data, dict):
        return Err(DocumentParseError(message="YAML must parse to a mapping"))
    return Ok(data)


# =============================================================================
# Validation
# =============================================================================


def _fail(field_path: str, message: str) -> Err[ValidationError]:
    return Err(ValidationError(field=field_path, message=message))


def _text(value: Any) -> str:
    """Normalize a scalar to text; YAML turns ``1.0`` into a float."""
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value if isinstance(value, str) else ""


def _check_schema_version(data: dict[str, Any], _: dict[str, Any]) -> Err[ValidationError] | None:
    raw = data.get("schema_version")
    if raw is None:
        return _fail("schema_version", MISSING)
    if _text(raw) != SCHEMA_VERSION:
        return _fail(
            "schema_version",
            f"Unsupported version: {raw} (expected {SCHEMA_VERSION})",
        )
    return None


def _check_extension(data: dict[str, Any], acc: dict[str, Any]) -> Err[ValidationError] | None:
    ext = data.get("extension")
    if not isinstance(ext, dict):
        return _fail("extension", MISSING)

    ext_id = ext.get("id")
    if not ext_id:
        return _fail("extension.id", MISSING)
    if not isinstance(ext_id, str) or not EXTENSION_ID_RE.match(ext_id):
        return _fail(
            "extension.id",
            f'Invalid format: "{ext_id}". Must match {EXTENSION_ID_RE.pattern}',
        )

    name = _text(ext.get("name"))
    if not name:
        return _fail("extension.name", MISSING)

    version = ext.get("version")
    if not isinstance(version, str) or not SEMVER_RE.match(version):
        return _fail("extension.version", f'Invalid version: "{version}"')

    description = _text(ext.get("description"))
    if not description:
        return _fail("extension.description", MISSING)

    acc["extension"] = ExtensionInfo(
        id=ext_id, name=name, version=version, description=description
    )
    return None


def _check_requires(data: dict[str, Any], acc: dict[str, Any]) -> Err[ValidationError] | None:
    requires = data.get("requires")
    if not isinstance(requires, dict):
        return _fail("requires", MISSING)

    specifier = _text(requires.get(f"{COMMAND_NAMESPACE}_version"))
    if not specifier:
        return _fail(f"requires.{COMMAND_NAMESPACE}_version", MISSING)

    acc["requires"] = Requirements(faber_version=specifier)
    return None


def _check_command(raw: Any, index: int) -> Result[ManifestCommand, ValidationError]:
    path = f"provides.commands[{index}]"
    if not isinstance(raw, dict):
        return _fail(path, "Command entry must be a mapping")

    name = raw.get("name")
    file = raw.get("file")
    if not name:
        return _fail(f"{path}.name", MISSING)
    if not file:
        return _fail(f"{path}.file", MISSING)
    if not isinstance(name, str) or not COMMAND_NAME_RE.match(name):
        return _fail(
            f"{path}.name",
            f'Invalid format: "{name}". Must match {COMMAND_NAMESPACE}.{{ext}}.{{cmd}}',
        )
    if not isinstance(file, str):
        return _fail(f"{path}.file", "Must be a relative file path")
    return Ok(ManifestCommand(name=name, file=file))


def _check_provides(data: dict[str, Any], acc: dict[str, Any]) -> Err[ValidationError] | None:
    provides = data.get("provides")
    if not isinstance(provides, dict):
        return _fail("provides", MISSING)

    raw_commands = provides.get("commands")
    if not isinstance(raw_commands, list) or not raw_commands:
        return _fail("provides.commands", "Must provide at least one command")

    commands: list[ManifestCommand] = []
    for index, raw in enumerate(raw_commands):
        result = _check_command(raw, index)
        if isinstance(result, Err):
            return result
        commands.append(result.value)

    acc["commands"] = tuple(commands)
    return None


_CHECKS: list[Callable[[dict[str, Any], dict[str, Any]], Err[ValidationError] | None]] = [
    _check_schema_version,
    _check_extension,
    _check_requires,
    _check_provides,
]


def validate_manifest(data: dict[str, Any]) -> Result[Manifest, ValidationError]:
    """Validate a parsed manifest mapping.

    Args:
        data: Raw mapping from :func:`parse_document`.

    Returns:
        ``Ok(Manifest)`` or ``Err(ValidationError)`` for the first failing
        field, named by its dotted path.
    """
    acc: dict[str, Any] = {}
    for check in _CHECKS:
        failure = check(data, acc)
        if failure is not None:
            return failure

    hooks = data.get("hooks")
    defaults = data.get("defaults")
    return Ok(
        Manifest(
            schema_version=SCHEMA_VERSION,
            extension=acc["extension"],
            requires=acc["requires"],
            commands=acc["commands"],
            hooks=MappingProxyType(dict(hooks) if isinstance(hooks, dict) else {}),
            defaults=MappingProxyType(dict(defaults) if isinstance(defaults, dict) else {}),
        )
    )


def load_manifest(text: str) -> Result[Manifest, DocumentParseError | ValidationError]:
    """Parse and validate manifest text in one step."""
    parsed = parse_document(text)
    if isinstance(parsed, Err):
        return parsed
    return validate_manifest(parsed.value)
