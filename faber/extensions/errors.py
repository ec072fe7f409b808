"""Tagged failure values for the extension system.

Every expected failure is returned, not raised: functions hand back either
``Ok(value)`` or ``Err(error)`` where ``error`` is one of the frozen
dataclasses below. Each failure carries an explicit ``tag`` that survives
into ``--json`` output unchanged.
"""

from __future__ import annotations

import dataclasses
from dataclasses import asdict, dataclass
from typing import Any, Generic, Literal, TypeVar, Union, assert_never

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed result."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True


Result = Union[Ok[T], Err[E]]


# =============================================================================
# Failure variants
# =============================================================================


@dataclass(frozen=True)
class ValidationError:
    """A manifest field failed a presence or format check."""

    field: str
    message: str
    tag: Literal["validation"] = dataclasses.field(default="validation", init=False)


@dataclass(frozen=True)
class DocumentParseError:
    """A source document could not be parsed into a mapping."""

    message: str
    tag: Literal["document_parse"] = dataclasses.field(default="document_parse", init=False)


@dataclass(frozen=True)
class CompatibilityError:
    """The host tool version does not satisfy the required specifier."""

    required: str
    actual: str
    tag: Literal["compatibility"] = dataclasses.field(default="compatibility", init=False)


@dataclass(frozen=True)
class AlreadyInstalledError:
    id: str
    tag: Literal["already_installed"] = dataclasses.field(default="already_installed", init=False)


@dataclass(frozen=True)
class NotInstalledError:
    id: str
    tag: Literal["not_installed"] = dataclasses.field(default="not_installed", init=False)


@dataclass(frozen=True)
class NotFoundError:
    id: str
    tag: Literal["not_found"] = dataclasses.field(default="not_found", init=False)


@dataclass(frozen=True)
class InvalidConditionError:
    """A hook condition string did not match the condition grammar."""

    raw: str
    tag: Literal["invalid_condition"] = dataclasses.field(default="invalid_condition", init=False)


@dataclass(frozen=True)
class UnsupportedAgentError:
    agent: str
    tag: Literal["unsupported_agent"] = dataclasses.field(default="unsupported_agent", init=False)


@dataclass(frozen=True)
class InvalidUrlError:
    url: str
    message: str
    tag: Literal["invalid_url"] = dataclasses.field(default="invalid_url", init=False)


@dataclass(frozen=True)
class NetworkError:
    message: str
    tag: Literal["network"] = dataclasses.field(default="network", init=False)


@dataclass(frozen=True)
class CatalogIoError:
    message: str
    tag: Literal["catalog_io"] = dataclasses.field(default="catalog_io", init=False)


@dataclass(frozen=True)
class NotAProjectError:
    path: str
    tag: Literal["not_a_project"] = dataclasses.field(default="not_a_project", init=False)


@dataclass(frozen=True)
class RegistryIoError:
    path: str
    message: str
    tag: Literal["registry_io"] = dataclasses.field(default="registry_io", init=False)


@dataclass(frozen=True)
class ManifestIoError:
    path: str
    message: str
    tag: Literal["manifest_io"] = dataclasses.field(default="manifest_io", init=False)


@dataclass(frozen=True)
class FsError:
    """A filesystem boundary call failed."""

    path: str
    message: str
    tag: Literal["fs"] = dataclasses.field(default="fs", init=False)


ExtensionError = Union[
    ValidationError,
    DocumentParseError,
    CompatibilityError,
    AlreadyInstalledError,
    NotInstalledError,
    NotFoundError,
    InvalidConditionError,
    UnsupportedAgentError,
    InvalidUrlError,
    NetworkError,
    CatalogIoError,
    NotAProjectError,
    RegistryIoError,
    ManifestIoError,
    FsError,
]


def describe_error(error: ExtensionError) -> str:
    """Render a one-line, human-readable message for a failure."""
    if isinstance(error, ValidationError):
        return f"Validation error [{error.field}]: {error.message}"
    elif isinstance(error, DocumentParseError):
        return f"Could not parse document: {error.message}"
    elif isinstance(error, CompatibilityError):
        return f"Incompatible: requires faber {error.required}, current is {error.actual}"
    elif isinstance(error, AlreadyInstalledError):
        return f'Extension "{error.id}" is already installed'
    elif isinstance(error, NotInstalledError):
        return f'Extension "{error.id}" is not installed'
    elif isinstance(error, NotFoundError):
        return f'Extension "{error.id}" not found in catalog'
    elif isinstance(error, InvalidConditionError):
        return f"Invalid hook condition: {error.raw!r}"
    elif isinstance(error, UnsupportedAgentError):
        return f"Unsupported agent: {error.agent}"
    elif isinstance(error, InvalidUrlError):
        return f"Invalid URL {error.url!r}: {error.message}"
    elif isinstance(error, NetworkError):
        return f"Network error: {error.message}"
    elif isinstance(error, CatalogIoError):
        return f"Catalog error: {error.message}"
    elif isinstance(error, NotAProjectError):
        return f"Not a faber project: {error.path} (run 'faber init' to create one)"
    elif isinstance(error, RegistryIoError):
        return f"Registry error at {error.path}: {error.message}"
    elif isinstance(error, ManifestIoError):
        return f"Manifest error at {error.path}: {error.message}"
    elif isinstance(error, FsError):
        return f"File system error at {error.path}: {error.message}"
    else:
        assert_never(error)


def error_to_dict(error: ExtensionError) -> dict[str, Any]:
    """Machine-readable form of a failure: its tag plus every field."""
    data = asdict(error)
    tag = data.pop("tag")
    return {"tag": tag, **data}
