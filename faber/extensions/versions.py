"""Semantic version comparison and constraint specifiers.

Versions are compared on their first three dotted components; missing
components count as 0. A specifier is a comma-separated list of
constraints that must all hold, e.g. ``">=0.1.0,<1.0.0"``.
"""

from __future__ import annotations

import re
from typing import Callable

from faber.extensions.errors import CompatibilityError, Err, Ok, Result

_LEADING_DIGITS = re.compile(r"^\s*v?(\d+)")

# Two-character operators come first so ">=" is never read as ">".
CONSTRAINT_OPERATORS: list[tuple[str, Callable[[int], bool]]] = [
    (">=", lambda cmp: cmp >= 0),
    ("<=", lambda cmp: cmp <= 0),
    ("!=", lambda cmp: cmp != 0),
    ("==", lambda cmp: cmp == 0),
    (">", lambda cmp: cmp > 0),
    ("<", lambda cmp: cmp < 0),
]


def _component(part: str) -> int:
    match = _LEADING_DIGITS.match(part)
    return int(match.group(1)) if match else 0


def version_tuple(version: str) -> tuple[int, int, int]:
    """Parse a version into exactly three integer components.

    Non-numeric suffixes (``1.0.0-beta``) are ignored and unparsable
    components count as 0.
    """
    parts = version.strip().split(".")[:3]
    values = [_component(p) for p in parts]
    values.extend([0] * (3 - len(values)))
    return values[0], values[1], values[2]


def compare_versions(a: str, b: str) -> int:
    """Compare two versions, most significant component first.

    Returns:
        Negative if a < b, 0 if equal, positive if a > b.
    """
    for pa, pb in zip(version_tuple(a), version_tuple(b)):
        if pa != pb:
            return pa - pb
    return 0


def satisfies_constraint(version: str, constraint: str) -> bool:
    """Check a single constraint such as ``">=1.2.0"`` or a bare ``"1.2.0"``."""
    trimmed = constraint.strip()
    for prefix, check in CONSTRAINT_OPERATORS:
        if trimmed.startswith(prefix):
            return check(compare_versions(version, trimmed[len(prefix):]))
    return compare_versions(version, trimmed) == 0


def satisfies(version: str, specifier: str) -> bool:
    """Check that every constraint of a comma-separated specifier holds.

    Empty segments (``">=1.0.0,"``) are ignored.
    """
    constraints = [c.strip() for c in specifier.split(",") if c.strip()]
    return all(satisfies_constraint(version, c) for c in constraints)


def check_version(version: str, specifier: str) -> Result[None, CompatibilityError]:
    """Like :func:`satisfies`, but returns a ``compatibility`` failure."""
    if satisfies(version, specifier):
        return Ok(None)
    return Err(CompatibilityError(required=specifier, actual=version))
