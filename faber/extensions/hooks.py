"""Extension hooks and their condition language.

A hook condition is a tiny, closed expression over project configuration
or environment variables::

    config.<dotted.path> is set
    config.<dotted.path> == "value"      (or !=, single or double quotes)
    env.<NAME> is set
    env.<NAME> == "value"                (or !=)

Conditions are parsed once into one of six frozen variants and evaluated
against a ``ConditionContext``. Nothing here executes extension code.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Mapping, Protocol, Union, assert_never

from faber.extensions.errors import Err, InvalidConditionError, Ok, Result

logger = logging.getLogger(__name__)


# =============================================================================
# Conditions
# =============================================================================


@dataclass(frozen=True)
class ConfigIsSet:
    key_path: str
    tag: Literal["config_is_set"] = field(default="config_is_set", init=False)


@dataclass(frozen=True)
class ConfigEquals:
    key_path: str
    value: str
    tag: Literal["config_equals"] = field(default="config_equals", init=False)


@dataclass(frozen=True)
class ConfigNotEquals:
    key_path: str
    value: str
    tag: Literal["config_not_equals"] = field(default="config_not_equals", init=False)


@dataclass(frozen=True)
class EnvIsSet:
    var_name: str
    tag: Literal["env_is_set"] = field(default="env_is_set", init=False)


@dataclass(frozen=True)
class EnvEquals:
    var_name: str
    value: str
    tag: Literal["env_equals"] = field(default="env_equals", init=False)


@dataclass(frozen=True)
class EnvNotEquals:
    var_name: str
    value: str
    tag: Literal["env_not_equals"] = field(default="env_not_equals", init=False)


HookCondition = Union[
    ConfigIsSet, ConfigEquals, ConfigNotEquals, EnvIsSet, EnvEquals, EnvNotEquals
]

CONFIG_IS_SET_RE = re.compile(r"^config\.([a-z0-9_.]+)\s+is\s+set$", re.IGNORECASE)
CONFIG_CMP_RE = re.compile(
    r"""^config\.([a-z0-9_.]+)\s*(==|!=)\s*["']([^"']+)["']$""", re.IGNORECASE
)
ENV_IS_SET_RE = re.compile(r"^env\.([A-Z0-9_]+)\s+is\s+set$", re.IGNORECASE)
ENV_CMP_RE = re.compile(
    r"""^env\.([A-Z0-9_]+)\s*(==|!=)\s*["']([^"']+)["']$""", re.IGNORECASE
)


def _config_cmp(m: re.Match[str]) -> HookCondition:
    if m.group(2) == "==":
        return ConfigEquals(key_path=m.group(1), value=m.group(3))
    return ConfigNotEquals(key_path=m.group(1), value=m.group(3))


def _env_cmp(m: re.Match[str]) -> HookCondition:
    if m.group(2) == "==":
        return EnvEquals(var_name=m.group(1), value=m.group(3))
    return EnvNotEquals(var_name=m.group(1), value=m.group(3))


# Tried in order; the first full match wins.
CONDITION_PARSERS: list[tuple[re.Pattern[str], Callable[[re.Match[str]], HookCondition]]] = [
    (CONFIG_IS_SET_RE, lambda m: ConfigIsSet(key_path=m.group(1))),
    (CONFIG_CMP_RE, _config_cmp),
    (ENV_IS_SET_RE, lambda m: EnvIsSet(var_name=m.group(1))),
    (ENV_CMP_RE, _env_cmp),
]


def parse_condition(raw: str) -> Result[HookCondition, InvalidConditionError]:
    """Parse a condition string.

    The whole (trimmed) string must match one form; leading or trailing
    text is an ``invalid_condition`` failure carrying the trimmed input.
    """
    trimmed = raw.strip()
    for pattern, build in CONDITION_PARSERS:
        match = pattern.match(trimmed)
        if match:
            return Ok(build(match))
    return Err(InvalidConditionError(raw=trimmed))


class ConditionContext(Protocol):
    """Configuration lookups a condition is evaluated against."""

    def config_has(self, key_path: str) -> bool: ...

    def config_get(self, key_path: str) -> Any: ...


def normalize_value(value: Any) -> str:
    """String form used for equality: booleans become ``"true"``/``"false"``."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def evaluate_condition(
    condition: HookCondition,
    context: ConditionContext,
    environ: Mapping[str, str] | None = None,
) -> bool:
    """Evaluate a parsed condition.

    Args:
        condition: Parsed condition.
        context: Configuration lookups for ``config.*`` conditions.
        environ: Environment for ``env.*`` conditions (default: ``os.environ``).
    """
    env = os.environ if environ is None else environ

    if isinstance(condition, ConfigIsSet):
        return context.config_has(condition.key_path)
    elif isinstance(condition, ConfigEquals):
        return normalize_value(context.config_get(condition.key_path)) == condition.value
    elif isinstance(condition, ConfigNotEquals):
        return normalize_value(context.config_get(condition.key_path)) != condition.value
    elif isinstance(condition, EnvIsSet):
        return condition.var_name in env
    elif isinstance(condition, EnvEquals):
        return env.get(condition.var_name, "") == condition.value
    elif isinstance(condition, EnvNotEquals):
        return env.get(condition.var_name, "") != condition.value
    else:
        assert_never(condition)


# =============================================================================
# Hook entries
# =============================================================================

_TRUE_STRINGS = frozenset({"true", "yes", "on", "1"})
_FALSE_STRINGS = frozenset({"false", "no", "off", "0"})


def _flag(value: Any, default: bool) -> bool:
    """Coerce a YAML flag, accepting quoted booleans; unrecognized values give ``default``."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    if isinstance(value, int):
        return value != 0
    return default


@dataclass(frozen=True)
class HookEntry:
    """One extension command bound to a lifecycle event."""

    extension: str
    command: str
    enabled: bool = True
    optional: bool = True
    prompt: str = ""
    description: str = ""
    condition: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "extension": self.extension,
            "command": self.command,
            "enabled": self.enabled,
            "optional": self.optional,
            "prompt": self.prompt,
            "description": self.description,
            "condition": self.condition,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], extension: str | None = None) -> HookEntry | None:
        """Build an entry, or ``None`` when the command is missing."""
        command = data.get("command")
        ext = extension or data.get("extension")
        if not isinstance(command, str) or not command or not isinstance(ext, str) or not ext:
            return None
        condition = data.get("condition")
        return cls(
            extension=ext,
            command=command,
            enabled=_flag(data.get("enabled"), True),
            optional=_flag(data.get("optional"), True),
            prompt=str(data.get("prompt") or ""),
            description=str(data.get("description") or ""),
            condition=str(condition) if condition else None,
        )


HooksConfig = Mapping[str, tuple[HookEntry, ...]]


def filter_enabled_hooks(hooks: tuple[HookEntry, ...] | list[HookEntry]) -> tuple[HookEntry, ...]:
    return tuple(h for h in hooks if h.enabled)


def register_hook(config: HooksConfig, event: str, entry: HookEntry) -> dict[str, tuple[HookEntry, ...]]:
    """Add ``entry`` under ``event``, replacing the same extension's entry in place."""
    existing = config.get(event, ())
    if any(h.extension == entry.extension for h in existing):
        updated = tuple(entry if h.extension == entry.extension else h for h in existing)
    else:
        updated = (*existing, entry)
    return {**config, event: updated}


def unregister_hooks(config: HooksConfig, extension_id: str) -> dict[str, tuple[HookEntry, ...]]:
    """Drop every entry of ``extension_id``; events left empty disappear."""
    result: dict[str, tuple[HookEntry, ...]] = {}
    for event, hooks in config.items():
        kept = tuple(h for h in hooks if h.extension != extension_id)
        if kept:
            result[event] = kept
    return result


def hook_entries_from_manifest(
    extension_id: str, hooks: Mapping[str, Any]
) -> list[tuple[str, HookEntry]]:
    """Turn a manifest's opaque ``hooks`` map into ``(event, entry)`` pairs."""
    entries: list[tuple[str, HookEntry]] = []
    for event, raw in hooks.items():
        if not isinstance(raw, dict):
            logger.debug("Skipping hook %r of %s: not a mapping", event, extension_id)
            continue
        entry = HookEntry.from_dict(raw, extension=extension_id)
        if entry is None:
            logger.debug("Skipping hook %r of %s: no command", event, extension_id)
            continue
        entries.append((str(event), entry))
    return entries


def hooks_config_from_dict(data: Any) -> dict[str, tuple[HookEntry, ...]]:
    """Read a persisted hooks config; malformed entries are dropped."""
    if not isinstance(data, dict):
        return {}
    hooks = data.get("hooks", {})
    if not isinstance(hooks, dict):
        return {}

    config: dict[str, tuple[HookEntry, ...]] = {}
    for event, raw_entries in hooks.items():
        if not isinstance(raw_entries, list):
            continue
        entries = [HookEntry.from_dict(e) for e in raw_entries if isinstance(e, dict)]
        kept = tuple(e for e in entries if e is not None)
        if kept:
            config[str(event)] = kept
    return config


def hooks_config_to_dict(config: HooksConfig) -> dict[str, Any]:
    return {
        "hooks": {event: [h.to_dict() for h in hooks] for event, hooks in config.items()}
    }


def active_hooks(
    config: HooksConfig,
    event: str,
    context_for: Callable[[str], ConditionContext],
    environ: Mapping[str, str] | None = None,
) -> list[HookEntry]:
    """Enabled hooks for ``event`` whose condition holds.

    Args:
        config: Registered hooks.
        event: Lifecycle event name.
        context_for: Builds the condition context for an extension id.
        environ: Environment for ``env.*`` conditions.
    """
    active: list[HookEntry] = []
    for hook in filter_enabled_hooks(config.get(event, ())):
        if hook.condition is None:
            active.append(hook)
            continue

        parsed = parse_condition(hook.condition)
        if isinstance(parsed, Err):
            logger.warning(
                "Ignoring hook %s of %s: invalid condition %r",
                hook.command,
                hook.extension,
                parsed.error.raw,
            )
            continue

        if evaluate_condition(parsed.value, context_for(hook.extension), environ):
            active.append(hook)
    return active
