"""Install, remove and inspect extensions in a faber project.

The guards at the top of this module are pure functions over the registry
and manifest values. ``ExtensionManager`` strings them together with the
filesystem collaborators in ``faber.utils.fs`` as straight-line pipelines:
each step returns an ``Err`` to abort, and the registry file is only
rewritten once every guard has passed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml

from faber import __version__
from faber.extensions.catalog import Catalog, SearchResult, get_extension_info, search_extensions
from faber.extensions.config import ConfigContext, load_extension_config
from faber.extensions.errors import (
    AlreadyInstalledError,
    CompatibilityError,
    DocumentParseError,
    Err,
    ExtensionError,
    FsError,
    ManifestIoError,
    NotAProjectError,
    NotFoundError,
    NotInstalledError,
    Ok,
    RegistryIoError,
    Result,
    UnsupportedAgentError,
    ValidationError,
)
from faber.extensions.hooks import (
    HookEntry,
    HooksConfig,
    active_hooks,
    hook_entries_from_manifest,
    hooks_config_from_dict,
    hooks_config_to_dict,
    register_hook,
    unregister_hooks,
)
from faber.extensions.manifest import MANIFEST_FILE, Manifest, load_manifest
from faber.extensions.registrar import (
    AGENT_FORMATS,
    AgentFormat,
    get_agent_format,
    render_command_for_agent,
)
from faber.extensions.registry import (
    ExtensionEntry,
    Registry,
    add_extension,
    empty_registry,
    get_extension,
    list_extensions,
    parse_registry,
    remove_extension,
    serialize_registry,
)
from faber.extensions.versions import check_version, compare_versions
from faber.utils.fs import copy_tree, read_text, remove_file, remove_tree, write_text, write_text_atomic

logger = logging.getLogger(__name__)

PROJECT_DIR = ".faber"
EXTENSIONS_DIR = "extensions"
REGISTRY_FILE = ".registry"
HOOKS_FILE = "hooks.yml"
CACHE_DIR = ".cache"

# Never copied from an extension source into the project
COPY_IGNORE = (".git", "__pycache__", ".DS_Store")


# =============================================================================
# Guards
# =============================================================================


def check_compatibility(actual_version: str, required: str) -> Result[None, CompatibilityError]:
    return check_version(actual_version, required)


def check_not_installed(registry: Registry, ext_id: str) -> Result[None, AlreadyInstalledError]:
    if ext_id in registry.extensions:
        return Err(AlreadyInstalledError(id=ext_id))
    return Ok(None)


def check_is_installed(registry: Registry, ext_id: str) -> Result[ExtensionEntry, NotInstalledError]:
    entry = get_extension(registry, ext_id)
    if isinstance(entry, Err):
        return Err(NotInstalledError(id=ext_id))
    return entry


def build_registry_entry(manifest: Manifest, source: str, now: datetime | None = None) -> ExtensionEntry:
    """Registry record for ``manifest``, stamped with the current UTC time."""
    stamp = (now or datetime.now(timezone.utc)).isoformat()
    return ExtensionEntry(version=manifest.version, source=source, installed_at=stamp)


# =============================================================================
# Paths
# =============================================================================


def extensions_root(project_root: Path) -> Path:
    return project_root / PROJECT_DIR / EXTENSIONS_DIR


def extension_dir(project_root: Path, ext_id: str) -> Path:
    return extensions_root(project_root) / ext_id


def registry_path(project_root: Path) -> Path:
    return extensions_root(project_root) / REGISTRY_FILE


def hooks_path(project_root: Path) -> Path:
    return extensions_root(project_root) / HOOKS_FILE


def commands_target_path(project_root: Path, agent_format: AgentFormat, command_name: str) -> Path:
    """Where a rendered command lands for one agent."""
    return project_root / agent_format.directory / f"{command_name}{agent_format.file_extension}"


# =============================================================================
# Updates
# =============================================================================


@dataclass(frozen=True)
class UpdateAvailable:
    id: str
    current: str
    available: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "current": self.current, "available": self.available}


def find_available_updates(registry: Registry, catalog: Catalog) -> list[UpdateAvailable]:
    """Installed extensions whose catalog version is newer.

    Extensions missing from the catalog are skipped; that is a valid state,
    not an error.
    """
    updates: list[UpdateAvailable] = []
    for ext_id, entry in sorted(list_extensions(registry)):
        listed = catalog.extensions.get(ext_id)
        if listed is None:
            continue
        if compare_versions(listed.version, entry.version) > 0:
            updates.append(UpdateAvailable(id=ext_id, current=entry.version, available=listed.version))
    return updates


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class AddResult:
    id: str
    version: str
    files_created: int
    agents: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "version": self.version,
            "files_created": self.files_created,
            "agents": list(self.agents),
        }


@dataclass(frozen=True)
class RemoveResult:
    id: str
    version: str
    files_removed: int = 0
    kept_config: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "version": self.version,
            "files_removed": self.files_removed,
            "kept_config": self.kept_config,
        }


@dataclass(frozen=True)
class ExtensionDetails:
    """Catalog listing plus the locally installed version, if any."""

    result: SearchResult
    installed_version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {**self.result.to_dict(), "installed_version": self.installed_version}


@dataclass
class _AddState:
    """Side effects of an in-flight add, undone on failure."""

    prior_registry: Registry
    ext_dir: Path | None = None
    # Files already under ext_dir before the copy; None when the add created it.
    preexisting: set[Path] | None = None
    written: list[Path] = field(default_factory=list)


def _files_under(path: Path) -> set[Path]:
    return {p for p in path.rglob("*") if p.is_file()}


# =============================================================================
# Agents
# =============================================================================


def detect_installed_agents(project_root: Path) -> list[str]:
    """Agents whose configuration root (``.claude``, ``.github``...) exists."""
    detected = [name for name, fmt in AGENT_FORMATS.items() if (project_root / fmt.root).is_dir()]
    logger.debug("Detected agents in %s: %s", project_root, detected or "none")
    return detected


def resolve_agents(
    project_root: Path,
    requested: Sequence[str] | None,
    default_agents: Sequence[str] = (),
) -> Result[list[tuple[str, AgentFormat]], UnsupportedAgentError]:
    """Pick the agents to render for.

    An explicit request wins; otherwise agents already set up in the
    project, falling back to ``default_agents``.
    """
    names = list(requested or []) or detect_installed_agents(project_root) or list(default_agents)

    resolved: list[tuple[str, AgentFormat]] = []
    for name in dict.fromkeys(names):
        fmt = get_agent_format(name)
        if isinstance(fmt, Err):
            return fmt
        resolved.append((name, fmt.value))
    return Ok(resolved)


# =============================================================================
# Manager
# =============================================================================


class ExtensionManager:
    """Manage the extensions installed in one faber project.

    Example:
        >>> manager = ExtensionManager(Path("."))
        >>> result = manager.add(Path("./my-extension"), agents=["claude"])
        >>> if result.is_ok():
        ...     print(result.value.files_created)
        >>> manager.remove("my-extension")
    """

    def __init__(
        self,
        project_root: Path,
        cli_version: str = __version__,
        default_agents: Sequence[str] = (),
    ):
        """Initialize the manager.

        Args:
            project_root: Directory holding ``.faber/``.
            cli_version: Host tool version checked against ``requires``.
            default_agents: Agents to render for when none are requested
                and none are detected.
        """
        self.project_root = Path(project_root)
        self.cli_version = cli_version
        self.default_agents = tuple(default_agents)

    @property
    def cache_dir(self) -> Path:
        return extensions_root(self.project_root) / CACHE_DIR

    # -------------------------------------------------------------------------
    # Collaborators
    # -------------------------------------------------------------------------

    def check_project(self) -> Result[None, NotAProjectError]:
        if not (self.project_root / PROJECT_DIR).is_dir():
            return Err(NotAProjectError(path=str(self.project_root)))
        return Ok(None)

    def load_registry(self) -> Result[Registry, RegistryIoError]:
        """Read the registry; a missing or corrupt file reads as empty."""
        path = registry_path(self.project_root)
        text = read_text(path)
        if isinstance(text, Err):
            if isinstance(text.error, NotFoundError):
                return Ok(empty_registry())
            return Err(RegistryIoError(path=str(path), message=text.error.message))
        return Ok(parse_registry(text.value))

    def save_registry(self, registry: Registry) -> Result[None, RegistryIoError]:
        path = registry_path(self.project_root)
        written = write_text_atomic(path, serialize_registry(registry))
        if isinstance(written, Err):
            return Err(RegistryIoError(path=str(path), message=written.error.message))
        logger.info("Wrote registry with %d extension(s)", len(registry.extensions))
        return Ok(None)

    def load_manifest(
        self, source_dir: Path
    ) -> Result[Manifest, ManifestIoError | DocumentParseError | ValidationError]:
        path = source_dir / MANIFEST_FILE
        text = read_text(path)
        if isinstance(text, Err):
            if isinstance(text.error, NotFoundError):
                return Err(ManifestIoError(path=str(path), message=f"No {MANIFEST_FILE} found"))
            return Err(ManifestIoError(path=str(path), message=text.error.message))
        return load_manifest(text.value)

    def load_hooks(self) -> dict[str, tuple[HookEntry, ...]]:
        """Read ``hooks.yml``; missing or unparsable reads as no hooks."""
        path = hooks_path(self.project_root)
        text = read_text(path)
        if isinstance(text, Err):
            return {}
        try:
            data = yaml.safe_load(text.value)
        except yaml.YAMLError as e:
            logger.debug("Ignoring unparsable %s: %s", path, e)
            return {}
        return hooks_config_from_dict(data)

    def save_hooks(self, config: HooksConfig) -> Result[None, FsError]:
        content = yaml.safe_dump(hooks_config_to_dict(config), sort_keys=False)
        return write_text(hooks_path(self.project_root), content)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def add(
        self, source: Path, agents: Sequence[str] | None = None
    ) -> Result[AddResult, ExtensionError]:
        """Install the extension at ``source``.

        Args:
            source: Local directory containing ``extension.yml``.
            agents: Agents to render commands for; detected when omitted.

        Returns:
            ``AddResult`` or the first failure. Failures after the registry
            write restore the previous registry.
        """
        source = Path(source).resolve()

        project = self.check_project()
        if isinstance(project, Err):
            return project

        registry = self.load_registry()
        if isinstance(registry, Err):
            return registry

        manifest = self.load_manifest(source)
        if isinstance(manifest, Err):
            return manifest
        ext = manifest.value

        targets = resolve_agents(self.project_root, agents, self.default_agents)
        if isinstance(targets, Err):
            return targets

        compatible = check_compatibility(self.cli_version, ext.requires.faber_version)
        if isinstance(compatible, Err):
            return compatible

        not_installed = check_not_installed(registry.value, ext.id)
        if isinstance(not_installed, Err):
            return not_installed

        entry = build_registry_entry(ext, str(source))
        saved = self.save_registry(add_extension(registry.value, ext.id, entry))
        if isinstance(saved, Err):
            return saved

        state = _AddState(prior_registry=registry.value)
        installed = self._install_files(source, ext, targets.value, state)
        if isinstance(installed, Err):
            self._rollback(state)
            return installed

        logger.info(
            "Installed %s %s (%d file(s), agents: %s)",
            ext.id,
            ext.version,
            installed.value,
            ", ".join(name for name, _ in targets.value) or "none",
        )
        return Ok(
            AddResult(
                id=ext.id,
                version=ext.version,
                files_created=installed.value,
                agents=tuple(name for name, _ in targets.value),
            )
        )

    def _install_files(
        self,
        source: Path,
        ext: Manifest,
        targets: list[tuple[str, AgentFormat]],
        state: _AddState,
    ) -> Result[int, ExtensionError]:
        """Copy the extension, render its commands and register its hooks."""
        ext_dir = extension_dir(self.project_root, ext.id)
        state.ext_dir = ext_dir
        if ext_dir.is_dir():
            state.preexisting = _files_under(ext_dir)

        files = 0
        if source == ext_dir.resolve():
            logger.debug("Installing %s in place from %s", ext.id, ext_dir)
        else:
            copied = copy_tree(source, ext_dir, ignore=COPY_IGNORE)
            if isinstance(copied, Err):
                return copied
            files = copied.value

        for cmd in ext.commands:
            cmd_path = source / cmd.file
            cmd_source = read_text(cmd_path)
            if isinstance(cmd_source, Err):
                if isinstance(cmd_source.error, NotFoundError):
                    return Err(ManifestIoError(path=str(cmd_path), message="Command file not found"))
                return Err(ManifestIoError(path=str(cmd_path), message=cmd_source.error.message))

            for agent_name, fmt in targets:
                rendered = render_command_for_agent(
                    cmd_source.value, agent_name, fmt, ext.id, command_name=cmd.name
                )
                target = self.project_root / rendered.relative_path
                written = write_text(target, rendered.content)
                if isinstance(written, Err):
                    return written
                state.written.append(target)
                files += 1
                logger.debug("Rendered %s for %s -> %s", cmd.name, agent_name, rendered.relative_path)

        entries = hook_entries_from_manifest(ext.id, ext.hooks)
        if entries:
            hooks = self.load_hooks()
            for event, hook in entries:
                hooks = register_hook(hooks, event, hook)
            saved = self.save_hooks(hooks)
            if isinstance(saved, Err):
                return saved
            logger.debug("Registered %d hook(s) for %s", len(entries), ext.id)

        return Ok(files)

    def _rollback(self, state: _AddState) -> None:
        restored = self.save_registry(state.prior_registry)
        if isinstance(restored, Err):
            logger.warning("Could not restore registry: %s", restored.error.message)

        for path in state.written:
            removed = remove_file(path)
            if isinstance(removed, Err):
                logger.warning("Could not remove %s: %s", path, removed.error.message)

        if state.ext_dir is None:
            return
        if state.preexisting is None:
            removed_dir = remove_tree(state.ext_dir)
            if isinstance(removed_dir, Err):
                logger.warning("Could not remove %s: %s", state.ext_dir, removed_dir.error.message)
            return

        # The directory predates this add; only drop files the copy introduced.
        for path in sorted(_files_under(state.ext_dir) - state.preexisting):
            removed = remove_file(path)
            if isinstance(removed, Err):
                logger.warning("Could not remove %s: %s", path, removed.error.message)

    def remove(self, ext_id: str, keep_config: bool = False) -> Result[RemoveResult, ExtensionError]:
        """Uninstall ``ext_id``.

        Args:
            ext_id: Installed extension id.
            keep_config: Leave ``.faber/extensions/<id>/`` in place.

        Returns:
            ``RemoveResult`` or the first failure. File cleanup after the
            registry write never fails the operation.
        """
        project = self.check_project()
        if isinstance(project, Err):
            return project

        registry = self.load_registry()
        if isinstance(registry, Err):
            return registry

        entry = check_is_installed(registry.value, ext_id)
        if isinstance(entry, Err):
            return entry

        updated = remove_extension(registry.value, ext_id)
        if isinstance(updated, Err):
            return Err(NotInstalledError(id=ext_id))

        saved = self.save_registry(updated.value)
        if isinstance(saved, Err):
            return saved

        hooks = self.load_hooks()
        if any(h.extension == ext_id for entries in hooks.values() for h in entries):
            unregistered = self.save_hooks(unregister_hooks(hooks, ext_id))
            if isinstance(unregistered, Err):
                logger.warning("Could not update hooks: %s", unregistered.error.message)

        ext_dir = extension_dir(self.project_root, ext_id)
        removed = self._remove_rendered_commands(ext_dir)

        if not keep_config:
            cleaned = remove_tree(ext_dir)
            if isinstance(cleaned, Err):
                logger.warning("Could not remove %s: %s", ext_dir, cleaned.error.message)

        logger.info("Removed %s %s", ext_id, entry.value.version)
        return Ok(
            RemoveResult(
                id=ext_id,
                version=entry.value.version,
                files_removed=removed,
                kept_config=keep_config,
            )
        )

    def _remove_rendered_commands(self, ext_dir: Path) -> int:
        """Delete every agent's rendered copy of the installed commands."""
        manifest = self.load_manifest(ext_dir)
        if isinstance(manifest, Err):
            logger.debug("No readable manifest in %s, skipping command cleanup", ext_dir)
            return 0

        removed = 0
        for cmd in manifest.value.commands:
            for fmt in AGENT_FORMATS.values():
                path = commands_target_path(self.project_root, fmt, cmd.name)
                deleted = remove_file(path)
                if isinstance(deleted, Err):
                    logger.warning("Could not remove %s: %s", path, deleted.error.message)
                elif deleted.value:
                    removed += 1
        return removed

    def list_installed(self) -> Result[list[tuple[str, ExtensionEntry]], ExtensionError]:
        """Installed extensions sorted by id."""
        project = self.check_project()
        if isinstance(project, Err):
            return project

        registry = self.load_registry()
        if isinstance(registry, Err):
            return registry
        return Ok(sorted(list_extensions(registry.value)))

    def search(
        self,
        catalog: Catalog,
        query: str | None = None,
        tag: str | None = None,
        author: str | None = None,
        verified_only: bool = False,
    ) -> list[SearchResult]:
        return search_extensions(catalog, query=query, tag=tag, author=author, verified_only=verified_only)

    def info(self, catalog: Catalog, ext_id: str) -> Result[ExtensionDetails, ExtensionError]:
        """Catalog details for ``ext_id``, with the installed version when present."""
        found = get_extension_info(catalog, ext_id)
        if isinstance(found, Err):
            return found

        installed_version = None
        if self.check_project().is_ok():
            registry = self.load_registry()
            if isinstance(registry, Ok):
                entry = registry.value.extensions.get(ext_id)
                installed_version = entry.version if entry else None

        return Ok(ExtensionDetails(result=found.value, installed_version=installed_version))

    def check_updates(self, catalog: Catalog) -> Result[list[UpdateAvailable], ExtensionError]:
        project = self.check_project()
        if isinstance(project, Err):
            return project

        registry = self.load_registry()
        if isinstance(registry, Err):
            return registry
        return Ok(find_available_updates(registry.value, catalog))

    def extension_config(
        self, ext_id: str, environ: Mapping[str, str] | None = None
    ) -> dict[str, Any]:
        """Effective configuration of an installed extension."""
        ext_dir = extension_dir(self.project_root, ext_id)
        manifest = self.load_manifest(ext_dir)
        defaults = manifest.value.defaults if isinstance(manifest, Ok) else {}
        return load_extension_config(ext_dir, ext_id, defaults=defaults, environ=environ)

    def hooks_for(
        self, event: str, environ: Mapping[str, str] | None = None
    ) -> Result[list[HookEntry], NotAProjectError]:
        """Hooks that should run for ``event`` right now."""
        project = self.check_project()
        if isinstance(project, Err):
            return project

        return Ok(
            active_hooks(
                self.load_hooks(),
                event,
                lambda ext_id: ConfigContext(self.extension_config(ext_id, environ)),
                environ,
            )
        )
