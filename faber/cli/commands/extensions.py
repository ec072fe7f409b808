"""Extension CLI commands for faber.

Install, remove and discover extensions for the current project.
"""

from pathlib import Path
from typing import NoReturn, Optional

import typer

from faber.cli.output import (
    console,
    print_error,
    print_info,
    print_json,
    print_key_value,
    print_success,
    print_table,
    print_warning,
)
from faber.config import get_config
from faber.extensions.catalog import Catalog, CatalogClient, resolve_catalog_url
from faber.extensions.errors import Err, ExtensionError, describe_error, error_to_dict
from faber.extensions.manager import ExtensionManager
from faber.extensions.registrar import AGENT_FORMATS

extension_app = typer.Typer(
    name="extension",
    help="Install, remove and discover extensions.",
    no_args_is_help=True,
)

JSON_OPTION = typer.Option(False, "--json", help="Output machine-readable JSON")
REFRESH_OPTION = typer.Option(False, "--refresh", help="Ignore the cached catalog")


def get_manager() -> ExtensionManager:
    """Get an extension manager for the current directory."""
    config = get_config()
    return ExtensionManager(Path.cwd(), default_agents=config.extensions.default_agents)


def get_catalog_client(manager: ExtensionManager, as_json: bool = False) -> CatalogClient:
    """Build the catalog client from configuration."""
    config = get_config()
    url = resolve_catalog_url(config.catalog.url)
    if isinstance(url, Err):
        fail(url.error, as_json)

    cache_dir = manager.cache_dir if manager.check_project().is_ok() else None
    return CatalogClient(
        url.value,
        cache_dir=cache_dir,
        cache_seconds=config.catalog.cache_seconds,
        timeout=config.catalog.timeout,
    )


def fail(error: ExtensionError, as_json: bool) -> NoReturn:
    """Report a failure and exit with status 1."""
    if as_json:
        print_json({"error": error_to_dict(error)})
    else:
        print_error(describe_error(error))
    raise typer.Exit(1)


def load_catalog(manager: ExtensionManager, refresh: bool, as_json: bool) -> Catalog:
    fetched = get_catalog_client(manager, as_json).fetch(force_refresh=refresh)
    if isinstance(fetched, Err):
        fail(fetched.error, as_json)
    return fetched.value


@extension_app.command("list")
def list_installed(as_json: bool = JSON_OPTION) -> None:
    """List installed extensions.

    Example:
        faber extension list
    """
    result = get_manager().list_installed()
    if isinstance(result, Err):
        fail(result.error, as_json)

    installed = result.value
    if as_json:
        print_json(
            [
                {
                    "id": ext_id,
                    "version": entry.version,
                    "source": entry.source,
                    "installed_at": entry.installed_at,
                }
                for ext_id, entry in installed
            ]
        )
        return

    if not installed:
        print_info("No extensions installed.")
        console.print("[dim]Install one with: faber extension add <path>[/dim]")
        return

    print_table(
        "Installed Extensions",
        ["ID", "Version", "Source", "Installed"],
        [[ext_id, e.version, e.source, e.installed_at] for ext_id, e in installed],
    )


@extension_app.command("add")
def add(
    source: Path = typer.Argument(..., help="Extension directory containing extension.yml"),
    ai: Optional[list[str]] = typer.Option(
        None,
        "--ai",
        help="Agent to render commands for (repeatable, default: detected agents)",
    ),
    as_json: bool = JSON_OPTION,
) -> None:
    """Install an extension from a local directory.

    Examples:
        faber extension add ./my-extension
        faber extension add ./my-extension --ai claude --ai gemini
    """
    result = get_manager().add(source, agents=ai or None)
    if isinstance(result, Err):
        fail(result.error, as_json)

    added = result.value
    if as_json:
        print_json(added.to_dict())
        return

    print_success(f"Installed {added.id} v{added.version} ({added.files_created} files)")
    if added.agents:
        print_info(f"Commands rendered for: {', '.join(added.agents)}")
    else:
        print_warning("No agents detected; commands were not rendered (use --ai)")


@extension_app.command("remove")
def remove(
    ext_id: str = typer.Argument(..., help="Installed extension id"),
    keep_config: bool = typer.Option(
        False,
        "--keep-config",
        help="Keep .faber/extensions/<id>/ and its configuration",
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    as_json: bool = JSON_OPTION,
) -> None:
    """Uninstall an extension.

    Example:
        faber extension remove my-extension --keep-config
    """
    if not yes and not as_json:
        if not typer.confirm(f"Remove extension '{ext_id}'?"):
            raise typer.Exit(0)

    result = get_manager().remove(ext_id, keep_config=keep_config)
    if isinstance(result, Err):
        fail(result.error, as_json)

    removed = result.value
    if as_json:
        print_json(removed.to_dict())
        return

    print_success(f"Removed {removed.id} v{removed.version}")
    if removed.kept_config:
        print_info(f"Configuration kept in .faber/extensions/{removed.id}/")


@extension_app.command("search")
def search(
    query: Optional[str] = typer.Argument(None, help="Text to match"),
    tag: Optional[str] = typer.Option(None, "--tag", "-t", help="Filter by tag"),
    author: Optional[str] = typer.Option(None, "--author", "-a", help="Filter by author"),
    verified: bool = typer.Option(False, "--verified", help="Only verified extensions"),
    refresh: bool = REFRESH_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Search the extension catalog.

    Examples:
        faber extension search lint
        faber extension search --tag testing --verified
    """
    manager = get_manager()
    catalog = load_catalog(manager, refresh, as_json)
    results = manager.search(catalog, query=query, tag=tag, author=author, verified_only=verified)

    if as_json:
        print_json([r.to_dict() for r in results])
        return

    if not results:
        print_info("No extensions found matching your criteria.")
        return

    print_table(
        "Extensions",
        ["ID", "Name", "Version", "Author", "Verified"],
        [[r.id, r.name, r.version, r.author, "yes" if r.verified else "no"] for r in results],
    )


@extension_app.command("info")
def info(
    ext_id: str = typer.Argument(..., help="Extension id"),
    refresh: bool = REFRESH_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Show catalog details for an extension.

    Example:
        faber extension info my-extension
    """
    manager = get_manager()
    catalog = load_catalog(manager, refresh, as_json)
    result = manager.info(catalog, ext_id)
    if isinstance(result, Err):
        fail(result.error, as_json)

    details = result.value
    if as_json:
        print_json(details.to_dict())
        return

    entry = details.result.entry
    print_key_value("Name", entry.name)
    print_key_value("ID", details.result.id)
    print_key_value("Version", entry.version)
    print_key_value("Author", entry.author)
    print_key_value("Description", entry.description)
    print_key_value("Tags", ", ".join(entry.tags) or "-")
    print_key_value("Verified", "yes" if entry.verified else "no")
    print_key_value("Installed", details.installed_version or "no")


@extension_app.command("update")
def update(
    refresh: bool = REFRESH_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Check installed extensions for newer catalog versions.

    Example:
        faber extension update --refresh
    """
    manager = get_manager()
    project = manager.check_project()
    if isinstance(project, Err):
        fail(project.error, as_json)

    catalog = load_catalog(manager, refresh, as_json)
    result = manager.check_updates(catalog)
    if isinstance(result, Err):
        fail(result.error, as_json)

    updates = result.value
    if as_json:
        print_json([u.to_dict() for u in updates])
        return

    if not updates:
        print_success("All extensions are up to date.")
        return

    print_table(
        "Updates Available",
        ["ID", "Current", "Available"],
        [[u.id, u.current, u.available] for u in updates],
    )
    console.print("\n[dim]Reinstall with: faber extension remove <id> && faber extension add <path>[/dim]")


@extension_app.command("hooks")
def hooks(
    event: str = typer.Argument(..., help="Lifecycle event, e.g. after_tasks"),
    as_json: bool = JSON_OPTION,
) -> None:
    """List the hooks that would run for an event.

    Example:
        faber extension hooks after_tasks
    """
    result = get_manager().hooks_for(event)
    if isinstance(result, Err):
        fail(result.error, as_json)

    active = result.value
    if as_json:
        print_json([h.to_dict() for h in active])
        return

    if not active:
        print_info(f"No active hooks for '{event}'.")
        return

    print_table(
        f"Hooks: {event}",
        ["Extension", "Command", "Optional", "Description"],
        [
            [h.extension, h.command, "yes" if h.optional else "no", h.description]
            for h in active
        ],
    )


@extension_app.command("agents")
def agents(as_json: bool = JSON_OPTION) -> None:
    """List the coding agents commands can be rendered for."""
    if as_json:
        print_json(
            {
                name: {
                    "directory": fmt.directory,
                    "format": fmt.output_kind,
                    "placeholder": fmt.placeholder,
                    "extension": fmt.file_extension,
                }
                for name, fmt in sorted(AGENT_FORMATS.items())
            }
        )
        return

    print_table(
        "Supported Agents",
        ["Agent", "Directory", "Format", "Placeholder"],
        [
            [name, fmt.directory, fmt.output_kind, fmt.placeholder]
            for name, fmt in sorted(AGENT_FORMATS.items())
        ],
    )
