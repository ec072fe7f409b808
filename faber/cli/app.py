"""faber CLI.

Main command-line interface: project setup and the extension sub-app.
"""

from pathlib import Path
from typing import Optional

import typer

from faber import __version__
from faber.cli.commands import extension_app
from faber.cli.output import console, print_error, print_info, print_success, print_warning, setup_logging
from faber.config import get_config
from faber.extensions.manager import extensions_root
from faber.utils.fs import ensure_dir
from faber.utils.git import git_available, git_init, is_git_repo

app = typer.Typer(
    name="faber",
    help="faber - project scaffolding with installable agent extensions",
    no_args_is_help=True,
)

app.add_typer(extension_app, name="extension")


@app.callback()
def callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging before any command runs."""
    setup_logging("DEBUG" if verbose else get_config().log_level)


@app.command()
def init(
    path: Optional[Path] = typer.Argument(None, help="Project directory (default: current directory)"),
    no_git: bool = typer.Option(False, "--no-git", help="Skip git repository initialization"),
) -> None:
    """Create a faber project.

    Examples:
        faber init
        faber init my-project --no-git
    """
    project_root = (path or Path.cwd()).resolve()

    created = ensure_dir(extensions_root(project_root))
    if created.is_err():
        print_error(f"Could not create {created.error.path}: {created.error.message}")
        raise typer.Exit(1)
    print_success(f"Initialized faber project in {project_root}")

    if no_git:
        return
    if is_git_repo(project_root):
        print_info("Already a git repository")
        return
    if not git_available():
        print_warning("git not found; skipping repository initialization")
        return

    initialized = git_init(project_root)
    if initialized.is_err():
        print_warning(f"git init failed: {initialized.error.message}")
        return
    print_success("Initialized git repository")


@app.command()
def version() -> None:
    """Show faber version."""
    console.print(f"faber v{__version__}")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
