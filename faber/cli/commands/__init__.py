"""CLI command modules for faber."""

from faber.cli.commands.extensions import extension_app

__all__ = ["extension_app"]
