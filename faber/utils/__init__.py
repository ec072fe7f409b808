"""Filesystem and git collaborators for the faber CLI."""
