"""faber - a project scaffolding CLI with installable agent extensions."""

__version__ = "0.1.0"
