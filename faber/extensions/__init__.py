"""Extension system for faber.

Extensions are directories holding an ``extension.yml`` manifest and the
command documents it declares. Installing one records it in the project
registry, copies its files to ``.faber/extensions/<id>/`` and renders each
command for every coding agent set up in the project.

Everything here returns ``Ok``/``Err`` values instead of raising for
expected failures; see ``faber.extensions.errors``. The orchestrator lives in
``faber.extensions.manager`` and is imported from there.
"""

from faber.extensions.catalog import Catalog, CatalogClient, CatalogEntry, SearchResult
from faber.extensions.errors import Err, ExtensionError, Ok, Result, describe_error, error_to_dict
from faber.extensions.hooks import HookEntry, evaluate_condition, parse_condition
from faber.extensions.manifest import Manifest, load_manifest, validate_manifest
from faber.extensions.registrar import AGENT_FORMATS, AgentFormat, render_command
from faber.extensions.registry import ExtensionEntry, Registry
from faber.extensions.versions import compare_versions, satisfies

__all__ = [
    "AGENT_FORMATS",
    "AgentFormat",
    "Catalog",
    "CatalogClient",
    "CatalogEntry",
    "Err",
    "ExtensionEntry",
    "ExtensionError",
    "HookEntry",
    "Manifest",
    "Ok",
    "Registry",
    "Result",
    "SearchResult",
    "compare_versions",
    "describe_error",
    "error_to_dict",
    "evaluate_condition",
    "load_manifest",
    "parse_condition",
    "render_command",
    "satisfies",
    "validate_manifest",
]
