"""Render extension commands into agent-specific command files.

Every extension command is written once, as markdown with a YAML
frontmatter block and a body using the canonical ``$ARGUMENTS``
placeholder. Each supported coding agent expects a slightly different
file: a directory, a file kind (markdown or TOML), a placeholder token and
a file extension. ``AGENT_FORMATS`` is the declarative table of those
conventions, and rendering is a pure function of (metadata, body, format,
extension id).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Literal

import yaml

from faber.extensions.errors import Err, Ok, Result, UnsupportedAgentError

CANONICAL_ARG_PLACEHOLDER = "$ARGUMENTS"
FRONTMATTER_DELIMITER = "---"

# Canonical layout: scripts referenced relative to the command source file.
SOURCE_SCRIPTS_PREFIX = "../../scripts/"
INSTALLED_SCRIPTS_PREFIX = ".faber/scripts/"

OutputKind = Literal["markdown", "toml"]
Frontmatter = dict[str, Any]


@dataclass(frozen=True)
class AgentFormat:
    """Output convention for one coding agent.

    Attributes:
        directory: Target directory, relative to the project root.
        output_kind: ``"markdown"`` or ``"toml"``.
        placeholder: Argument placeholder token the agent understands.
        file_extension: Extension of the written file, with the dot.
    """

    directory: str
    output_kind: OutputKind
    placeholder: str
    file_extension: str

    @property
    def root(self) -> str:
        """Top-level folder whose presence marks the agent as installed."""
        return PurePosixPath(self.directory).parts[0]


def _markdown(directory: str) -> AgentFormat:
    return AgentFormat(directory, "markdown", CANONICAL_ARG_PLACEHOLDER, ".md")


def _toml(directory: str) -> AgentFormat:
    return AgentFormat(directory, "toml", "{{args}}", ".toml")


AGENT_FORMATS: dict[str, AgentFormat] = {
    "amp": _markdown(".agents/commands"),
    "auggie": _markdown(".augment/rules"),
    "bob": _markdown(".bob/commands"),
    "claude": _markdown(".claude/commands"),
    "codebuddy": _markdown(".codebuddy/commands"),
    "copilot": _markdown(".github/agents"),
    "cursor": _markdown(".cursor/commands"),
    "gemini": _toml(".gemini/commands"),
    "kilocode": _markdown(".kilocode/rules"),
    "opencode": _markdown(".opencode/command"),
    "q": _markdown(".amazonq/prompts"),
    "qodercli": _markdown(".qoder/commands"),
    "qwen": _toml(".qwen/commands"),
    "roo": _markdown(".roo/rules"),
    "shai": _markdown(".shai/commands"),
    "windsurf": _markdown(".windsurf/workflows"),
}


@dataclass(frozen=True)
class CommandFile:
    """A rendered command, ready to be written below the project root."""

    agent_name: str
    relative_path: str
    content: str


def get_agent_format(agent: str) -> Result[AgentFormat, UnsupportedAgentError]:
    fmt = AGENT_FORMATS.get(agent)
    return Ok(fmt) if fmt is not None else Err(UnsupportedAgentError(agent=agent))


def agent_names() -> list[str]:
    return sorted(AGENT_FORMATS)


# =============================================================================
# Frontmatter
# =============================================================================


def parse_frontmatter(content: str) -> tuple[Frontmatter, str]:
    """Split a document into its frontmatter mapping and body.

    The frontmatter sits between the first two ``---`` delimiters. A missing
    block, a missing closing delimiter, invalid YAML or a non-mapping block
    all give an empty mapping; this never raises.
    """
    if not content.startswith(FRONTMATTER_DELIMITER):
        return {}, content

    end = content.find(FRONTMATTER_DELIMITER, len(FRONTMATTER_DELIMITER))
    if end == -1:
        return {}, content

    raw = content[len(FRONTMATTER_DELIMITER):end].strip()
    body = content[end + len(FRONTMATTER_DELIMITER):].strip()

    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:
        return {}, body

    if not isinstance(parsed, dict):
        return {}, body
    return parsed, body


def render_frontmatter(frontmatter: Frontmatter) -> str:
    if not frontmatter:
        return ""
    dumped = yaml.safe_dump(
        frontmatter,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )
    return f"{FRONTMATTER_DELIMITER}\n{dumped}{FRONTMATTER_DELIMITER}\n"


def adjust_script_paths(frontmatter: Frontmatter) -> Frontmatter:
    """Point ``scripts`` entries at the installed scripts directory."""
    scripts = frontmatter.get("scripts")
    if not isinstance(scripts, dict):
        return frontmatter

    adjusted: dict[str, Any] = {}
    for key, value in scripts.items():
        if isinstance(value, str) and value.startswith(SOURCE_SCRIPTS_PREFIX):
            adjusted[key] = INSTALLED_SCRIPTS_PREFIX + value[len(SOURCE_SCRIPTS_PREFIX):]
        else:
            adjusted[key] = value
    return {**frontmatter, "scripts": adjusted}


def convert_arg_placeholder(content: str, source: str, target: str) -> str:
    return content.replace(source, target)


# =============================================================================
# Output kinds
# =============================================================================


def _config_dir(extension_id: str) -> str:
    return f".faber/extensions/{extension_id}/"


def render_markdown_command(frontmatter: Frontmatter, body: str, extension_id: str) -> str:
    footer = (
        f"\n<!-- Extension: {extension_id} -->\n"
        f"<!-- Config: {_config_dir(extension_id)} -->\n"
    )
    return render_frontmatter(frontmatter) + footer + body


def _toml_basic_string(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def _toml_multiline(body: str) -> str:
    # Basic strings treat backslashes as escapes, literal strings do not.
    if "\\" not in body and '"""' not in body:
        return f'"""\n{body}\n"""'
    if "'''" not in body:
        return f"'''\n{body}\n'''"
    escaped = body.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
    return f'"""\n{escaped}\n"""'


def render_toml_command(frontmatter: Frontmatter, body: str, extension_id: str) -> str:
    lines: list[str] = []

    description = frontmatter.get("description")
    if description:
        lines.append(f"description = {_toml_basic_string(str(description))}")
        lines.append("")

    lines.append(f"# Extension: {extension_id}")
    lines.append(f"# Config: {_config_dir(extension_id)}")
    lines.append("")
    lines.append(f"prompt = {_toml_multiline(body)}")
    return "\n".join(lines) + "\n"


# =============================================================================
# Rendering
# =============================================================================


def render_command(
    frontmatter: Frontmatter,
    body: str,
    agent_format: AgentFormat,
    extension_id: str,
    command_name: str | None = None,
    agent_name: str = "",
) -> CommandFile:
    """Render one command for one agent.

    Args:
        frontmatter: Parsed metadata of the source command.
        body: Source command body using the canonical placeholder.
        agent_format: Target agent convention.
        extension_id: Owning extension, named in the provenance footer.
        command_name: File stem; defaults to ``extension_id``.
        agent_name: Recorded on the result for reporting.

    Returns:
        The rendered file and its path relative to the project root.
    """
    metadata = adjust_script_paths(frontmatter)

    if agent_format.placeholder != CANONICAL_ARG_PLACEHOLDER:
        body = convert_arg_placeholder(body, CANONICAL_ARG_PLACEHOLDER, agent_format.placeholder)

    if agent_format.output_kind == "toml":
        content = render_toml_command(metadata, body, extension_id)
    else:
        content = render_markdown_command(metadata, body, extension_id)

    stem = command_name or extension_id
    relative_path = str(PurePosixPath(agent_format.directory) / f"{stem}{agent_format.file_extension}")
    return CommandFile(agent_name=agent_name, relative_path=relative_path, content=content)


def render_command_for_agent(
    source: str,
    agent_name: str,
    agent_format: AgentFormat,
    extension_id: str,
    command_name: str | None = None,
) -> CommandFile:
    """Parse a source command document and render it for ``agent_name``."""
    frontmatter, body = parse_frontmatter(source)
    return render_command(
        frontmatter,
        body,
        agent_format,
        extension_id,
        command_name=command_name,
        agent_name=agent_name,
    )
