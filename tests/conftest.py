"""Shared fixtures for faber tests."""

import textwrap
from pathlib import Path

import pytest

SAMPLE_MANIFEST = textwrap.dedent(
    """\
    schema_version: "1.0"
    extension:
      id: hello-world
      name: Hello World
      version: 1.0.0
      description: Greets the user
    requires:
      faber_version: ">=0.1.0"
    provides:
      commands:
        - name: faber.hello-world.greet
          file: commands/greet.md
    hooks:
      after_tasks:
        command: faber.hello-world.greet
        optional: true
        prompt: Say hello?
        description: Greet after tasks
        condition: config.greeting.enabled == "true"
    defaults:
      greeting:
        enabled: true
    """
)

SAMPLE_COMMAND = textwrap.dedent(
    """\
    ---
    description: Greet someone
    scripts:
      sh: ../../scripts/bash/greet.sh
    ---
    Say hello to $ARGUMENTS.
    """
)


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A directory initialized as a faber project."""
    root = tmp_path / "project"
    (root / ".faber" / "extensions").mkdir(parents=True)
    return root


@pytest.fixture
def extension_source(tmp_path: Path) -> Path:
    """An extension directory with a manifest and one command."""
    source = tmp_path / "hello-world"
    (source / "commands").mkdir(parents=True)
    (source / "extension.yml").write_text(SAMPLE_MANIFEST, encoding="utf-8")
    (source / "commands" / "greet.md").write_text(SAMPLE_COMMAND, encoding="utf-8")
    (source / "README.md").write_text("# Hello World\n", encoding="utf-8")
    return source


@pytest.fixture
def catalog_data() -> dict:
    """Decoded catalog JSON with two extensions."""
    return {
        "schema_version": "1.0",
        "extensions": {
            "hello-world": {
                "name": "Hello World",
                "description": "Greets the user",
                "version": "1.2.0",
                "author": "faber",
                "tags": ["demo", "greeting"],
                "verified": True,
                "download_url": "https://example.com/hello-world.zip",
            },
            "lint-helper": {
                "name": "Lint Helper",
                "description": "Runs linters before review",
                "version": "0.3.1",
                "author": "someone",
                "tags": ["quality"],
                "verified": False,
                "downloadUrl": "https://example.com/lint-helper.zip",
            },
        },
    }
