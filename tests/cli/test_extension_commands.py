"""Tests for the faber CLI commands."""

import json

import httpx
import pytest
from typer.testing import CliRunner

from faber.cli.app import app
from faber.cli.commands import extensions as extension_commands
from faber.extensions.catalog import CatalogClient

runner = CliRunner()


@pytest.fixture
def in_project(project_dir, monkeypatch):
    """Run commands from inside the project directory."""
    monkeypatch.chdir(project_dir)
    return project_dir


@pytest.fixture
def mock_catalog(monkeypatch, catalog_data):
    """Serve the catalog from an httpx MockTransport."""
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=catalog_data)

    def get_catalog_client(manager, as_json=False):
        return CatalogClient(
            "https://catalog.example.com/catalog.json",
            cache_dir=None,
            transport=httpx.MockTransport(handler),
        )

    monkeypatch.setattr(extension_commands, "get_catalog_client", get_catalog_client)
    return requests


class TestRootCommands:
    """Test cases for init and version"""

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "faber v0.1.0" in result.output

    def test_init(self, tmp_path):
        target = tmp_path / "new-project"
        result = runner.invoke(app, ["init", str(target), "--no-git"])

        assert result.exit_code == 0
        assert (target / ".faber" / "extensions").is_dir()
        assert not (target / ".git").exists()

    def test_help_lists_extension_commands(self):
        result = runner.invoke(app, ["extension", "--help"])
        assert result.exit_code == 0
        for command in ("list", "add", "remove", "search", "info", "update", "hooks", "agents"):
            assert command in result.output


class TestExtensionLifecycle:
    """Test cases for add, list and remove"""

    def test_list_empty(self, in_project):
        result = runner.invoke(app, ["extension", "list"])
        assert result.exit_code == 0
        assert "No extensions installed." in result.output

    def test_add_list_remove(self, in_project, extension_source):
        result = runner.invoke(app, ["extension", "add", str(extension_source), "--ai", "claude"])
        assert result.exit_code == 0, result.output
        assert "Installed hello-world v1.0.0" in result.output
        assert (in_project / ".claude" / "commands" / "faber.hello-world.greet.md").exists()

        result = runner.invoke(app, ["extension", "list", "--json"])
        assert result.exit_code == 0
        [listed] = json.loads(result.output)
        assert listed["id"] == "hello-world"
        assert listed["version"] == "1.0.0"

        result = runner.invoke(app, ["extension", "remove", "hello-world", "--yes"])
        assert result.exit_code == 0
        assert "Removed hello-world" in result.output

    def test_add_json(self, in_project, extension_source):
        result = runner.invoke(app, ["extension", "add", str(extension_source), "--ai", "gemini", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data == {"id": "hello-world", "version": "1.0.0", "files_created": 4, "agents": ["gemini"]}

    def test_add_twice_fails(self, in_project, extension_source):
        runner.invoke(app, ["extension", "add", str(extension_source)])
        result = runner.invoke(app, ["extension", "add", str(extension_source), "--json"])

        assert result.exit_code == 1
        assert json.loads(result.output) == {"error": {"tag": "already_installed", "id": "hello-world"}}

    def test_remove_not_installed(self, in_project):
        result = runner.invoke(app, ["extension", "remove", "ghost", "--yes"])

        assert result.exit_code == 1
        assert 'Extension "ghost" is not installed' in result.output

    def test_remove_cancelled(self, in_project, extension_source):
        runner.invoke(app, ["extension", "add", str(extension_source)])
        result = runner.invoke(app, ["extension", "remove", "hello-world"], input="n\n")

        assert result.exit_code == 0
        assert (in_project / ".faber" / "extensions" / "hello-world").exists()

    def test_outside_project(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["extension", "list", "--json"])

        assert result.exit_code == 1
        assert json.loads(result.output)["error"]["tag"] == "not_a_project"

    def test_hooks(self, in_project, extension_source):
        runner.invoke(app, ["extension", "add", str(extension_source)])
        result = runner.invoke(app, ["extension", "hooks", "after_tasks", "--json"])

        assert result.exit_code == 0
        [hook] = json.loads(result.output)
        assert hook["command"] == "faber.hello-world.greet"

    def test_agents(self):
        result = runner.invoke(app, ["extension", "agents", "--json"])

        assert result.exit_code == 0
        agents = json.loads(result.output)
        assert len(agents) == 16
        assert agents["gemini"]["format"] == "toml"


class TestCatalogCommands:
    """Test cases for search, info and update"""

    def test_search(self, in_project, mock_catalog):
        result = runner.invoke(app, ["extension", "search", "lint", "--json"])

        assert result.exit_code == 0
        assert [r["id"] for r in json.loads(result.output)] == ["lint-helper"]
        assert len(mock_catalog) == 1

    def test_search_no_results(self, in_project, mock_catalog):
        result = runner.invoke(app, ["extension", "search", "zzz"])

        assert result.exit_code == 0
        assert "No extensions found matching your criteria." in result.output

    def test_info(self, in_project, mock_catalog):
        result = runner.invoke(app, ["extension", "info", "hello-world"])

        assert result.exit_code == 0
        assert "Hello World" in result.output
        assert "Installed" in result.output

    def test_info_not_found(self, in_project, mock_catalog):
        result = runner.invoke(app, ["extension", "info", "ghost", "--json"])

        assert result.exit_code == 1
        assert json.loads(result.output)["error"] == {"tag": "not_found", "id": "ghost"}

    def test_update(self, in_project, mock_catalog, extension_source):
        runner.invoke(app, ["extension", "add", str(extension_source)])
        result = runner.invoke(app, ["extension", "update", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.output) == [{"id": "hello-world", "current": "1.0.0", "available": "1.2.0"}]

    def test_update_nothing_installed(self, in_project, mock_catalog):
        result = runner.invoke(app, ["extension", "update"])

        assert result.exit_code == 0
        assert "All extensions are up to date." in result.output

    def test_network_error(self, in_project, monkeypatch):
        def get_catalog_client(manager, as_json=False):
            return CatalogClient(
                "https://catalog.example.com/catalog.json",
                transport=httpx.MockTransport(lambda request: httpx.Response(503)),
            )

        monkeypatch.setattr(extension_commands, "get_catalog_client", get_catalog_client)
        result = runner.invoke(app, ["extension", "search", "--json"])

        assert result.exit_code == 1
        assert json.loads(result.output)["error"]["tag"] == "network"

    @pytest.mark.parametrize("command", [["search"], ["info", "hello-world"], ["update"]])
    def test_insecure_catalog_url_json(self, in_project, monkeypatch, command):
        monkeypatch.setenv("FABER_CATALOG_URL", "http://catalog.example.com/catalog.json")
        monkeypatch.setattr("faber.config._config", None)

        result = runner.invoke(app, ["extension", *command, "--json"])

        assert result.exit_code == 1
        error = json.loads(result.output)["error"]
        assert error["tag"] == "invalid_url"
        assert error["url"] == "http://catalog.example.com/catalog.json"
