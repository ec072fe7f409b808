"""Tests for faber tool configuration."""

import pytest

from faber.config import FaberConfig, find_config_file, load_config
from faber.extensions.catalog import DEFAULT_CATALOG_URL


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("FABER_CATALOG_URL", "FABER_LOG_LEVEL", "FABER_CATALOG_CACHE_SECONDS"):
        monkeypatch.delenv(var, raising=False)


class TestFaberConfig:
    """Test cases for config loading"""

    def test_defaults(self, tmp_path):
        config = load_config(tmp_path / "missing.toml")

        assert config.catalog.url == DEFAULT_CATALOG_URL
        assert config.catalog.cache_seconds == 3600
        assert config.catalog.timeout == 30.0
        assert config.extensions.default_agents == []
        assert config.log_level == "WARNING"

    def test_from_file(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            'log_level = "INFO"\n'
            "[catalog]\n"
            'url = "https://catalog.example.com/c.json"\n'
            "cache_seconds = 60\n"
            "[extensions]\n"
            'default_agents = ["claude"]\n'
        )
        config = load_config(path)

        assert config.log_level == "INFO"
        assert config.catalog.url == "https://catalog.example.com/c.json"
        assert config.catalog.cache_seconds == 60
        assert config.extensions.default_agents == ["claude"]

    def test_env_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "config.toml"
        path.write_text('[catalog]\nurl = "https://file.example.com"\n')
        monkeypatch.setenv("FABER_CATALOG_URL", "https://env.example.com")
        monkeypatch.setenv("FABER_CATALOG_CACHE_SECONDS", "10")
        monkeypatch.setenv("FABER_LOG_LEVEL", "DEBUG")

        config = load_config(path)

        assert config.catalog.url == "https://env.example.com"
        assert config.catalog.cache_seconds == 10
        assert config.log_level == "DEBUG"

    def test_invalid_toml_falls_back(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[catalog\n")
        assert load_config(path) == FaberConfig()

    def test_find_config_file_walks_up(self, tmp_path):
        config_path = tmp_path / ".faber" / "config.toml"
        config_path.parent.mkdir()
        config_path.write_text("")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)

        assert find_config_file(nested) == config_path.resolve()
