"""Tests for hook conditions and hook registration."""

import logging

import pytest

from faber.extensions.config import ConfigContext
from faber.extensions.errors import Err, InvalidConditionError, Ok
from faber.extensions.hooks import (
    ConfigEquals,
    ConfigIsSet,
    ConfigNotEquals,
    EnvEquals,
    EnvIsSet,
    EnvNotEquals,
    HookEntry,
    active_hooks,
    evaluate_condition,
    filter_enabled_hooks,
    hook_entries_from_manifest,
    hooks_config_from_dict,
    hooks_config_to_dict,
    normalize_value,
    parse_condition,
    register_hook,
    unregister_hooks,
)


class TestParseCondition:
    """Test cases for parse_condition"""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("config.a.b is set", ConfigIsSet(key_path="a.b")),
            ("  config.a.b   IS   SET  ", ConfigIsSet(key_path="a.b")),
            ('config.mode == "fast"', ConfigEquals(key_path="mode", value="fast")),
            ("config.mode != 'slow'", ConfigNotEquals(key_path="mode", value="slow")),
            ("env.CI is set", EnvIsSet(var_name="CI")),
            ('env.STAGE=="prod"', EnvEquals(var_name="STAGE", value="prod")),
            ("env.STAGE != 'dev'", EnvNotEquals(var_name="STAGE", value="dev")),
        ],
    )
    def test_valid(self, raw, expected):
        assert parse_condition(raw) == Ok(expected)

    def test_tags(self):
        assert parse_condition("config.a is set").value.tag == "config_is_set"
        assert parse_condition("env.A != 'x'").value.tag == "env_not_equals"

    @pytest.mark.parametrize(
        "raw",
        [
            "prefix config.a is set",
            "config.a is set suffix",
            "config.a == fast",
            "settings.a is set",
            "",
        ],
    )
    def test_invalid(self, raw):
        result = parse_condition(raw)
        assert result == Err(InvalidConditionError(raw=raw.strip()))
        assert result.error.tag == "invalid_condition"


class TestEvaluateCondition:
    """Test cases for evaluate_condition"""

    context = ConfigContext({"flag": True, "mode": "fast", "empty": None, "count": 3})

    def test_config_is_set(self):
        assert evaluate_condition(ConfigIsSet("mode"), self.context)
        assert evaluate_condition(ConfigIsSet("empty"), self.context)
        assert not evaluate_condition(ConfigIsSet("missing"), self.context)

    def test_boolean_equals_string(self):
        assert evaluate_condition(ConfigEquals("flag", "true"), self.context)
        assert not evaluate_condition(ConfigNotEquals("flag", "true"), self.context)

    def test_config_equality(self):
        assert evaluate_condition(ConfigEquals("mode", "fast"), self.context)
        assert evaluate_condition(ConfigNotEquals("mode", "slow"), self.context)
        assert evaluate_condition(ConfigEquals("count", "3"), self.context)

    def test_env(self):
        environ = {"CI": "", "STAGE": "prod"}
        assert evaluate_condition(EnvIsSet("CI"), self.context, environ)
        assert not evaluate_condition(EnvIsSet("HOME"), self.context, environ)
        assert evaluate_condition(EnvEquals("STAGE", "prod"), self.context, environ)
        assert evaluate_condition(EnvNotEquals("MISSING", "prod"), self.context, environ)

    def test_defaults_to_process_environment(self, monkeypatch):
        monkeypatch.setenv("FABER_TEST_STAGE", "prod")
        assert evaluate_condition(EnvEquals("FABER_TEST_STAGE", "prod"), self.context)

    def test_normalize_value(self):
        assert normalize_value(False) == "false"
        assert normalize_value(1.5) == "1.5"


class TestHookRegistration:
    """Test cases for hook entries and configs"""

    def test_register_appends_and_replaces(self):
        first = HookEntry(extension="a", command="faber.a.x")
        second = HookEntry(extension="b", command="faber.b.x")
        replacement = HookEntry(extension="a", command="faber.a.y")

        config = register_hook({}, "after_tasks", first)
        config = register_hook(config, "after_tasks", second)
        config = register_hook(config, "after_tasks", replacement)

        assert config["after_tasks"] == (replacement, second)

    def test_unregister_drops_empty_events(self):
        config = {
            "after_tasks": (HookEntry("a", "faber.a.x"), HookEntry("b", "faber.b.x")),
            "before_plan": (HookEntry("a", "faber.a.y"),),
        }
        assert unregister_hooks(config, "a") == {"after_tasks": (HookEntry("b", "faber.b.x"),)}

    def test_filter_enabled(self):
        hooks = (HookEntry("a", "x"), HookEntry("b", "y", enabled=False))
        assert filter_enabled_hooks(hooks) == (HookEntry("a", "x"),)

    def test_entries_from_manifest(self):
        entries = hook_entries_from_manifest(
            "a",
            {
                "after_tasks": {"command": "faber.a.x", "optional": False, "condition": "env.CI is set"},
                "broken": {"prompt": "no command"},
                "scalar": "faber.a.y",
            },
        )
        assert entries == [
            (
                "after_tasks",
                HookEntry("a", "faber.a.x", optional=False, condition="env.CI is set"),
            )
        ]

    def test_dict_round_trip(self):
        config = {"after_tasks": (HookEntry("a", "faber.a.x", prompt="Run?"),)}
        assert hooks_config_from_dict(hooks_config_to_dict(config)) == config

    def test_from_dict_tolerates_garbage(self):
        assert hooks_config_from_dict(None) == {}
        assert hooks_config_from_dict({"hooks": ["x"]}) == {}
        assert hooks_config_from_dict({"hooks": {"e": [{"extension": "a"}]}}) == {}

    @pytest.mark.parametrize(
        "value, expected",
        [(False, False), ("false", False), ("No", False), ("0", False), (0, False),
         (True, True), ("true", True), ("YES", True), (None, True), ("maybe", True)],
    )
    def test_from_dict_reads_quoted_flags(self, value, expected):
        entry = HookEntry.from_dict(
            {"command": "faber.a.x", "enabled": value, "optional": value}, extension="a"
        )
        assert entry.enabled is expected
        assert entry.optional is expected

    def test_quoted_false_disables_hook(self):
        config = hooks_config_from_dict(
            {"hooks": {"after_tasks": [{"extension": "a", "command": "faber.a.x", "enabled": "false"}]}}
        )
        assert filter_enabled_hooks(config["after_tasks"]) == ()


class TestActiveHooks:
    """Test cases for active_hooks"""

    def test_conditions_filter(self, caplog):
        config = {
            "after_tasks": (
                HookEntry("a", "faber.a.always"),
                HookEntry("a", "faber.a.on", condition='config.flag == "true"'),
                HookEntry("b", "faber.b.off", condition="env.NOPE is set"),
                HookEntry("b", "faber.b.bad", condition="whenever"),
                HookEntry("b", "faber.b.disabled", enabled=False),
            )
        }
        contexts = {"a": ConfigContext({"flag": True}), "b": ConfigContext({})}

        with caplog.at_level(logging.WARNING):
            active = active_hooks(config, "after_tasks", contexts.__getitem__, environ={})

        assert [h.command for h in active] == ["faber.a.always", "faber.a.on"]
        assert "invalid condition" in caplog.text

    def test_unknown_event(self):
        assert active_hooks({}, "nothing", lambda _: ConfigContext({})) == []
