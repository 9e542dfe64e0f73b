"""Tests for runtime configuration and the analyzer registry."""

import json

import pytest

from varaudit.config_runtime import DEFAULTS, LintConfig, load_runtime_config
from varaudit.lint import LINT_PLUGINS, Severity, UninitializedVarsLint, create_lint_plugins


def write_config(root, data):
    config_dir = root / ".varaudit"
    config_dir.mkdir(exist_ok=True)
    path = config_dir / "config.json"
    path.write_text(json.dumps(data))
    return path


class TestLoadRuntimeConfig:
    def test_defaults(self, isolated_env):
        cfg = load_runtime_config()
        assert cfg == DEFAULTS
        assert cfg is not DEFAULTS
        assert cfg["lint"]["extensions"] is not DEFAULTS["lint"]["extensions"]

    def test_config_file(self, isolated_env):
        write_config(
            isolated_env,
            {"lint": {"report_level": "warnings", "global_vars": ["$app"], "check_global_scope": False}},
        )
        lint = load_runtime_config()["lint"]
        assert lint["report_level"] == "warnings"
        assert lint["global_vars"] == ["$app"]
        assert lint["check_global_scope"] is False

    def test_wrong_types_and_unknown_keys_are_ignored(self, isolated_env):
        write_config(isolated_env, {"lint": {"global_vars": "$app", "no_such_key": 1}})
        assert load_runtime_config()["lint"] == DEFAULTS["lint"]

    def test_explicit_path(self, isolated_env):
        path = isolated_env / "custom.json"
        path.write_text(json.dumps({"lint": {"exclude": ["vendor"]}}))
        assert load_runtime_config(config_path=str(path))["lint"]["exclude"] == ["vendor"]

    def test_missing_explicit_path_uses_defaults(self, isolated_env):
        cfg = load_runtime_config(config_path=str(isolated_env / "missing.json"))
        assert cfg == DEFAULTS

    def test_broken_json_uses_defaults(self, isolated_env):
        (isolated_env / ".varaudit").mkdir()
        (isolated_env / ".varaudit" / "config.json").write_text("{not json")
        assert load_runtime_config() == DEFAULTS

    def test_environment_overrides_file(self, isolated_env, monkeypatch):
        write_config(isolated_env, {"lint": {"report_level": "warnings"}})
        monkeypatch.setenv("VARAUDIT_LINT_REPORT_LEVEL", "errors")
        monkeypatch.setenv("VARAUDIT_LINT_CHECK_GLOBAL_SCOPE", "off")
        monkeypatch.setenv("VARAUDIT_LINT_FUNCTION_SIGNATURES", "foo(&$a, $b); Bar::baz($x, &$y)")
        lint = load_runtime_config()["lint"]
        assert lint["report_level"] == "errors"
        assert lint["check_global_scope"] is False
        assert lint["function_signatures"] == ["foo(&$a, $b)", "Bar::baz($x, &$y)"]

    def test_invalid_environment_boolean(self, isolated_env, monkeypatch):
        monkeypatch.setenv("VARAUDIT_LINT_CHECK_GLOBAL_SCOPE", "sometimes")
        assert load_runtime_config()["lint"]["check_global_scope"] is True


class TestLintConfig:
    def test_from_runtime(self, isolated_env):
        cfg = load_runtime_config()
        cfg["lint"]["global_vars"] = ["$app"]
        config = LintConfig.from_runtime(cfg)
        assert config.global_vars == ["$app"]
        assert config.global_vars is not cfg["lint"]["global_vars"]
        assert config.extensions == [".php"]

    def test_defaults_match(self):
        assert LintConfig().__dict__ == DEFAULTS["lint"]


class TestRegistry:
    def test_create_all(self):
        plugins = create_lint_plugins(LintConfig(), Severity.NOTICE)
        assert len(plugins) == len(LINT_PLUGINS)
        assert isinstance(plugins[0], UninitializedVarsLint)
        assert plugins[0].report_level is Severity.NOTICE

    def test_unknown_report_id(self):
        with pytest.raises(ValueError, match="no-such-lint"):
            create_lint_plugins(only=["no-such-lint"])

    @pytest.mark.parametrize(
        "name, level",
        [("errors", Severity.ERROR), ("Warning", Severity.WARNING), ("notices", Severity.NOTICE)],
    )
    def test_severity_names(self, name, level):
        assert Severity.from_name(name) is level

    def test_unknown_severity_name(self):
        with pytest.raises(ValueError):
            Severity.from_name("fatal")
