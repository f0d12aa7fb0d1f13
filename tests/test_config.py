import pytest

from nutrivida.config import (
    DEFAULTS,
    apply_cli_overrides,
    deep_merge,
    get_api_key,
    load_config,
)
from nutrivida.errors import ConfigurationError


class TestDeepMerge:
    def test_nested(self):
        merged = deep_merge({"a": {"x": 1, "y": 2}, "b": 3}, {"a": {"y": 20}})
        assert merged == {"a": {"x": 1, "y": 20}, "b": 3}

    def test_base_untouched(self):
        base = {"a": {"x": 1}}
        deep_merge(base, {"a": {"x": 2}})
        assert base == {"a": {"x": 1}}


class TestLoadConfig:
    def test_yaml_overrides(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "generation:\n  model: gpt-4o\nprofile:\n  cultural_background: somali\n"
        )
        config = load_config(path)
        assert config["generation"]["model"] == "gpt-4o"
        assert config["generation"]["max_retries"] == 1
        assert config["profile"]["cultural_background"] == "somali"

    def test_defaults_not_shared(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        config = load_config(path)
        config["plan"]["duration"] = 3
        assert DEFAULTS["plan"]["duration"] == 7

    def test_explicit_missing_path(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "missing.yaml")

    def test_bad_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("generation: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Cannot parse"):
            load_config(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(path)


class TestCliOverrides:
    def test_flat_keys(self, config):
        apply_cli_overrides(
            config, model="gpt-4", days=3, culture="caribbean", family_size=4, timeout=5.0
        )
        assert config["generation"]["model"] == "gpt-4"
        assert config["generation"]["timeout_seconds"] == 5.0
        assert config["plan"]["duration"] == 3
        assert config["profile"]["cultural_background"] == "caribbean"
        assert config["profile"]["family_size"] == 4

    def test_lists_append(self, config):
        config["profile"]["allergies"] = ["peanuts"]
        apply_cli_overrides(config, allergies=[" shellfish "], restrictions=["halal"])
        assert config["profile"]["allergies"] == ["peanuts", "shellfish"]
        assert config["profile"]["dietary_restrictions"] == ["halal"]

    def test_none_ignored(self, config):
        apply_cli_overrides(config, model=None, days=None)
        assert config["generation"]["model"] == "gpt-4o-mini"
        assert config["plan"]["duration"] == 7


class TestApiKey:
    def test_reads_named_env(self, monkeypatch, config):
        config["generation"]["api_key_env"] = "NUTRIVIDA_KEY"
        monkeypatch.setenv("NUTRIVIDA_KEY", " sk-abc ")
        assert get_api_key(config) == "sk-abc"

    def test_blank_is_none(self, monkeypatch, config):
        monkeypatch.setenv("OPENAI_API_KEY", "  ")
        assert get_api_key(config) is None
