"""Settings loading with defaults and CLI override merging."""

from __future__ import annotations

import copy
import os
from pathlib import Path

import yaml

from nutrivida.errors import ConfigurationError

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "nutrivida" / "config.yaml"

DEFAULTS = {
    "generation": {
        "model": "gpt-4o-mini",
        "api_key_env": "OPENAI_API_KEY",
        "base_url": None,
        "max_tokens": 4000,
        "meal_max_tokens": 1000,
        "temperature": 0.7,
        "meal_temperature": 0.8,
        "timeout_seconds": 60,
        "max_retries": 1,
    },
    "plan": {
        "duration": 7,
        "min_duration": 1,
        "max_duration": 30,
    },
    # USD per 1k tokens, matched by longest model-name prefix
    "pricing": {
        "gpt-4o-mini": {"input": 0.00015, "output": 0.0006},
        "gpt-4o": {"input": 0.0025, "output": 0.01},
        "gpt-4": {"input": 0.03, "output": 0.06},
    },
    "profile": {
        "cultural_background": "latino",
        "primary_goal": "general_health",
        "dietary_restrictions": [],
        "allergies": [],
        "cooking_skill_level": "intermediate",
        "time_available": "moderate",
        "budget_level": "moderate",
        "family_size": 1,
    },
}


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Path | None = None) -> dict:
    """Load settings from a YAML file, falling back to defaults."""
    path = config_path or DEFAULT_CONFIG_PATH

    if path.exists():
        with open(path) as f:
            try:
                user_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Cannot parse {path}: {e}") from e
        if not isinstance(user_config, dict):
            raise ConfigurationError(f"{path} must contain a mapping at the top level")
        return deep_merge(copy.deepcopy(DEFAULTS), user_config)

    if config_path is not None:
        raise ConfigurationError(f"Config file not found: {config_path}")
    return copy.deepcopy(DEFAULTS)


def apply_cli_overrides(config: dict, **overrides: object) -> dict:
    """Apply CLI argument overrides to config.

    Supports flat keys that map into nested config:
      model -> generation.model
      timeout -> generation.timeout_seconds
      days -> plan.duration
      culture -> profile.cultural_background
      goal -> profile.primary_goal
      skill / time / budget / family_size -> profile.*
      restrictions / allergies -> profile.* (lists, appended)
    """
    if overrides.get("model") is not None:
        config["generation"]["model"] = overrides["model"]
    if overrides.get("timeout") is not None:
        config["generation"]["timeout_seconds"] = overrides["timeout"]
    if overrides.get("days") is not None:
        config["plan"]["duration"] = overrides["days"]

    profile = config["profile"]
    if overrides.get("culture") is not None:
        profile["cultural_background"] = overrides["culture"]
    if overrides.get("goal") is not None:
        profile["primary_goal"] = overrides["goal"]
    if overrides.get("skill") is not None:
        profile["cooking_skill_level"] = overrides["skill"]
    if overrides.get("time") is not None:
        profile["time_available"] = overrides["time"]
    if overrides.get("budget") is not None:
        profile["budget_level"] = overrides["budget"]
    if overrides.get("family_size") is not None:
        profile["family_size"] = overrides["family_size"]
    if overrides.get("restrictions"):
        profile["dietary_restrictions"] = list(profile.get("dietary_restrictions") or []) + [
            r.strip() for r in overrides["restrictions"]  # type: ignore[union-attr]
        ]
    if overrides.get("allergies"):
        profile["allergies"] = list(profile.get("allergies") or []) + [
            a.strip() for a in overrides["allergies"]  # type: ignore[union-attr]
        ]

    return config


def get_api_key(config: dict) -> str | None:
    """Read the provider API key from the environment variable named in config."""
    env_name = config["generation"].get("api_key_env") or "OPENAI_API_KEY"
    key = os.environ.get(env_name, "").strip()
    return key or None
