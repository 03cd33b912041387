"""Project-level configuration and variable bindings."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from tagformula.suggestions import (
    DEFAULT_SUGGESTIONS,
    HttpSuggestionProvider,
    StaticSuggestionProvider,
    SuggestionProvider,
)
from tagformula.tokens import is_finite_number

CONFIG_FILENAME = "tagformula.yaml"

# Demo bindings for the labels offered by the default suggestion list.
DEMO_BINDINGS: dict[str, float] = {
    "x": 10,
    "y": 5,
    "z": 20,
    "Sales": 1000,
    "Expenses": 300,
    "Revenue": 1500,
    "Profit": 700,
}

DEFAULT_CONFIG: dict[str, Any] = {
    "tag_prefix": "@",
    "suggest_debounce_ms": 0,
    "suggest_timeout_secs": None,
    "suggestions": list(DEFAULT_SUGGESTIONS),
    "suggest_url": None,
    "suggest_param": "q",
    "bindings": dict(DEMO_BINDINGS),
    "logging_enabled": False,
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}


class ConfigError(Exception):
    """A configuration or bindings file is malformed."""


def load_config(project_dir: Path) -> dict[str, Any]:
    """Load configuration from ``tagformula.yaml``, with defaults.

    A ``bindings`` block in the file replaces the demo bindings outright.

    Args:
        project_dir: Directory holding the config file.

    Returns:
        Merged configuration dict.

    Raises:
        ConfigError: If the file is not a mapping or holds invalid values.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = project_dir / CONFIG_FILENAME
    if config_path.exists():
        try:
            user_config = yaml.safe_load(config_path.read_text()) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(user_config, dict):
            raise ConfigError(f"{config_path} must contain a mapping")
        config.update(user_config)

    prefix = config.get("tag_prefix")
    if not isinstance(prefix, str) or not prefix or prefix.strip() != prefix:
        raise ConfigError(f"tag_prefix must be a non-blank string without spaces, got {prefix!r}")
    config["bindings"] = validate_bindings(config.get("bindings") or {})
    return config


def validate_bindings(raw: Any) -> dict[str, float]:
    """Check that *raw* maps labels to finite numbers.

    Raises:
        ConfigError: On a non-mapping, a blank label or a non-finite value.
    """
    if not isinstance(raw, dict):
        raise ConfigError("bindings must be a mapping of label -> number")
    out: dict[str, float] = {}
    for label, value in raw.items():
        if not isinstance(label, str) or not label.strip():
            raise ConfigError(f"Binding label must be a non-blank string, got {label!r}")
        if not is_finite_number(value):
            raise ConfigError(f"Binding {label!r} must be a finite number, got {value!r}")
        out[label] = value
    return out


def load_bindings(path: Path) -> dict[str, float]:
    """Read a standalone bindings file (``.json``, or YAML otherwise)."""
    text = path.read_text()
    try:
        raw = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot parse bindings file {path}: {exc}") from exc
    return validate_bindings(raw or {})


def build_provider(config: dict[str, Any]) -> SuggestionProvider:
    """Return the HTTP provider if ``suggest_url`` is set, else the static one."""
    url = config.get("suggest_url")
    if url:
        return HttpSuggestionProvider(url, param=config.get("suggest_param") or "q")
    return StaticSuggestionProvider(config.get("suggestions") or [])
