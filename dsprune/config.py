"""Load and validate .dsprune/config.yaml."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


# Default config values
DEFAULTS: dict[str, Any] = {
    "repository": {
        "url": "http://localhost:8080/fedora",
        "username": "fedoraAdmin",
        "password": "fedoraAdmin",
        "timeout": 30,
    },
    "datastream": "TECHMD",
    "log_message": "",
    "report": {
        "precision": 2,
    },
}


class ConfigError(Exception):
    """Raised when config is invalid or missing."""


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into base recursively. Override wins on conflicts."""
    result = base.copy()
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _validate(config: dict) -> None:
    """Validate required fields in config."""
    repository = config.get("repository")
    if not isinstance(repository, dict):
        raise ConfigError("'repository' must be a mapping")

    url = repository.get("url")
    if not isinstance(url, str) or not url.startswith(("http://", "https://")):
        raise ConfigError(f"'repository.url' must be an http(s) URL, got {url!r}")

    timeout = repository.get("timeout")
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError(f"'repository.timeout' must be a positive number, got {timeout!r}")

    datastream = config.get("datastream")
    if not isinstance(datastream, str) or not datastream.strip():
        raise ConfigError("'datastream' must be a non-empty string")

    if not isinstance(config.get("log_message"), str):
        raise ConfigError("'log_message' must be a string")

    precision = config.get("report", {}).get("precision")
    if isinstance(precision, bool) or not isinstance(precision, int) or precision < 0:
        raise ConfigError(
            f"'report.precision' must be a non-negative integer, got {precision!r}"
        )


def load_config(project_root: Path | None = None) -> dict:
    """Load config from .dsprune/config.yaml under project_root.

    Falls back to cwd if project_root is None. Merges with DEFAULTS
    so callers always get a full config dict.
    """
    root = Path(project_root) if project_root else Path.cwd()
    config_path = root / ".dsprune" / "config.yaml"

    if not config_path.exists():
        raise ConfigError(f"Config not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ConfigError(f"Config must be a YAML mapping, got {type(raw).__name__}")

    config = _deep_merge(DEFAULTS, raw)
    _validate(config)
    return config
