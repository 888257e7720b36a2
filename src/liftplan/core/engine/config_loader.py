"""
YAML → settings loader.

Loads optional user overrides from ~/.liftplan/config.yaml and merges them
over the Python defaults in config.py.

Usage:
    from liftplan.core.engine.config_loader import get_setting
    delay = get_setting("persistence", "save_debounce_seconds", 1.0)

If the user file is missing or cannot be parsed, every lookup returns the
default that was passed in (no crash).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from ..config import SAVE_DEBOUNCE_SECONDS

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

_DEFAULTS: dict[str, dict[str, Any]] = {
    "persistence": {
        "save_debounce_seconds": SAVE_DEBOUNCE_SECONDS,
        "store_path": None,
    },
}


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; return {} on any read or parse error."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (non-destructive to base)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_config_dir() -> Path:
    """Return the per-user liftplan directory (~/.liftplan)."""
    home = Path(os.environ.get("HOME", "~")).expanduser()
    return home / ".liftplan"


def get_user_yaml_path() -> Path | None:
    """Return ~/.liftplan/config.yaml if it exists, else None."""
    p = get_config_dir() / "config.yaml"
    return p if p.exists() else None


def load_model_config() -> dict[str, Any]:
    """
    Load and merge settings.

    Load order (later overrides earlier):
    1. Built-in defaults
    2. User override at ~/.liftplan/config.yaml

    Returns:
        Merged dict of config sections.
    """
    config: dict[str, Any] = _deep_merge({}, _DEFAULTS)

    user = get_user_yaml_path()
    if user is not None:
        user_cfg = _load_yaml_file(user)
        if user_cfg:
            config = _deep_merge(config, user_cfg)

    return config


def get_setting(section: str, key: str, default: Any = None) -> Any:
    """Look up one setting, falling back to *default* when absent."""
    section_cfg = load_model_config().get(section)
    if not isinstance(section_cfg, dict):
        return default
    value = section_cfg.get(key)
    return default if value is None else value
