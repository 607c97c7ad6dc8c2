"""TOML configuration file handling for Scopegate."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import toml

logger = logging.getLogger(__name__)

BASE_DIR = Path(os.environ.get("SCOPEGATE_HOME", str(Path.home() / ".scopegate"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"


def load_full_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the entire TOML config (all sections).

    A missing or unreadable file yields an empty dict so the caller
    falls back to environment variables and built-in defaults.
    """
    config_file = path or CONFIG_FILE
    if not config_file.exists():
        return {}
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Could not read %s: %s", config_file, exc)
        return {}


def load_github_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Return the ``[github]`` table (token, api_url, app_url)."""
    return dict(load_full_config(path).get("github", {}))


def load_limits_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Return the ``[limits]`` table used to override engine caps."""
    return dict(load_full_config(path).get("limits", {}))


def _save_full_config(config: Dict[str, Any], path: Optional[Path] = None) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    config_file = path or CONFIG_FILE
    config_file.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(config_file, "w", encoding="utf-8") as f:
            toml.dump(config, f)
        return True
    except OSError as exc:
        logger.warning("Could not write %s: %s", config_file, exc)
        return False


def save_limit(name: str, value: Any, path: Optional[Path] = None) -> bool:
    """Persist a single engine limit under ``[limits]``.

    Args:
        name: Limit field name (see :class:`~scopegate.models.EngineLimits`)
        value: New value, already coerced to the field's type

    Returns:
        True if saved successfully, False otherwise
    """
    config = load_full_config(path)
    config.setdefault("limits", {})[name] = value
    return _save_full_config(config, path)


def save_github_setting(key: str, value: str, path: Optional[Path] = None) -> bool:
    """Persist a single ``[github]`` setting such as ``token`` or ``app_url``."""
    config = load_full_config(path)
    config.setdefault("github", {})[key] = value
    return _save_full_config(config, path)
