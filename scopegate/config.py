"""Configuration paths, credentials and engine limits for Scopegate."""

from __future__ import annotations

import os
from typing import Optional

from .config_manager import CONFIG_FILE, load_github_config, load_limits_config  # noqa: F401
from .models import EngineLimits

SUPPORTED_EXTENSIONS = {".py"}
LOCAL_SHA = "local"
CHECK_RUN_NAME = "Scopegate"

# GitHub settings: loaded from ~/.scopegate/config.toml, falling back to the environment
_github_config = load_github_config()

GITHUB_API_URL = str(
    _github_config.get("api_url") or os.environ.get("GITHUB_API_URL", "https://api.github.com")
).rstrip("/")
APP_BASE_URL = str(
    _github_config.get("app_url") or os.environ.get("SCOPEGATE_APP_URL", "http://localhost:3000")
)


def default_limits() -> EngineLimits:
    """Build limits from defaults overlaid with the ``[limits]`` table."""
    return EngineLimits.from_mapping(load_limits_config())


def resolve_token(explicit: Optional[str] = None) -> str:
    """Pick the GitHub token: explicit value, then ``[github] token``, then ``GITHUB_TOKEN``."""
    if explicit:
        return explicit
    return str(load_github_config().get("token") or os.environ.get("GITHUB_TOKEN", ""))
