"""Tests for TOML configuration and engine limits."""

import logging

from scopegate import config
from scopegate.config_manager import (
    load_full_config,
    load_github_config,
    save_github_setting,
    save_limit,
)
from scopegate.models import EngineLimits
from scopegate.orchestrator import VerificationEngine


def test_defaults_without_config_file():
    limits = config.default_limits()
    assert limits == EngineLimits()
    assert limits.max_annotations == 50
    assert limits.max_fetched_files == 80


def test_limits_from_mapping_coerces_and_ignores_unknown():
    limits = EngineLimits.from_mapping({"max_findings": "12", "request_timeout": 3, "bogus": 1})
    assert limits.max_findings == 12
    assert limits.request_timeout == 3.0
    assert isinstance(limits.request_timeout, float)


def test_saved_limit_overrides_default():
    assert save_limit("max_tree_candidates", 10)
    assert config.default_limits().max_tree_candidates == 10
    assert config.default_limits().max_findings == 200


def test_sections_are_preserved(_isolated_config):
    save_limit("max_findings", 5)
    save_github_setting("api_url", "https://ghe.example.com/api/v3")

    data = load_full_config()
    assert data["limits"] == {"max_findings": 5}
    assert load_github_config() == {"api_url": "https://ghe.example.com/api/v3"}
    assert _isolated_config.exists()


def test_corrupt_file_yields_empty_config(_isolated_config):
    _isolated_config.write_text("this is = = not toml")
    assert load_full_config() == {}
    assert config.default_limits() == EngineLimits()


def test_non_numeric_limit_is_skipped(_isolated_config, caplog):
    _isolated_config.write_text('[limits]\nmax_annotations = "fifty"\nmax_findings = 9\n')

    with caplog.at_level(logging.WARNING, logger="scopegate.models"):
        limits = config.default_limits()

    assert limits.max_annotations == 50
    assert limits.max_findings == 9
    assert "max_annotations" in caplog.text


def test_non_positive_limits_are_skipped(_isolated_config):
    _isolated_config.write_text("[limits]\nmax_annotations = -1\nrequest_timeout = 0\n")
    limits = config.default_limits()
    assert limits.max_annotations == 50
    assert limits.request_timeout == 20.0


def test_token_precedence(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "env-token")
    assert config.resolve_token() == "env-token"

    save_github_setting("token", "toml-token")
    assert config.resolve_token() == "toml-token"
    assert config.resolve_token("cli-token") == "cli-token"


def test_engine_uses_resolved_token(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "env-token")
    save_github_setting("token", "toml-token")

    assert VerificationEngine().client.token == "toml-token"
    assert VerificationEngine(token="cli-token").client.token == "cli-token"
