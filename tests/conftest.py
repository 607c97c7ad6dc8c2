"""Pytest configuration and fixtures for Scopegate tests."""

import base64
from pathlib import Path
from typing import Dict
from unittest.mock import MagicMock

import pytest

from scopegate.github_client import GitHubClient
from scopegate.models import EngineLimits, SourceUnit


VIEWS_PY = '''from fastapi import FastAPI

app = FastAPI()


@app.get("/users/{user_id}")
async def get_user(user_id: int):
    record = load_user(user_id)
    return render(record)


def load_user(user_id):
    query = "SELECT * FROM users WHERE id = %s" % user_id
    return db_execute(query)


def db_execute(query):
    return cursor.execute(query)


def render(record):
    return {"user": record}


def orphan():
    return eval("1 + 1")
'''

ADMIN_PY = '''import os

CONSTANT = 3

@bp.route("/admin", methods=["POST"])
@login_required
def admin_panel():
    if is_admin():
        return run_task()
    return None


def is_admin():
    return True


def run_task():
    os.system("ls")
'''


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch):
    """Point the TOML config at a temp file so tests never read ~/.scopegate."""
    config_file = tmp_path / "config.toml"
    monkeypatch.setattr("scopegate.config_manager.CONFIG_FILE", config_file)
    monkeypatch.setattr("scopegate.config.CONFIG_FILE", config_file)
    return config_file


@pytest.fixture
def limits() -> EngineLimits:
    return EngineLimits()


@pytest.fixture
def sample_texts() -> Dict[str, str]:
    return {"app/views.py": VIEWS_PY, "app/admin.py": ADMIN_PY}


@pytest.fixture
def sample_sources(sample_texts) -> Dict[str, SourceUnit]:
    return {path: SourceUnit(path=path, raw_text=text) for path, text in sample_texts.items()}


def encode_content(text: str) -> Dict[str, str]:
    """Mimic the contents API: base64 wrapped at 60 columns."""
    encoded = base64.b64encode(text.encode("utf-8")).decode("ascii")
    wrapped = "\n".join(encoded[i:i + 60] for i in range(0, len(encoded), 60))
    return {"content": wrapped, "encoding": "base64"}


@pytest.fixture
def mock_client() -> MagicMock:
    """GitHubClient stand-in with a token and no network access."""
    client = MagicMock(spec=GitHubClient)
    client.has_token = True
    client.list_commit_pulls.return_value = []
    client.get_pull.return_value = {}
    client.list_pull_files.return_value = []
    client.get_tree.return_value = {"tree": []}
    client.get_contents.return_value = {}
    client.create_check_run.return_value = {"id": 1}
    return client


@pytest.fixture
def repo_client(mock_client: MagicMock, sample_texts) -> MagicMock:
    """Mock client serving the sample repository tree and file contents."""
    tree = [{"path": path, "type": "blob"} for path in sample_texts]
    tree += [
        {"path": "app", "type": "tree"},
        {"path": "README.md", "type": "blob"},
    ]
    mock_client.get_tree.return_value = {"tree": tree}

    def _contents(repo_path, path, ref):
        return encode_content(sample_texts[path])

    mock_client.get_contents.side_effect = _contents
    return mock_client


@pytest.fixture
def encode():
    return encode_content
