"""Fetch a bounded snapshot of a repository's source files at a commit."""

from __future__ import annotations

import base64
import binascii
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Optional

import requests

from .config import SUPPORTED_EXTENSIONS
from .github_client import GitHubAPIError, GitHubClient
from .models import EngineLimits, SourceUnit

logger = logging.getLogger(__name__)


class RepositorySnapshotFetcher:
    """Lists candidate files and downloads their text, one request per file."""

    def __init__(
        self,
        client: GitHubClient,
        limits: Optional[EngineLimits] = None,
        extensions: Optional[Iterable[str]] = None,
    ):
        self.client = client
        self.limits = limits or EngineLimits()
        self.extensions = set(extensions or SUPPORTED_EXTENSIONS)

    def fetch_tree(self, repo_path: str, sha: str) -> List[str]:
        """Return supported-language blob paths at *sha*, capped at the candidate limit."""
        try:
            tree = self.client.get_tree(repo_path, sha)
        except (GitHubAPIError, requests.RequestException) as exc:
            logger.warning("Could not list tree for %s@%s: %s", repo_path, sha, exc)
            return []

        entries = tree.get("tree") if isinstance(tree.get("tree"), list) else []
        paths = [
            entry["path"]
            for entry in entries
            if entry.get("type") == "blob"
            and isinstance(entry.get("path"), str)
            and PurePosixPath(entry["path"]).suffix in self.extensions
        ]

        cap = self.limits.max_tree_candidates
        if len(paths) > cap:
            logger.info("Tree has %d candidate files; keeping first %d", len(paths), cap)
        return paths[:cap]

    def fetch_file(self, repo_path: str, path: str, ref: str) -> Optional[str]:
        """Return decoded file text, or None when it cannot be fetched or decoded."""
        try:
            data = self.client.get_contents(repo_path, path, ref)
        except (GitHubAPIError, requests.RequestException) as exc:
            logger.warning("Could not fetch %s@%s: %s", path, ref, exc)
            return None

        content = data.get("content")
        if not content or data.get("encoding") != "base64":
            return None
        try:
            raw = base64.b64decode(str(content).replace("\n", ""), validate=True)
            return raw.decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            logger.info("Skipping undecodable file %s: %s", path, exc)
            return None

    def fetch_sources(self, repo_path: str, sha: str) -> Dict[str, SourceUnit]:
        """Download up to ``max_fetched_files`` candidates concurrently.

        A failed file is simply absent from the result; the batch carries on.
        """
        candidates = self.fetch_tree(repo_path, sha)[: self.limits.max_fetched_files]
        if not candidates:
            return {}

        workers = max(1, min(self.limits.fetch_workers, len(candidates)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            texts = list(pool.map(lambda p: self.fetch_file(repo_path, p, sha), candidates))

        sources = {
            path: SourceUnit(path=path, raw_text=text)
            for path, text in zip(candidates, texts)
            if text is not None
        }
        logger.debug("Fetched %d/%d source files for %s@%s", len(sources), len(candidates), repo_path, sha)
        return sources
