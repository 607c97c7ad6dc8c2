"""Resolve which files and lines a pull request changed for a given commit.

The resolver maps a commit SHA to its pull request, pages through the
PR's file list and parses each unified-diff ``patch`` into the set of
new-file line numbers that were added.  A ``None`` scope means "no PR
context": callers must treat it as "scope everything", never as an error.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Set, Tuple

import requests

from .config import LOCAL_SHA
from .github_client import GitHubAPIError, GitHubClient, parse_repo_path
from .models import DiffScope, EngineLimits, Finding

logger = logging.getLogger(__name__)

_HUNK_RE = re.compile(r"^@@ -\d+(?:,\d+)? \+(\d+)(?:,\d+)? @@")

NEW_REASON_LINE = "pr-changed-line"
NEW_REASON_FILE = "pr-file-fallback"
NEW_REASON_NON_PR = "non-pr"


def normalize_path(path: Optional[str]) -> str:
    """Forward slashes, no leading slash; used for every path-keyed lookup."""
    return str(path or "").replace("\\", "/").lstrip("/").strip()


def changed_lines_from_patch(patch: str) -> Set[int]:
    """Return new-file line numbers of the ``+`` lines in a unified-diff patch.

    The counter resets at each hunk header and advances on context and
    added lines only; removed lines never move it.
    """
    changed: Set[int] = set()
    new_line = 0

    for raw in patch.split("\n"):
        match = _HUNK_RE.match(raw)
        if match:
            new_line = int(match.group(1))
            continue
        if new_line == 0:
            continue
        if raw.startswith("+++ ") or raw.startswith("--- "):
            continue

        if raw.startswith("+"):
            changed.add(new_line)
            new_line += 1
        elif raw.startswith(" "):
            new_line += 1
        # "-" lines and "\ No newline at end of file" leave the counter alone

    return changed


def classify_new(finding: Finding, scope: Optional[DiffScope]) -> Tuple[bool, Optional[str]]:
    """Decide whether a finding falls inside the diff scope.

    Returns:
        ``(is_new, new_reason)`` where the reason is ``pr-changed-line``
        for an exact line match, ``pr-file-fallback`` when the file has
        no line map, or ``non-pr`` when there is no scope at all, in which
        case everything is in scope. A file the PR never touched yields
        ``(False, None)``.
    """
    if scope is None:
        return True, NEW_REASON_NON_PR

    path = normalize_path(finding.file_path)
    line_set = scope.changed_lines_by_file.get(path)
    if line_set is not None:
        return finding.line_number in line_set, NEW_REASON_LINE
    if path in scope.changed_files:
        return True, NEW_REASON_FILE
    return False, None


def is_new_by_diff(file_path: str, line_number: int, scope: Optional[DiffScope]) -> bool:
    finding = Finding(rule_id="", file_path=file_path, line_number=line_number)
    return classify_new(finding, scope)[0]


class DiffScopeResolver:
    """Compute a fresh :class:`DiffScope` per request; nothing is cached."""

    def __init__(self, client: GitHubClient, limits: Optional[EngineLimits] = None):
        self.client = client
        self.limits = limits or EngineLimits()

    def resolve(self, repo_url: Optional[str], commit_sha: Optional[str]) -> Optional[DiffScope]:
        """Return the diff scope for *commit_sha*, or None when unavailable.

        Upstream failures degrade to None and are logged, never raised.
        """
        if not self.client.has_token:
            logger.info("No GitHub token configured; diff scope disabled")
            return None
        if not repo_url or not commit_sha or commit_sha == LOCAL_SHA:
            return None

        repo_path = parse_repo_path(repo_url)
        if not repo_path:
            logger.info("Not a GitHub repository URL: %s", repo_url)
            return None

        try:
            return self._resolve(repo_path, commit_sha)
        except (GitHubAPIError, requests.RequestException) as exc:
            logger.warning("Diff scope unavailable for %s@%s: %s", repo_path, commit_sha, exc)
            return None

    def _resolve(self, repo_path: str, commit_sha: str) -> Optional[DiffScope]:
        pr_number = self._find_pull_number(repo_path, commit_sha)
        if not pr_number:
            logger.debug("No pull request associated with %s@%s", repo_path, commit_sha)
            return None

        detail = self.client.get_pull(repo_path, pr_number)
        base = detail.get("base") or {}
        head = detail.get("head") or {}

        scope = DiffScope(
            repo_path=repo_path,
            pull_request_number=pr_number,
            base_ref=str(base.get("ref") or ""),
            base_commit=str(base.get("sha") or ""),
            head_commit=str(head.get("sha") or commit_sha),
        )

        for entry in self._list_pull_files(repo_path, pr_number):
            name = normalize_path(entry.get("filename"))
            if not name:
                continue
            scope.changed_files.add(name)
            patch = entry.get("patch")
            if patch:
                scope.changed_lines_by_file[name] = changed_lines_from_patch(str(patch))
            else:
                scope.files_missing_patch.add(name)

        return scope

    def _find_pull_number(self, repo_path: str, commit_sha: str) -> Optional[int]:
        # First PR returned by the API wins when several reference the commit
        pulls = self.client.list_commit_pulls(repo_path, commit_sha)
        if not pulls:
            return None
        number = pulls[0].get("number")
        return int(number) if number else None

    def _list_pull_files(self, repo_path: str, pr_number: int) -> list:
        files: list = []
        per_page = self.limits.pr_files_per_page

        for page in range(1, self.limits.max_pr_file_pages + 1):
            batch = self.client.list_pull_files(repo_path, pr_number, page=page, per_page=per_page)
            if not batch:
                break
            files.extend(batch)
            if len(batch) < per_page:
                break
        else:
            logger.warning(
                "PR #%s file list truncated at %d pages", pr_number, self.limits.max_pr_file_pages
            )

        return files
