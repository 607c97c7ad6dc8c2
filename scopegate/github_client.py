"""Thin GitHub REST client used by the diff-scope, snapshot and check-run layers."""

from __future__ import annotations

import logging
import re
import urllib.parse
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

_REPO_URL_RE = re.compile(r"github\.com/([^/]+/[^/]+?)(?:\.git)?/?$", re.IGNORECASE)

API_VERSION = "2022-11-28"
PULLS_PREVIEW_ACCEPT = "application/vnd.github+json, application/vnd.github.groot-preview+json"


class GitHubAPIError(RuntimeError):
    """Raised when the API answers with a non-2xx status."""

    def __init__(self, status: int, message: str):
        super().__init__(f"GitHub API {status}: {message}")
        self.status = status
        self.message = message


def parse_repo_path(repo_url: Optional[str]) -> Optional[str]:
    """Return ``owner/repo`` for a GitHub URL, or None if it is not one."""
    if not repo_url:
        return None
    match = _REPO_URL_RE.search(str(repo_url).strip())
    return match.group(1) if match else None


class GitHubClient:
    """Bearer-token JSON client with a request timeout on every call.

    GETs are idempotent and retried once on a transport failure; POSTs
    are sent exactly once so a check run is never created twice.
    """

    def __init__(
        self,
        token: str = "",
        api_url: str = "https://api.github.com",
        timeout: float = 20.0,
        session: Optional[requests.Session] = None,
    ):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def has_token(self) -> bool:
        return bool(self.token)

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if extra:
            headers.update(extra)
        return headers

    def _url(self, path: str) -> str:
        return f"{self.api_url}/{path.lstrip('/')}"

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        if not response.ok:
            raise GitHubAPIError(response.status_code, response.text or response.reason or "")
        return response.json()

    def get_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = self._url(path)
        attempts = 2
        for attempt in range(1, attempts + 1):
            try:
                response = self.session.get(
                    url, params=params, headers=self._headers(headers), timeout=self.timeout
                )
            except (requests.ConnectionError, requests.Timeout) as exc:
                if attempt == attempts:
                    raise
                logger.debug("GET %s failed (%s), retrying once", url, exc)
                continue
            return self._decode(response)
        return None

    def post_json(self, path: str, body: Dict[str, Any]) -> Any:
        response = self.session.post(
            self._url(path), json=body, headers=self._headers(), timeout=self.timeout
        )
        return self._decode(response)

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def list_commit_pulls(self, repo_path: str, sha: str) -> List[Dict[str, Any]]:
        data = self.get_json(
            f"repos/{repo_path}/commits/{sha}/pulls", headers={"Accept": PULLS_PREVIEW_ACCEPT}
        )
        return data if isinstance(data, list) else []

    def get_pull(self, repo_path: str, number: int) -> Dict[str, Any]:
        data = self.get_json(f"repos/{repo_path}/pulls/{number}")
        return data if isinstance(data, dict) else {}

    def list_pull_files(self, repo_path: str, number: int, page: int, per_page: int) -> List[Dict[str, Any]]:
        data = self.get_json(
            f"repos/{repo_path}/pulls/{number}/files",
            params={"per_page": per_page, "page": page},
        )
        return data if isinstance(data, list) else []

    def get_tree(self, repo_path: str, sha: str) -> Dict[str, Any]:
        data = self.get_json(f"repos/{repo_path}/git/trees/{sha}", params={"recursive": 1})
        return data if isinstance(data, dict) else {}

    def get_contents(self, repo_path: str, path: str, ref: str) -> Dict[str, Any]:
        quoted = urllib.parse.quote(path, safe="/")
        data = self.get_json(f"repos/{repo_path}/contents/{quoted}", params={"ref": ref})
        return data if isinstance(data, dict) else {}

    def create_check_run(self, repo_path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.post_json(f"repos/{repo_path}/check-runs", body)
