"""Build and publish the pull request gate check run."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

import requests

from .config import CHECK_RUN_NAME, LOCAL_SHA
from .diff_scope import NEW_REASON_FILE, NEW_REASON_LINE, normalize_path
from .github_client import GitHubAPIError, GitHubClient, parse_repo_path
from .models import Annotation, CheckRunPayload, DiffScope, EngineLimits, Finding

logger = logging.getLogger(__name__)


def severity_to_level(severity: Optional[str]) -> str:
    sev = str(severity or "").upper()
    if sev in ("CRITICAL", "HIGH"):
        return "failure"
    if sev == "MEDIUM":
        return "warning"
    return "notice"


class CheckAnnotationEmitter:
    """Turns caller-classified findings into one check run.

    Newness and the gate decision are the caller's; this class only caps,
    renders and publishes.
    """

    def __init__(
        self,
        client: GitHubClient,
        limits: Optional[EngineLimits] = None,
        app_base_url: str = "",
        check_name: str = CHECK_RUN_NAME,
    ):
        self.client = client
        self.limits = limits or EngineLimits()
        self.app_base_url = app_base_url.rstrip("/")
        self.check_name = check_name

    def details_url(self, scan_id: str) -> str:
        return f"{self.app_base_url}/dashboard/scans/{scan_id}"

    def _annotation(self, finding: Finding) -> Annotation:
        raw = (finding.snippet or "")[: self.limits.max_raw_details]
        line = int(finding.line_number or 1) or 1
        title = finding.rule_id + (f" • {finding.category}" if finding.category else "")
        message = (finding.message or "Issue") + (
            f" [scope:{finding.new_reason}]" if finding.new_reason else ""
        )
        return Annotation(
            path=normalize_path(finding.file_path),
            start_line=line,
            end_line=line,
            annotation_level=severity_to_level(finding.severity),
            title=title,
            message=message,
            raw_details=raw or None,
        )

    def build(
        self,
        passed_gate: bool,
        findings: Iterable[Finding],
        diff_scope: Optional[DiffScope] = None,
        scan_id: str = "",
    ) -> CheckRunPayload:
        """Render the payload without touching the network."""
        candidates = [f for f in findings if f.is_new and not f.is_suppressed]
        annotations = [self._annotation(f) for f in candidates[: self.limits.max_annotations]]
        omitted = max(0, len(candidates) - len(annotations))
        details_url = self.details_url(scan_id)

        summary = self._summary(candidates, annotations, omitted, diff_scope, details_url)
        return CheckRunPayload(
            conclusion="success" if passed_gate else "failure",
            title="Quality Gate Passed" if passed_gate else "Quality Gate Failed",
            summary=summary,
            annotations=annotations,
            omitted_count=omitted,
            details_url=details_url,
        )

    @staticmethod
    def _summary(
        candidates: List[Finding],
        annotations: List[Annotation],
        omitted: int,
        scope: Optional[DiffScope],
        details_url: str,
    ) -> str:
        lines = [f"**New unsuppressed issues (PR gate):** {len(candidates)}"]
        if scope is not None:
            by_line = sum(1 for f in candidates if f.new_reason == NEW_REASON_LINE)
            by_file = sum(1 for f in candidates if f.new_reason == NEW_REASON_FILE)
            lines.append(f"- changed-line hits: {by_line}")
            lines.append(f"- file-fallback hits: {by_file}")
        lines.append("")

        if scope is not None:
            missing = len(scope.files_missing_patch)
            lines.append(f"**PR:** #{scope.pull_request_number}")
            lines.append(
                f"**Range:** {scope.base_ref}@{scope.base_commit[:7]} → {scope.head_commit[:7]}"
            )
            lines.append(
                "**Scope:** changed-lines"
                + (f" (fallback-to-file for {missing} file(s) without patch)" if missing else "")
            )
            lines.append(f"**Files changed:** {len(scope.changed_files)}")
        else:
            lines.append("**PR:** (not detected from sha)")
            lines.append("**Scope:** (no diff context; showing all is_new findings)")

        lines.append("")
        if omitted > 0:
            lines.append(f"Showing first {len(annotations)}. {omitted} more omitted.")
            lines.append("")
        lines.append(f"Open full details: {details_url}")
        return "\n".join(lines)

    def publish(self, payload: CheckRunPayload, repo_url: Optional[str], commit_sha: Optional[str]) -> bool:
        """Create the check run once; returns False when skipped or failed.

        Not retried on failure so a flaky network never yields duplicate runs.
        """
        if not self.client.has_token:
            logger.info("No GitHub token configured; check run not published")
            return False
        repo_path = parse_repo_path(repo_url)
        if not repo_path:
            return False
        if not commit_sha or commit_sha == LOCAL_SHA:
            return False

        body = payload.to_request_body(self.check_name, commit_sha)
        try:
            self.client.create_check_run(repo_path, body)
        except (GitHubAPIError, requests.RequestException) as exc:
            logger.warning("Failed to create check run for %s@%s: %s", repo_path, commit_sha, exc)
            return False
        return True

    def emit(
        self,
        passed_gate: bool,
        findings: Iterable[Finding],
        diff_scope: Optional[DiffScope],
        repo_url: Optional[str],
        commit_sha: Optional[str],
        scan_id: str = "",
    ) -> CheckRunPayload:
        payload = self.build(passed_gate, findings, diff_scope, scan_id=scan_id)
        self.publish(payload, repo_url, commit_sha)
        return payload
