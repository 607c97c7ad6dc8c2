"""Request-scoped engine coordinating diff scope, verification and annotation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Tuple

from . import config
from .callgraph import build_call_graph
from .check_run import CheckAnnotationEmitter
from .diff_scope import DiffScopeResolver, classify_new
from .extractor import ExtractionResult, LexicalPythonExtractor, SymbolExtractor
from .github_client import GitHubClient, parse_repo_path
from .models import CallGraph, CheckRunPayload, DiffScope, EngineLimits, Finding, SourceUnit
from .snapshot import RepositorySnapshotFetcher
from .verifier import ReachabilityVerifier, VerificationReport

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    sources: Dict[str, SourceUnit]
    extraction: ExtractionResult
    call_graph: CallGraph


class VerificationEngine:
    """Builds every intermediate structure from scratch per call; holds no cache."""

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: Optional[str] = None,
        app_base_url: Optional[str] = None,
        limits: Optional[EngineLimits] = None,
        client: Optional[GitHubClient] = None,
        extractor: Optional[SymbolExtractor] = None,
    ):
        self.limits = limits or config.default_limits()
        self.client = client or GitHubClient(
            token=config.resolve_token(token),
            api_url=api_url or config.GITHUB_API_URL,
            timeout=self.limits.request_timeout,
        )
        self.extractor = extractor or LexicalPythonExtractor(lookahead=self.limits.entrypoint_lookahead)
        self.resolver = DiffScopeResolver(self.client, self.limits)
        self.fetcher = RepositorySnapshotFetcher(self.client, self.limits)
        self.verifier = ReachabilityVerifier(self.limits, self.extractor)
        self.emitter = CheckAnnotationEmitter(
            self.client,
            self.limits,
            app_base_url=app_base_url if app_base_url is not None else config.APP_BASE_URL,
        )

    def diff_scope(self, repo_url: str, commit_sha: str) -> Optional[DiffScope]:
        return self.resolver.resolve(repo_url, commit_sha)

    def snapshot(self, repo_url: str, commit_sha: str) -> Snapshot:
        repo_path = parse_repo_path(repo_url)
        sources: Dict[str, SourceUnit] = {}
        if repo_path:
            sources = self.fetcher.fetch_sources(repo_path, commit_sha)
        else:
            logger.warning("Not a GitHub repository URL: %s", repo_url)

        extraction = self.extractor.extract({path: unit.raw_text for path, unit in sources.items()})
        graph = build_call_graph(extraction, self.extractor)
        logger.debug(
            "Call graph: %d functions, %d entrypoints",
            len(graph.edges), len(extraction.entrypoints),
        )
        return Snapshot(sources=sources, extraction=extraction, call_graph=graph)

    def verify(self, repo_url: str, commit_sha: str, findings: Iterable[Finding]) -> VerificationReport:
        snap = self.snapshot(repo_url, commit_sha)
        verdicts = self.verifier.verify(
            snap.call_graph, snap.extraction.entrypoints, findings, snap.sources
        )
        return VerificationReport(commit_sha=commit_sha, verdicts=verdicts)

    def classify(self, findings: Iterable[Finding], scope: Optional[DiffScope]) -> List[Finding]:
        """Return copies with ``is_new``/``new_reason`` filled where the caller left them unset.

        The input findings are not modified.
        """
        classified: List[Finding] = []
        for finding in findings:
            if finding.is_new is None:
                is_new, reason = classify_new(finding, scope)
                finding = replace(finding, is_new=is_new, new_reason=reason)
            classified.append(finding)
        return classified

    def annotate(
        self,
        repo_url: str,
        commit_sha: str,
        findings: Iterable[Finding],
        passed_gate: bool,
        scan_id: str = "",
        publish: bool = True,
    ) -> Tuple[CheckRunPayload, bool]:
        scope = self.diff_scope(repo_url, commit_sha)
        findings = self.classify(findings, scope)
        payload = self.emitter.build(passed_gate, findings, scope, scan_id=scan_id)
        published = self.emitter.publish(payload, repo_url, commit_sha) if publish else False
        return payload, published
