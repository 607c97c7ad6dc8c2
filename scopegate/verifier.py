"""Per-finding reachability verdicts over a lexical call graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .callgraph import build_chain, compute_reachability
from .diff_scope import normalize_path
from .extractor import LexicalPythonExtractor, SymbolExtractor
from .models import CallGraph, EngineLimits, Finding, FindingVerdict, SourceUnit, Verdict

logger = logging.getLogger(__name__)

REASON_REACHABLE = "Reachable from an HTTP entrypoint (static callgraph)."
REASON_UNREACHABLE = "Not reachable from any detected entrypoint (static callgraph)."
REASON_NOT_FETCHED = "File not fetched from code host (private repo or missing token)."
REASON_NO_FUNCTION = "Could not locate containing function."


@dataclass
class VerificationReport:
    commit_sha: str
    verdicts: List[FindingVerdict] = field(default_factory=list)

    def count(self, verdict: Verdict) -> int:
        return sum(1 for v in self.verdicts if v.verdict is verdict)

    @property
    def verified_count(self) -> int:
        return self.count(Verdict.VERIFIED)

    @property
    def refuted_count(self) -> int:
        return self.count(Verdict.REFUTED)

    @property
    def unknown_count(self) -> int:
        return self.count(Verdict.UNKNOWN)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "commit_hash": self.commit_sha,
            "verified_count": self.verified_count,
            "refuted_count": self.refuted_count,
            "unknown_count": self.unknown_count,
            "results": [v.to_dict() for v in self.verdicts],
        }


class ReachabilityVerifier:
    """Classify findings as VERIFIED, REFUTED or UNKNOWN.

    Verdicts are advisory triage: VERIFIED only means the containing
    function is reachable in a best-effort call graph.
    """

    def __init__(
        self,
        limits: Optional[EngineLimits] = None,
        extractor: Optional[SymbolExtractor] = None,
    ):
        self.limits = limits or EngineLimits()
        self.extractor = extractor or LexicalPythonExtractor(lookahead=self.limits.entrypoint_lookahead)

    def verify(
        self,
        call_graph: CallGraph,
        entrypoints: Iterable[str],
        findings: Iterable[Finding],
        sources: Mapping[str, SourceUnit],
    ) -> List[FindingVerdict]:
        """Compute reachability once, then classify each finding against it."""
        entry_set = set(entrypoints)
        reachability = compute_reachability(call_graph, entry_set)
        evidence_entrypoints = sorted(entry_set)[: self.limits.max_evidence_entrypoints]
        texts = {normalize_path(path): unit.raw_text for path, unit in sources.items()}

        findings = list(findings)
        if len(findings) > self.limits.max_findings:
            logger.info("Verifying first %d of %d findings", self.limits.max_findings, len(findings))
            findings = findings[: self.limits.max_findings]

        verdicts: List[FindingVerdict] = []
        for finding in findings:
            base = dict(
                finding_id=finding.finding_id,
                rule_id=finding.rule_id,
                file_path=finding.file_path,
                line_number=finding.line_number,
            )

            text = texts.get(normalize_path(finding.file_path))
            if text is None:
                verdicts.append(FindingVerdict(verdict=Verdict.UNKNOWN, reason=REASON_NOT_FETCHED, **base))
                continue

            fn = self.extractor.containing_function(text, finding.line_number)
            if not fn:
                verdicts.append(FindingVerdict(verdict=Verdict.UNKNOWN, reason=REASON_NO_FUNCTION, **base))
                continue

            if fn in reachability.reachable:
                chain = build_chain(
                    reachability, fn, call_graph.defined_in, max_depth=self.limits.max_chain_depth
                )
                verdicts.append(FindingVerdict(
                    verdict=Verdict.VERIFIED,
                    reason=REASON_REACHABLE,
                    containing_function=fn,
                    evidence={"chain": chain},
                    **base,
                ))
            else:
                verdicts.append(FindingVerdict(
                    verdict=Verdict.REFUTED,
                    reason=REASON_UNREACHABLE,
                    containing_function=fn,
                    evidence={"entrypoints": list(evidence_entrypoints)},
                    **base,
                ))

        return verdicts
