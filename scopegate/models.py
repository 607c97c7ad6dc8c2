"""Core data models shared by the diff-scope and reachability pipelines."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Set

logger = logging.getLogger(__name__)


class Verdict(str, Enum):
    """Per-finding reachability classification.

    VERIFIED means "reachable under a best-effort lexical call graph",
    not "proven exploitable".
    """

    VERIFIED = "VERIFIED"
    REFUTED = "REFUTED"
    UNKNOWN = "UNKNOWN"


@dataclass
class EngineLimits:
    """Operator-tunable caps bounding cost against the code-hosting API."""

    max_pr_file_pages: int = 20
    pr_files_per_page: int = 100
    max_tree_candidates: int = 250
    max_fetched_files: int = 80
    max_findings: int = 200
    max_annotations: int = 50
    max_chain_depth: int = 50
    max_evidence_entrypoints: int = 20
    entrypoint_lookahead: int = 5
    fetch_workers: int = 8
    request_timeout: float = 20.0
    max_raw_details: int = 60000

    @classmethod
    def field_types(cls) -> Dict[str, type]:
        return {f.name: (float if f.name == "request_timeout" else int) for f in fields(cls)}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EngineLimits":
        """Build limits from a mapping, ignoring unknown keys.

        Values that do not coerce to the field's type, or are not positive,
        are skipped with a warning so the default applies.
        """
        types = cls.field_types()
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in types:
                continue
            try:
                coerced = types[key](value)
            except (TypeError, ValueError):
                logger.warning("Ignoring limit %s=%r: expected %s", key, value, types[key].__name__)
                continue
            if coerced <= 0:
                logger.warning("Ignoring limit %s=%r: must be positive", key, value)
                continue
            kwargs[key] = coerced
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Finding:
    """Finding record handed over by the dashboard layer."""

    rule_id: str
    file_path: str
    line_number: int
    severity: str = ""
    message: str = ""
    category: str = ""
    snippet: Optional[str] = None
    is_new: Optional[bool] = None
    is_suppressed: bool = False
    new_reason: Optional[str] = None
    finding_id: str = ""

    def __post_init__(self) -> None:
        if not self.finding_id:
            self.finding_id = f"{self.rule_id}::{self.file_path}::{self.line_number}"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Finding":
        """Build a finding, accepting the ``file``/``line`` aliases."""
        file_path = str(data.get("file_path") or data.get("file") or "")
        try:
            line_number = int(data.get("line_number") or data.get("line") or 1)
        except (TypeError, ValueError):
            line_number = 1
        is_new = data.get("is_new")
        return cls(
            rule_id=str(data.get("rule_id") or ""),
            file_path=file_path,
            line_number=line_number,
            severity=str(data.get("severity") or ""),
            message=str(data.get("message") or ""),
            category=str(data.get("category") or ""),
            snippet=data.get("snippet"),
            is_new=None if is_new is None else bool(is_new),
            is_suppressed=bool(data.get("is_suppressed", False)),
            new_reason=data.get("new_reason"),
            finding_id=str(data.get("finding_id") or ""),
        )


@dataclass
class DiffScope:
    """Changed files and added line numbers for the PR behind a commit.

    A path in ``files_missing_patch`` has no entry in
    ``changed_lines_by_file`` and counts as wholly changed.
    """

    repo_path: str
    pull_request_number: int
    base_ref: str
    base_commit: str
    head_commit: str
    changed_files: Set[str] = field(default_factory=set)
    changed_lines_by_file: Dict[str, Set[int]] = field(default_factory=dict)
    files_missing_patch: Set[str] = field(default_factory=set)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repo_path": self.repo_path,
            "pull_request_number": self.pull_request_number,
            "base_ref": self.base_ref,
            "base_commit": self.base_commit,
            "head_commit": self.head_commit,
            "changed_files": sorted(self.changed_files),
            "changed_lines_by_file": {
                path: sorted(lines) for path, lines in sorted(self.changed_lines_by_file.items())
            },
            "files_missing_patch": sorted(self.files_missing_patch),
        }


@dataclass
class SourceUnit:
    path: str
    raw_text: str


@dataclass
class CallGraph:
    """Name-keyed call graph; same-named functions in different files share a node."""

    edges: Dict[str, Set[str]] = field(default_factory=dict)
    defined_in: Dict[str, str] = field(default_factory=dict)


@dataclass
class Reachability:
    reachable: Set[str] = field(default_factory=set)
    parent: Dict[str, Optional[str]] = field(default_factory=dict)


@dataclass
class FindingVerdict:
    finding_id: str
    rule_id: str
    file_path: str
    line_number: int
    verdict: Verdict
    reason: str
    containing_function: Optional[str] = None
    evidence: Optional[Dict[str, List[Any]]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["verdict"] = self.verdict.value
        return data


@dataclass
class Annotation:
    path: str
    start_line: int
    end_line: int
    annotation_level: str
    title: str
    message: str
    raw_details: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.raw_details is None:
            data.pop("raw_details")
        return data


@dataclass
class CheckRunPayload:
    conclusion: str
    title: str
    summary: str
    annotations: List[Annotation] = field(default_factory=list)
    omitted_count: int = 0
    details_url: str = ""

    def to_request_body(self, name: str, head_sha: str) -> Dict[str, Any]:
        """Render the body for the check-run creation endpoint."""
        return {
            "name": name,
            "head_sha": head_sha,
            "status": "completed",
            "conclusion": self.conclusion,
            "details_url": self.details_url,
            "output": {
                "title": self.title,
                "summary": self.summary,
                "annotations": [a.to_dict() for a in self.annotations],
            },
        }
