"""Lexical symbol, call and HTTP-entrypoint extraction.

This is line-oriented pattern matching, not a parser:

- a function runs from its ``def`` line to the next ``def`` line at any
  indentation (or EOF), so an inner ``def`` ends the enclosing function and
  the lines after it are attributed to the inner one;
- every ``identifier(`` inside a body counts as a call, which
  over-approximates edges but never misses a textual call.

The :class:`SymbolExtractor` interface keeps the graph and reachability
code independent of how symbols are found, so a parser-backed extractor
can replace :class:`LexicalPythonExtractor` later.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Set

DEF_RE = re.compile(r"^\s*(?:async\s+)?def\s+([A-Za-z_]\w*)\s*\(")
CALL_RE = re.compile(r"([A-Za-z_]\w*)\s*\(")
HTTP_VERB_DECORATOR_RE = re.compile(r"@(app|router)\.(get|post|put|delete|patch)\b", re.IGNORECASE)
ROUTE_DECORATOR_RE = re.compile(r"@.*route\(", re.IGNORECASE)

CALL_STOPLIST = frozenset({
    "def", "if", "elif", "for", "while", "return", "print", "with",
    "not", "and", "or", "in", "lambda", "except", "assert", "yield",
})


@dataclass
class ExtractionResult:
    """Output of an extractor over a whole ``{path: text}`` mapping."""

    function_bodies: Dict[str, List[str]] = field(default_factory=dict)
    defined_in: Dict[str, str] = field(default_factory=dict)
    entrypoints: Set[str] = field(default_factory=set)


class SymbolExtractor(ABC):
    """Abstract base class for symbol extractors."""

    @abstractmethod
    def function_bodies(self, text: str) -> Dict[str, List[str]]:
        """Map each function name to the lines of its body (definition line first)."""
        ...

    @abstractmethod
    def entrypoints(self, text: str) -> List[str]:
        """Names of functions bound to an HTTP route."""
        ...

    @abstractmethod
    def calls(self, body: List[str]) -> Set[str]:
        """Names called from a function body."""
        ...

    @abstractmethod
    def containing_function(self, text: str, line_number: int) -> Optional[str]:
        """Innermost function whose definition precedes *line_number*."""
        ...

    def extract(self, sources: Mapping[str, str]) -> ExtractionResult:
        """Run the extractor across every file.

        Functions are keyed by bare name; a later file's definition of the
        same name replaces the earlier body.
        """
        result = ExtractionResult()
        for path, text in sources.items():
            result.entrypoints.update(self.entrypoints(text))
            for name, body in self.function_bodies(text).items():
                result.function_bodies[name] = body
                result.defined_in[name] = path
        return result


class LexicalPythonExtractor(SymbolExtractor):
    """Regex-driven extractor for Python sources."""

    def __init__(self, lookahead: int = 5, stoplist: Optional[Set[str]] = None):
        self.lookahead = lookahead
        self.stoplist = frozenset(stoplist) if stoplist is not None else CALL_STOPLIST

    def function_bodies(self, text: str) -> Dict[str, List[str]]:
        funcs: Dict[str, List[str]] = {}
        current: Optional[str] = None

        for line in text.split("\n"):
            match = DEF_RE.match(line)
            if match:
                current = match.group(1)
                funcs[current] = [line]
                continue
            if current:
                funcs[current].append(line)

        return funcs

    @staticmethod
    def is_http_decorator(line: str) -> bool:
        stripped = line.strip()
        if not stripped.startswith("@"):
            return False
        return bool(HTTP_VERB_DECORATOR_RE.search(stripped) or ROUTE_DECORATOR_RE.search(stripped))

    def entrypoints(self, text: str) -> List[str]:
        lines = text.split("\n")
        found: List[str] = []

        for i in range(len(lines) - 1):
            if not self.is_http_decorator(lines[i]):
                continue
            for j in range(i + 1, min(i + 1 + self.lookahead, len(lines))):
                match = DEF_RE.match(lines[j])
                if match:
                    found.append(match.group(1))
                    break
                stripped = lines[j].strip()
                if stripped and not stripped.startswith("@"):
                    break

        return found

    def calls(self, body: List[str]) -> Set[str]:
        text = "\n".join(body)
        return {
            name for name in CALL_RE.findall(text)
            if name not in self.stoplist
        }

    def containing_function(self, text: str, line_number: int) -> Optional[str]:
        lines = text.split("\n")
        target = max(1, int(line_number or 1))

        for idx in range(min(len(lines), target) - 1, -1, -1):
            match = DEF_RE.match(lines[idx])
            if match:
                return match.group(1)
        return None
