"""Call graph construction and breadth-first reachability from entrypoints."""

from __future__ import annotations

from collections import deque
from typing import Dict, Iterable, List, Optional

from .extractor import ExtractionResult, SymbolExtractor
from .models import CallGraph, Reachability


def build_call_graph(extraction: ExtractionResult, extractor: SymbolExtractor) -> CallGraph:
    """Turn extracted bodies into name-keyed call edges.

    Nodes are bare identifiers: ``views.get_user`` and ``admin.get_user``
    collapse into one ``get_user`` node.
    """
    graph = CallGraph(defined_in=dict(extraction.defined_in))
    for name, body in extraction.function_bodies.items():
        graph.edges[name] = extractor.calls(body)
    return graph


def compute_reachability(graph: CallGraph, entrypoints: Iterable[str]) -> Reachability:
    """BFS from all entrypoints at once, recording the first discoverer of each node."""
    result = Reachability()
    queue = deque()

    for entry in sorted(set(entrypoints)):
        result.reachable.add(entry)
        result.parent[entry] = None
        queue.append(entry)

    while queue:
        current = queue.popleft()
        for nxt in sorted(graph.edges.get(current, ())):
            if nxt in result.reachable:
                continue
            result.reachable.add(nxt)
            result.parent[nxt] = current
            queue.append(nxt)

    return result


def build_chain(
    reachability: Reachability,
    function: str,
    defined_in: Optional[Dict[str, str]] = None,
    max_depth: int = 50,
) -> List[Dict[str, Optional[str]]]:
    """Walk parent pointers from *function* back to its entrypoint.

    Returns ``[{"fn": ..., "file": ...}, ...]`` ordered entrypoint first.
    """
    defined_in = defined_in or {}
    chain: List[Dict[str, Optional[str]]] = []
    current: Optional[str] = function
    steps = 0

    while current and steps < max_depth:
        chain.append({"fn": current, "file": defined_in.get(current)})
        current = reachability.parent.get(current)
        steps += 1

    chain.reverse()
    return chain
