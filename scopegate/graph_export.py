"""Graphviz DOT export of a commit's call graph."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Set

from .callgraph import compute_reachability
from .models import CallGraph


def render_dot(graph: CallGraph, entrypoints: Iterable[str], focus: str = "") -> str:
    entry_set = set(entrypoints)
    reachable = compute_reachability(graph, entry_set).reachable
    selected = _focused_subgraph(graph, focus)

    lines = ["digraph CallGraph {"]
    lines.append("  rankdir=LR;")

    for name in sorted(selected["nodes"]):
        attrs = [f'label="{_esc(name)}"']
        if name in graph.defined_in:
            attrs.append(f'tooltip="{_esc(graph.defined_in[name])}"')
        if name in entry_set:
            attrs.append("shape=box")
        if name in reachable:
            attrs.append('style=filled fillcolor="#f6c7c7"')
        lines.append(f'  "{_esc(name)}" [{" ".join(attrs)}];')

    for src, dst in selected["edges"]:
        lines.append(f'  "{_esc(src)}" -> "{_esc(dst)}";')

    lines.append("}")
    return "\n".join(lines)


def export_dot(graph: CallGraph, entrypoints: Iterable[str], output_file: Path, focus: str = "") -> None:
    output_file.write_text(render_dot(graph, entrypoints, focus), encoding="utf-8")


def _focused_subgraph(graph: CallGraph, focus: str) -> Dict[str, List]:
    # Only defined functions are drawn; calls into builtins/libraries are dropped
    defined: Set[str] = set(graph.edges)
    all_edges = sorted(
        (src, dst) for src, targets in graph.edges.items() for dst in targets if dst in defined
    )
    if not focus:
        return {"nodes": defined, "edges": all_edges}

    focus_names = {name for name in defined if focus in name}
    if not focus_names:
        return {"nodes": defined, "edges": all_edges}

    edge_subset = [e for e in all_edges if e[0] in focus_names or e[1] in focus_names]
    node_subset = set(focus_names)
    for src, dst in edge_subset:
        node_subset.add(src)
        node_subset.add(dst)
    return {"nodes": node_subset, "edges": edge_subset}


def _esc(text: str) -> str:
    return text.replace('"', '\\"')
