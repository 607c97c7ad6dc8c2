"""Tests for call graph construction and BFS reachability."""

from scopegate.callgraph import build_call_graph, build_chain, compute_reachability
from scopegate.extractor import LexicalPythonExtractor
from scopegate.models import CallGraph


def _graph(edges):
    return CallGraph(edges={k: set(v) for k, v in edges.items()})


def test_build_call_graph_from_sample(sample_texts):
    extractor = LexicalPythonExtractor()
    graph = build_call_graph(extractor.extract(sample_texts), extractor)

    assert {"load_user", "render"} <= graph.edges["get_user"]
    assert "db_execute" in graph.edges["load_user"]
    assert "system" in graph.edges["run_task"]
    assert graph.defined_in["admin_panel"] == "app/admin.py"
    assert graph.defined_in["orphan"] == "app/views.py"


def test_handler_reaches_helper():
    graph = _graph({"handler": ["helper"], "helper": []})
    result = compute_reachability(graph, {"handler"})

    assert result.reachable == {"handler", "helper"}
    assert result.parent == {"handler": None, "helper": "handler"}
    assert [step["fn"] for step in build_chain(result, "helper")] == ["handler", "helper"]


def test_uncalled_function_is_unreachable():
    graph = _graph({"handler": ["helper"], "helper": [], "orphan": ["helper"]})
    assert "orphan" not in compute_reachability(graph, {"handler"}).reachable


def test_bfs_records_shortest_hop_parent():
    graph = _graph({
        "entry": ["a", "b"],
        "a": ["c"],
        "b": ["d"],
        "d": ["target"],
        "c": ["target"],
    })
    result = compute_reachability(graph, ["entry"])
    chain = [step["fn"] for step in build_chain(result, "target")]
    assert len(chain) == 4
    assert chain[0] == "entry"
    assert chain[-1] == "target"


def test_cycles_terminate():
    graph = _graph({"a": ["b"], "b": ["c"], "c": ["a"]})
    result = compute_reachability(graph, ["a"])
    assert result.reachable == {"a", "b", "c"}
    assert [step["fn"] for step in build_chain(result, "c")] == ["a", "b", "c"]


def test_multiple_entrypoints_start_together():
    graph = _graph({"e1": ["x"], "e2": ["y"], "x": [], "y": []})
    result = compute_reachability(graph, ["e1", "e2"])
    assert result.reachable == {"e1", "e2", "x", "y"}
    assert result.parent["y"] == "e2"


def test_no_entrypoints_reaches_nothing():
    graph = _graph({"a": ["b"]})
    assert compute_reachability(graph, []).reachable == set()


def test_adding_edges_or_entrypoints_only_grows_reachability():
    base = {"e": ["a"], "a": ["b"], "b": [], "c": ["d"], "d": [], "f": []}
    before = compute_reachability(_graph(base), {"e"}).reachable

    with_edge = dict(base, b=["c"])
    after_edge = compute_reachability(_graph(with_edge), {"e"}).reachable
    assert before <= after_edge
    assert {"c", "d"} <= after_edge

    after_entry = compute_reachability(_graph(base), {"e", "f"}).reachable
    assert before <= after_entry
    assert "f" in after_entry


def test_reachability_is_deterministic():
    graph = _graph({"e": ["z", "a", "m"], "a": ["t"], "m": ["t"], "z": ["t"]})
    first = compute_reachability(graph, {"e"})
    second = compute_reachability(graph, {"e"})
    assert first.parent == second.parent


def test_chain_is_capped():
    names = [f"f{i}" for i in range(10)]
    graph = _graph({names[i]: [names[i + 1]] for i in range(9)})
    result = compute_reachability(graph, ["f0"])
    chain = build_chain(result, "f9", max_depth=4)
    assert [step["fn"] for step in chain] == ["f6", "f7", "f8", "f9"]


def test_chain_includes_defining_file():
    graph = CallGraph(edges={"h": {"g"}, "g": set()}, defined_in={"h": "views.py", "g": "util.py"})
    result = compute_reachability(graph, ["h"])
    assert build_chain(result, "g", graph.defined_in) == [
        {"fn": "h", "file": "views.py"},
        {"fn": "g", "file": "util.py"},
    ]
