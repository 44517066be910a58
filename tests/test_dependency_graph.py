"""Tests for graph ingestion: forward references, duplicates, cycles, rdeps."""

import pytest

from depsaw.errors import CycleError, DuplicateTargetError, UnknownTargetError
from depsaw.analysis.dependency_graph import DependencyGraphBuilder, build_graph
from depsaw.analysis.graph_models import File, Target


def _t(label, deps=(), data=(), kind="lib"):
    return Target(label=label, kind=kind, deps=frozenset(deps), data=frozenset(data))


class TestDependencyGraphBuilder:
    def test_build_empty(self):
        graph = build_graph([])
        assert len(graph) == 0
        assert graph.edge_count == 0

    def test_forward_references(self):
        # A references B and C before either is defined
        graph = build_graph([
            _t("A", deps=["B", "C"]),
            _t("B", deps=["D"]),
            _t("C", deps=["D"]),
            _t("D", data=["src/d.py"]),
        ])
        assert set(graph.targets) == {"A", "B", "C", "D"}
        assert set(graph.files) == {"src/d.py"}
        assert graph.files["src/d.py"].path == "src/d.py"

    def test_diamond_is_not_collapsed(self):
        graph = build_graph([_t("A", deps=["B", "C"]), _t("B", deps=["D"]), _t("C", deps=["D"]), _t("D")])
        assert graph.dependents("D") == frozenset({"B", "C"})
        assert graph.edge_count == 4

    def test_rdeps_match_declared_deps(self):
        targets = [
            _t("A", deps=["B", "C", "D"]),
            _t("B", deps=["D"]),
            _t("C", deps=["D", "E"]),
            _t("D", data=["f1"]),
            _t("E", data=["f1", "f2"]),
        ]
        graph = build_graph(targets)
        for label in graph.targets:
            expected = {t.label for t in targets if label in t.children}
            assert graph.dependents(label) == expected
        assert graph.dependents("f1") == frozenset({"D", "E"})
        assert graph.dependents("A") == frozenset()

    def test_undefined_dependency_becomes_leaf(self):
        graph = build_graph([_t("//a:x", deps=["@ext//:lib"])])
        assert not graph.is_target("@ext//:lib")
        assert graph.files["@ext//:lib"].path is None

    def test_data_label_defined_as_target_stays_target(self):
        graph = build_graph([_t("A", data=["//tools:gen"]), _t("//tools:gen")])
        assert graph.is_target("//tools:gen")
        assert "//tools:gen" not in graph.files

    def test_explicit_source_file(self):
        graph = build_graph([_t("//a:x", data=["//a:x.py"]), File("//a:x.py", "a/x.py")])
        assert graph.file_path("//a:x.py") == "a/x.py"

    def test_identical_redefinition_is_accepted(self):
        graph = build_graph([_t("A", deps=["B"]), _t("B"), _t("A", deps=["B"])])
        assert len(graph.targets) == 2

    def test_differing_redefinition(self):
        builder = DependencyGraphBuilder()
        builder.add(_t("A", deps=["B"]))
        with pytest.raises(DuplicateTargetError) as exc:
            builder.add(_t("A", deps=["C"]))
        assert exc.value.label == "A"

    def test_label_defined_as_target_and_file(self):
        with pytest.raises(DuplicateTargetError):
            build_graph([_t("A"), File("A", "A")])

    def test_cycle_detected(self):
        with pytest.raises(CycleError) as exc:
            build_graph([_t("A", deps=["B"]), _t("B", deps=["C"]), _t("C", deps=["A"])])
        cycle = exc.value.cycle
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"A", "B", "C"}

    def test_self_dependency_is_a_cycle(self):
        with pytest.raises(CycleError):
            build_graph([_t("A", deps=["A"])])

    def test_cycle_through_data_edge(self):
        with pytest.raises(CycleError):
            build_graph([_t("A", deps=["B"]), _t("B", data=["A"])])

    def test_topological_order(self):
        graph = build_graph([_t("A", deps=["B", "C"]), _t("B", deps=["D"]), _t("C", deps=["D"]), _t("D")])
        position = {label: i for i, label in enumerate(graph.order)}
        assert set(position) == {"A", "B", "C", "D"}
        for target in graph.targets.values():
            for dep in target.deps:
                assert position[dep] < position[target.label]

    def test_deep_chain_does_not_recurse(self):
        chain = [_t(f"t{i}", deps=[f"t{i + 1}"]) for i in range(5000)] + [_t("t5000")]
        graph = build_graph(chain)
        assert graph.order[0] == "t5000"
        assert graph.order[-1] == "t0"

    def test_builder_is_single_use(self):
        builder = DependencyGraphBuilder()
        builder.add(_t("A"))
        builder.build()
        with pytest.raises(RuntimeError):
            builder.add(_t("B"))


class TestDependencyGraph:
    def test_get_unknown_target(self):
        graph = build_graph([_t("A")])
        with pytest.raises(UnknownTargetError) as exc:
            graph.get_target("Z")
        assert exc.value.label == "Z"
        assert "scoring" in str(exc.value)

    def test_total_dependents(self):
        graph = build_graph([_t("A", deps=["B"]), _t("X", deps=["B"]), _t("B", deps=["D"]), _t("D")])
        assert graph.total_dependents("D") == 3
        assert graph.total_dependents("A") == 0

    def test_equality_ignores_derived_fields(self):
        records = [_t("A", deps=["B"]), _t("B", data=["f"])]
        assert build_graph(records) == build_graph(list(reversed(records)))

    def test_reachable_targets_shares_one_walk(self):
        graph = build_graph([_t("A", deps=["B"]), _t("B", deps=["D"], data=["f"]), _t("C", deps=["D"]), _t("D")])
        assert graph.reachable_targets(["B", "C"]) == {"B", "C", "D"}
        assert graph.reachable_targets(["f"]) == set()
        assert graph.reachable_targets([]) == set()
