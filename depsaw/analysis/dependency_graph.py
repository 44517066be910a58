"""Dependency graph builder: collects target records, links edges, rejects cycles, derives rdeps."""

from __future__ import annotations

import logging
from typing import Iterable

from depsaw.errors import CycleError, DuplicateTargetError
from depsaw.analysis.graph_models import DependencyGraph, File, Target

logger = logging.getLogger(__name__)

_VISITING = 1
_DONE = 2


class DependencyGraphBuilder:
    """Build a dependency graph from records arriving in any order.

    Records may reference labels that are defined later (or never). Edges are
    only resolved in ``build()``, once the whole stream has been consumed.
    """

    def __init__(self):
        self._targets: dict[str, Target] = {}
        self._files: dict[str, File] = {}
        self._built = False

    def add(self, record: Target | File) -> None:
        if self._built:
            raise RuntimeError("graph already built; create a new builder")
        if isinstance(record, Target):
            pool: dict = self._targets
        elif isinstance(record, File):
            pool = self._files
        else:
            raise TypeError(f"expected Target or File, got {type(record).__name__}")

        existing = pool.get(record.label)
        if existing is not None and existing != record:
            raise DuplicateTargetError(record.label)
        pool[record.label] = record

    def add_all(self, records: Iterable[Target | File]) -> int:
        count = 0
        for record in records:
            self.add(record)
            count += 1
        return count

    def build(self) -> DependencyGraph:
        self._built = True
        targets = self._targets

        # Step 1: every referenced label resolves to a target or a file leaf
        files: dict[str, File] = {}
        for label, node in self._files.items():
            if label in targets:
                raise DuplicateTargetError(label)
            files[label] = node

        dangling = 0
        for target in targets.values():
            for child in target.children:
                if child in targets or child in files:
                    continue
                files[child] = File.from_label(child)
                if child in target.deps:
                    dangling += 1
        if dangling:
            logger.debug("%d dependency labels have no defining record; kept as leaves", dangling)

        # Step 2: reject cycles among targets
        order = _topological_order(targets)

        # Step 3: reverse index, strictly after all forward edges are known
        reverse: dict[str, set[str]] = {}
        for target in targets.values():
            for child in target.children:
                reverse.setdefault(child, set()).add(target.label)

        graph = DependencyGraph(
            targets=dict(targets),
            files=files,
            rdeps={label: frozenset(sources) for label, sources in reverse.items()},
            order=order,
        )
        logger.info(
            "Built dependency graph: %d targets, %d files, %d edges",
            len(graph.targets), len(graph.files), graph.edge_count,
        )
        return graph


def build_graph(records: Iterable[Target | File]) -> DependencyGraph:
    builder = DependencyGraphBuilder()
    builder.add_all(records)
    return builder.build()


def _topological_order(targets: dict[str, Target]) -> tuple[str, ...]:
    """Iterative DFS over target-to-target edges; dependencies come first."""
    state: dict[str, int] = {}
    order: list[str] = []

    def target_children(label: str) -> list[str]:
        return sorted(c for c in targets[label].children if c in targets)

    for start in sorted(targets):
        if start in state:
            continue
        state[start] = _VISITING
        path = [start]
        stack = [iter(target_children(start))]

        while stack:
            child = next(stack[-1], None)
            if child is None:
                stack.pop()
                done = path.pop()
                state[done] = _DONE
                order.append(done)
                continue
            seen = state.get(child)
            if seen == _DONE:
                continue
            if seen == _VISITING:
                raise CycleError(path[path.index(child):] + [child])
            state[child] = _VISITING
            path.append(child)
            stack.append(iter(target_children(child)))

    return tuple(order)
