"""trigger-scores-map: global ranking of targets by change frequency times fan-in."""

from __future__ import annotations

import logging

from depsaw.errors import UnknownTargetError
from depsaw.analysis.change_history import ChangeHistoryIndex
from depsaw.analysis.graph_models import DependencyGraph
from depsaw.models import ScoreEntry, ScoreResult, Strategy, Window

logger = logging.getLogger(__name__)


def select_targets(graph: DependencyGraph, pattern: str) -> list[str]:
    """Resolve a label or a ``//pkg/...`` pattern to target labels.

    A plain label selects the target and everything it transitively depends on.
    """
    if pattern.endswith("/..."):
        package = pattern[:-4]
        if package in ("/", "//"):
            matches = sorted(graph.targets)
        else:
            matches = sorted(
                label for label in graph.targets
                if label.startswith(package + "/") or label.startswith(package + ":")
            )
        if not matches:
            raise UnknownTargetError(pattern)
        return matches

    graph.get_target(pattern)
    return sorted(graph.reachable_targets([pattern]))


def commit_sets(
    graph: DependencyGraph,
    history: ChangeHistoryIndex,
    labels: list[str],
    window: Window | None = None,
) -> dict[str, frozenset[str]]:
    """Distinct commit ids reaching each target below ``labels``, keyed by target.

    Computed bottom-up in topological order so shared subtrees are evaluated once.
    """
    needed = graph.reachable_targets(labels)

    commits: dict[str, frozenset[str]] = {}
    for label in graph.order:
        if label not in needed:
            continue
        acc: set[str] = set()
        for child in graph.targets[label].children:
            if graph.is_target(child):
                acc |= commits[child]
            else:
                acc.update(history.commits_for(graph.file_path(child), window))
        commits[label] = frozenset(acc)
    return commits


def calculate_trigger_scores(
    graph: DependencyGraph,
    history: ChangeHistoryIndex,
    pattern: str,
    window: Window | None = None,
    total_dependents: bool = False,
) -> ScoreResult:
    """score(T) = distinct commits reaching T within the window x |rdeps(T)|."""
    window = window or Window()
    selected = select_targets(graph, pattern)
    commits = commit_sets(graph, history, selected, window)

    result = ScoreResult(strategy=Strategy.TRIGGER_SCORES_MAP, root=pattern, window=window)
    for label in selected:
        rebuilds = len(commits[label])
        dependents = len(graph.dependents(label))
        result.entries[label] = ScoreEntry(
            label=label,
            score=rebuilds * dependents,
            rebuilds=rebuilds,
            immediate_dependents=dependents,
            total_dependents=graph.total_dependents(label) if total_dependents else None,
        )

    logger.info("Scored %d targets for %s", len(result), pattern)
    return result
