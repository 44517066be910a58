"""most-unique-triggers: which immediate dependency, if removed, cuts the root's rebuilds most."""

from __future__ import annotations

import logging

from depsaw.analysis.change_history import ChangeHistoryIndex
from depsaw.analysis.dedup import DedupAnalyzer, ReachabilityTags
from depsaw.analysis.graph_models import DependencyGraph
from depsaw.models import OwnFilesPolicy, ScoreEntry, ScoreResult, Strategy, Window

logger = logging.getLogger(__name__)


def most_unique_triggers(
    graph: DependencyGraph,
    history: ChangeHistoryIndex,
    root: str,
    window: Window | None = None,
    own_files: OwnFilesPolicy = OwnFilesPolicy.INCLUDE,
) -> ScoreResult:
    """score(C) = commits that reach ``root`` only through its immediate child C.

    A commit touching any file also reachable through a sibling (directly or
    via a shared node) still triggers the root after C is removed, so it is
    not counted for C. A child fully shared with siblings scores 0.
    """
    window = window or Window()
    tags = DedupAnalyzer(graph).tag(root)

    # Which children each in-window commit reaches the root through
    commit_masks: dict[str, int] = {}
    for label, mask in tags.masks.items():
        if graph.is_target(label):
            continue
        for commit_id in history.commits_for(graph.file_path(label), window):
            commit_masks[commit_id] = commit_masks.get(commit_id, 0) | mask

    result = ScoreResult(strategy=Strategy.MOST_UNIQUE_TRIGGERS, root=root, window=window)
    for child in tags.children:
        bit = tags.bit(child)
        reached: set[str] = set()
        for label in _exclusive_files(graph, tags, child, own_files):
            reached.update(history.commits_for(graph.file_path(label), window))
        exclusive = [c for c in reached if commit_masks.get(c) == bit]
        result.entries[child] = ScoreEntry(
            label=child,
            score=len(exclusive),
            rebuilds=len(reached),
            immediate_dependents=len(graph.dependents(child)),
        )

    logger.info("Scored %d immediate dependencies of %s", len(result), root)
    return result


def _exclusive_files(
    graph: DependencyGraph,
    tags: ReachabilityTags,
    child: str,
    own_files: OwnFilesPolicy,
) -> set[str]:
    """File labels reachable from ``child`` without passing through a shared node."""
    bit = tags.bit(child)
    if tags.masks.get(child) != bit:
        return set()
    if not graph.is_target(child):
        return {child}

    target = graph.targets[child]
    if own_files is OwnFilesPolicy.INCLUDE:
        start = [child]
    else:
        start = [d for d in target.deps if tags.masks.get(d) == bit]

    files: set[str] = set()
    seen = set(start)
    stack = list(start)
    while stack:
        current = stack.pop()
        if not graph.is_target(current):
            files.add(current)
            continue
        for nxt in graph.children(current):
            if nxt not in seen and tags.masks.get(nxt) == bit:
                seen.add(nxt)
                stack.append(nxt)
    return files
