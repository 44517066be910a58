"""Ingest-then-query orchestration: load graph and history, then score."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from depsaw import snapshot
from depsaw.analysis.change_history import ChangeHistoryIndex, build_history
from depsaw.analysis.dependency_graph import build_graph
from depsaw.analysis.graph_models import DependencyGraph
from depsaw.analysis.score_engine import ScoreEngine
from depsaw.ingest.commits import iter_commits
from depsaw.ingest.records import iter_records
from depsaw.models import AnalysisConfig, ScoreResult
from depsaw.sources import bazel, git

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]


def load_graph(config: AnalysisConfig) -> DependencyGraph:
    """Graph from a snapshot, else a saved query output, else a live bazel query."""
    if config.graph_snapshot:
        return snapshot.load_graph(config.graph_snapshot)
    if config.query_file:
        logger.info("Reading target records from %s", config.query_file)
        with Path(config.query_file).open(encoding="utf-8") as fh:
            return build_graph(iter_records(fh))
    return build_graph(iter_records(bazel.query_deps(config.workspace_root, config.target)))


def load_history(config: AnalysisConfig) -> ChangeHistoryIndex:
    """History from a snapshot, else a saved log, else a live git log."""
    if config.history_snapshot:
        return snapshot.load_history(config.history_snapshot)
    if config.log_file:
        logger.info("Reading commit records from %s", config.log_file)
        with Path(config.log_file).open(encoding="utf-8") as fh:
            return build_history(iter_commits(fh))
    lines = git.read_commit_log(config.workspace_root, since=config.git_since, max_count=config.max_commits)
    return build_history(iter_commits(lines))


def run_analysis(config: AnalysisConfig, progress: ProgressCallback | None = None) -> ScoreResult:
    """Run one strategy end to end."""
    if progress:
        progress("Loading dependency graph", 0, 3)
    graph = load_graph(config)

    if progress:
        progress("Loading change history", 1, 3)
    history = load_history(config)

    if progress:
        progress("Scoring", 2, 3)
    engine = ScoreEngine(
        graph,
        history,
        own_files=config.own_files,
        total_dependents=config.total_dependents,
    )
    result = engine.score(config.strategy, config.target, config.window)

    if progress:
        progress("Scoring", 3, 3)
    return result


def precalculate_graph(workspace_root: Path | str, target: str, output: Path | str) -> Path:
    graph = build_graph(iter_records(bazel.query_deps(workspace_root, target)))
    return snapshot.save(graph, output)


def precalculate_history(
    workspace_root: Path | str,
    output: Path | str,
    since: str | None = None,
    max_count: int | None = None,
) -> Path:
    history = build_history(iter_commits(git.read_commit_log(workspace_root, since=since, max_count=max_count)))
    return snapshot.save(history, output)
