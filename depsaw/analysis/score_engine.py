"""Strategy dispatch over a finalized graph and change index."""

from __future__ import annotations

import logging

from depsaw.analysis.change_history import ChangeHistoryIndex
from depsaw.analysis.dedup import DedupAnalyzer
from depsaw.analysis.graph_models import DependencyGraph
from depsaw.analysis.trigger_scores import calculate_trigger_scores
from depsaw.analysis.unique_triggers import most_unique_triggers
from depsaw.models import OwnFilesPolicy, ScoreResult, Strategy, Window

logger = logging.getLogger(__name__)


class ScoreEngine:
    """Runs scoring strategies. Holds no mutable state, so one engine serves many queries.

    Args:
        graph: A built dependency graph (rdeps finalized).
        history: The change index to join against graph files.
        own_files: Own-files policy for ``most-unique-triggers``.
        total_dependents: Also report transitive rdeps counts in
            ``trigger-scores-map`` (one reverse traversal per target).
    """

    def __init__(
        self,
        graph: DependencyGraph,
        history: ChangeHistoryIndex,
        own_files: OwnFilesPolicy = OwnFilesPolicy.INCLUDE,
        total_dependents: bool = False,
    ):
        self.graph = graph
        self.history = history
        self.own_files = own_files
        self.total_dependents = total_dependents

    def score(self, strategy: Strategy | str, root: str, window: Window | None = None) -> ScoreResult:
        strategy = Strategy(strategy)
        logger.info("Running %s for %s", strategy.value, root)
        if strategy is Strategy.TRIGGER_SCORES_MAP:
            return self.trigger_scores_map(root, window)
        return self.most_unique_triggers(root, window)

    def trigger_scores_map(self, root: str, window: Window | None = None) -> ScoreResult:
        return calculate_trigger_scores(
            self.graph, self.history, root, window,
            total_dependents=self.total_dependents,
        )

    def most_unique_triggers(self, root: str, window: Window | None = None) -> ScoreResult:
        return most_unique_triggers(self.graph, self.history, root, window, self.own_files)

    def duplicates(self, root: str) -> frozenset[str]:
        return DedupAnalyzer(self.graph).duplicates(root)
