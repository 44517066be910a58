"""Graph model, change index, shared-subtree detection, and scoring strategies."""

from depsaw.analysis.change_history import ChangeHistoryBuilder, ChangeHistoryIndex, build_history
from depsaw.analysis.dedup import DedupAnalyzer
from depsaw.analysis.dependency_graph import DependencyGraphBuilder, build_graph
from depsaw.analysis.graph_models import DependencyGraph, File, Target
from depsaw.analysis.score_engine import ScoreEngine

__all__ = [
    "ChangeHistoryBuilder",
    "ChangeHistoryIndex",
    "DedupAnalyzer",
    "DependencyGraph",
    "DependencyGraphBuilder",
    "File",
    "ScoreEngine",
    "Target",
    "build_graph",
    "build_history",
]
