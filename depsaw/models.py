"""Data models shared by ingestion, scoring, and the CLI."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from pathlib import Path


class Strategy(enum.Enum):
    TRIGGER_SCORES_MAP = "trigger-scores-map"
    MOST_UNIQUE_TRIGGERS = "most-unique-triggers"


class OwnFilesPolicy(enum.Enum):
    """Whether a target child's own data files count toward its exclusive triggers."""
    INCLUDE = "include"
    EXCLUDE = "exclude"


@dataclass(frozen=True)
class CommitRecord:
    """A single version-control change."""
    id: str
    timestamp: int  # unix seconds
    files: frozenset[str] = frozenset()


@dataclass(frozen=True)
class Window:
    """Half-open ``[since, until)`` timestamp range; ``None`` leaves a side open."""
    since: int | None = None
    until: int | None = None

    def __post_init__(self):
        if self.since is not None and self.until is not None and self.until < self.since:
            raise ValueError(f"window until ({self.until}) precedes since ({self.since})")

    def contains(self, timestamp: int) -> bool:
        if self.since is not None and timestamp < self.since:
            return False
        if self.until is not None and timestamp >= self.until:
            return False
        return True

    @property
    def is_open(self) -> bool:
        return self.since is None and self.until is None


@dataclass
class ScoreEntry:
    label: str
    score: int
    rebuilds: int = 0  # distinct commits reaching the label
    immediate_dependents: int = 0
    total_dependents: int | None = None


@dataclass
class ScoreResult:
    """Scores produced by one strategy run. Iteration order carries no meaning."""
    strategy: Strategy
    root: str
    entries: dict[str, ScoreEntry] = field(default_factory=dict)
    window: Window = field(default_factory=Window)

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, label: str) -> bool:
        return label in self.entries

    def score(self, label: str) -> int:
        return self.entries[label].score

    def as_mapping(self) -> dict[str, int]:
        return {label: entry.score for label, entry in self.entries.items()}

    def ranked(self, limit: int | None = None) -> list[ScoreEntry]:
        """Entries by score descending, ties broken by label."""
        ordered = sorted(self.entries.values(), key=lambda e: (-e.score, e.label))
        if limit is not None:
            ordered = ordered[:limit]
        return ordered


@dataclass
class AnalysisConfig:
    """Configuration for one ingest-then-query run."""
    target: str = ""
    strategy: Strategy = Strategy.TRIGGER_SCORES_MAP
    workspace_root: Path | None = None
    window: Window = field(default_factory=Window)
    graph_snapshot: Path | None = None
    history_snapshot: Path | None = None
    query_file: Path | None = None  # saved `bazel query` streamed_jsonproto output
    log_file: Path | None = None  # saved git log output
    git_since: str | None = None
    max_commits: int | None = None
    own_files: OwnFilesPolicy = OwnFilesPolicy.INCLUDE
    total_dependents: bool = False

    def __post_init__(self):
        if self.workspace_root is None:
            self.workspace_root = Path(os.getenv("DEPSAW_WORKSPACE", "."))
        if self.graph_snapshot is None and os.getenv("DEPSAW_GRAPH_SNAPSHOT"):
            self.graph_snapshot = Path(os.environ["DEPSAW_GRAPH_SNAPSHOT"])
        if self.history_snapshot is None and os.getenv("DEPSAW_HISTORY_SNAPSHOT"):
            self.history_snapshot = Path(os.environ["DEPSAW_HISTORY_SNAPSHOT"])
