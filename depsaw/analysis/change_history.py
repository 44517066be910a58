"""Per-file change index built from commit records, queryable by time window."""

from __future__ import annotations

import logging
from bisect import bisect_left
from typing import Iterable, Mapping

from depsaw.errors import MalformedRecordError
from depsaw.models import CommitRecord, Window

logger = logging.getLogger(__name__)


class ChangeHistoryIndex:
    """Maps each file path to the commits that touched it, sorted by timestamp.

    A window query is two bisections per file rather than a rescan of all commits.
    """

    def __init__(self, commits: Mapping[str, CommitRecord] | None = None):
        self._commits: dict[str, CommitRecord] = dict(commits or {})

        by_file: dict[str, list[tuple[int, str]]] = {}
        for commit in self._commits.values():
            for path in commit.files:
                by_file.setdefault(path, []).append((commit.timestamp, commit.id))

        self._by_file: dict[str, tuple[list[int], list[str]]] = {}
        for path, entries in by_file.items():
            entries.sort()
            self._by_file[path] = ([ts for ts, _ in entries], [cid for _, cid in entries])

    def __len__(self) -> int:
        return len(self._commits)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ChangeHistoryIndex):
            return NotImplemented
        return self._commits == other._commits

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ChangeHistoryIndex(commits={len(self._commits)}, files={len(self._by_file)})"

    @property
    def commits(self) -> Mapping[str, CommitRecord]:
        return self._commits

    def paths(self) -> list[str]:
        return sorted(self._by_file)

    def commits_for(self, path: str | None, window: Window | None = None) -> list[str]:
        """Commit ids touching ``path`` within ``window``, oldest first."""
        if path is None:
            return []
        entry = self._by_file.get(path)
        if entry is None:
            return []
        timestamps, ids = entry
        if window is None or window.is_open:
            return list(ids)
        lo = 0 if window.since is None else bisect_left(timestamps, window.since)
        hi = len(ids) if window.until is None else bisect_left(timestamps, window.until)
        return ids[lo:hi]

    def distinct_commits(self, paths: Iterable[str | None], window: Window | None = None) -> set[str]:
        found: set[str] = set()
        for path in paths:
            found.update(self.commits_for(path, window))
        return found

    def view(self, window: Window) -> HistoryView:
        return HistoryView(self, window)

    def since(self, timestamp: int) -> HistoryView:
        return HistoryView(self, Window(since=timestamp))

    def between(self, since: int | None, until: int | None) -> HistoryView:
        return HistoryView(self, Window(since=since, until=until))


class HistoryView:
    """A windowed read-only view over an index; nothing is rebuilt."""

    def __init__(self, index: ChangeHistoryIndex, window: Window):
        self.index = index
        self.window = window

    def commits_for(self, path: str | None) -> list[str]:
        return self.index.commits_for(path, self.window)

    def distinct_commits(self, paths: Iterable[str | None]) -> set[str]:
        return self.index.distinct_commits(paths, self.window)


class ChangeHistoryBuilder:
    """Collect commit records in any order; repeated commit ids are merged."""

    def __init__(self):
        self._commits: dict[str, CommitRecord] = {}

    def add(self, record: CommitRecord, record_index: int | None = None) -> None:
        existing = self._commits.get(record.id)
        if existing is None:
            self._commits[record.id] = record
            return
        if existing.timestamp != record.timestamp:
            raise MalformedRecordError(
                f"commit {record.id} seen with timestamps {existing.timestamp} and {record.timestamp}",
                record_index,
            )
        self._commits[record.id] = CommitRecord(
            id=record.id,
            timestamp=record.timestamp,
            files=existing.files | record.files,
        )

    def add_all(self, records: Iterable[CommitRecord]) -> int:
        count = 0
        for index, record in enumerate(records, start=1):
            self.add(record, index)
            count += 1
        return count

    def build(self) -> ChangeHistoryIndex:
        index = ChangeHistoryIndex(self._commits)
        logger.info("Built change history: %d commits over %d files",
                    len(index), len(index.paths()))
        return index


def build_history(records: Iterable[CommitRecord]) -> ChangeHistoryIndex:
    builder = ChangeHistoryBuilder()
    builder.add_all(records)
    return builder.build()
