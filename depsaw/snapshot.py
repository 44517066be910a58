"""Versioned binary snapshots of the dependency graph and change history.

Layout: a fixed header (magic bytes + big-endian format version) followed by
a MessagePack envelope ``{kind, payload}``. The version is checked from the
header before any MessagePack decoding, so a snapshot from another format
version is rejected instead of being misread. Snapshots are whole-structure;
loading rebuilds through the regular builders so graph invariants are
re-validated.
"""

from __future__ import annotations

import logging
import struct
from pathlib import Path
from typing import Union

import msgspec

from depsaw.errors import (
    CorruptSnapshotError,
    DepsawError,
    IncompatibleSnapshotError,
)
from depsaw.analysis.change_history import ChangeHistoryBuilder, ChangeHistoryIndex
from depsaw.analysis.dependency_graph import DependencyGraphBuilder
from depsaw.analysis.graph_models import DependencyGraph, File, Target
from depsaw.models import CommitRecord

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
MAGIC = b"DEPSAW\x00"
_HEADER = struct.Struct(">7sH")

KIND_GRAPH = "graph"
KIND_HISTORY = "history"

Snapshot = Union[DependencyGraph, ChangeHistoryIndex]


class _TargetEntry(msgspec.Struct, array_like=True):
    label: str
    kind: str
    deps: list[str]
    data: list[str]


class _FileEntry(msgspec.Struct, array_like=True):
    label: str
    path: Union[str, None]


class GraphPayload(msgspec.Struct):
    targets: list[_TargetEntry]
    files: list[_FileEntry]


class _CommitEntry(msgspec.Struct, array_like=True):
    id: str
    timestamp: int
    files: list[str]


class HistoryPayload(msgspec.Struct):
    commits: list[_CommitEntry]


class _Envelope(msgspec.Struct):
    kind: str
    payload: msgspec.Raw


def _graph_payload(graph: DependencyGraph) -> GraphPayload:
    return GraphPayload(
        targets=[
            _TargetEntry(t.label, t.kind, sorted(t.deps), sorted(t.data))
            for t in sorted(graph.targets.values(), key=lambda t: t.label)
        ],
        files=[
            _FileEntry(f.label, f.path)
            for f in sorted(graph.files.values(), key=lambda f: f.label)
        ],
    )


def _history_payload(history: ChangeHistoryIndex) -> HistoryPayload:
    return HistoryPayload(
        commits=[
            _CommitEntry(c.id, c.timestamp, sorted(c.files))
            for c in sorted(history.commits.values(), key=lambda c: (c.timestamp, c.id))
        ],
    )


class SnapshotStore:
    """Save and load snapshots for one format version."""

    def __init__(self, format_version: int = FORMAT_VERSION):
        self.format_version = format_version
        self._encoder = msgspec.msgpack.Encoder()

    def save(self, obj: Snapshot, path: Path | str) -> Path:
        path = Path(path)
        if isinstance(obj, DependencyGraph):
            kind, payload = KIND_GRAPH, _graph_payload(obj)
        elif isinstance(obj, ChangeHistoryIndex):
            kind, payload = KIND_HISTORY, _history_payload(obj)
        else:
            raise TypeError(f"cannot snapshot {type(obj).__name__}")

        body = self._encoder.encode(
            _Envelope(kind=kind, payload=msgspec.Raw(self._encoder.encode(payload)))
        )
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(_HEADER.pack(MAGIC, self.format_version) + body)
        logger.info("Wrote %s snapshot (%d bytes) to %s", kind, _HEADER.size + len(body), path)
        return path

    def load(self, path: Path | str) -> Snapshot:
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise CorruptSnapshotError(path, f"cannot read snapshot: {e.strerror or e}") from e

        if len(data) < _HEADER.size:
            raise CorruptSnapshotError(path, "truncated header")
        magic, version = _HEADER.unpack_from(data)
        if magic != MAGIC:
            raise CorruptSnapshotError(path, "not a depsaw snapshot")
        if version != self.format_version:
            raise IncompatibleSnapshotError(
                path,
                f"format version {version} does not match supported version {self.format_version}",
                expected=self.format_version,
                found=version,
            )

        try:
            envelope = msgspec.msgpack.decode(data[_HEADER.size:], type=_Envelope)
            if envelope.kind == KIND_GRAPH:
                result: Snapshot = self._rebuild_graph(
                    msgspec.msgpack.decode(envelope.payload, type=GraphPayload))
            elif envelope.kind == KIND_HISTORY:
                result = self._rebuild_history(
                    msgspec.msgpack.decode(envelope.payload, type=HistoryPayload))
            else:
                raise CorruptSnapshotError(path, f"unknown snapshot kind {envelope.kind!r}")
        except msgspec.DecodeError as e:
            raise CorruptSnapshotError(path, f"unreadable snapshot data: {e}") from e
        except CorruptSnapshotError:
            raise
        except DepsawError as e:
            raise CorruptSnapshotError(path, f"snapshot violates graph invariants: {e}") from e

        logger.info("Loaded %s snapshot from %s", envelope.kind, path)
        return result

    def load_graph(self, path: Path | str) -> DependencyGraph:
        result = self.load(path)
        if not isinstance(result, DependencyGraph):
            raise IncompatibleSnapshotError(path, "snapshot holds change history, not a dependency graph",
                                            expected=KIND_GRAPH, found=KIND_HISTORY)
        return result

    def load_history(self, path: Path | str) -> ChangeHistoryIndex:
        result = self.load(path)
        if not isinstance(result, ChangeHistoryIndex):
            raise IncompatibleSnapshotError(path, "snapshot holds a dependency graph, not change history",
                                            expected=KIND_HISTORY, found=KIND_GRAPH)
        return result

    @staticmethod
    def _rebuild_graph(payload: GraphPayload) -> DependencyGraph:
        builder = DependencyGraphBuilder()
        for t in payload.targets:
            builder.add(Target(t.label, t.kind, frozenset(t.deps), frozenset(t.data)))
        for f in payload.files:
            builder.add(File(f.label, f.path))
        return builder.build()

    @staticmethod
    def _rebuild_history(payload: HistoryPayload) -> ChangeHistoryIndex:
        builder = ChangeHistoryBuilder()
        builder.add_all(CommitRecord(c.id, c.timestamp, frozenset(c.files)) for c in payload.commits)
        return builder.build()


_default_store = SnapshotStore()


def save(obj: Snapshot, path: Path | str) -> Path:
    return _default_store.save(obj, path)


def load(path: Path | str) -> Snapshot:
    return _default_store.load(path)


def load_graph(path: Path | str) -> DependencyGraph:
    return _default_store.load_graph(path)


def load_history(path: Path | str) -> ChangeHistoryIndex:
    return _default_store.load_history(path)
