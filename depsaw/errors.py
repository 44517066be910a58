"""Error taxonomy for ingestion, snapshot persistence, and scoring."""

from __future__ import annotations

from pathlib import Path


class DepsawError(Exception):
    """Base class for every failure surfaced to the caller.

    ``stage`` names the pipeline phase that failed so the CLI can report it
    without the caller knowing the concrete subclass.
    """

    stage = "analysis"

    def __str__(self) -> str:
        return f"{self.stage}: {super().__str__()}"


# ── Ingest ────────────────────────────────────────────────────


class MalformedRecordError(DepsawError):
    stage = "ingest"

    def __init__(self, message: str, record_index: int | None = None):
        self.record_index = record_index
        if record_index is not None:
            message = f"record {record_index}: {message}"
        super().__init__(message)


class DuplicateTargetError(DepsawError):
    stage = "ingest"

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"target {label!r} is defined twice with differing content")


class CycleError(DepsawError):
    stage = "ingest"

    def __init__(self, cycle: list[str]):
        self.cycle = list(cycle)
        super().__init__("dependency cycle: " + " -> ".join(self.cycle))


class SourceCommandError(DepsawError):
    """An external producer (bazel, git) could not be run or exited non-zero."""

    stage = "ingest"

    def __init__(self, command: list[str], detail: str):
        self.command = list(command)
        self.detail = detail
        super().__init__(f"`{' '.join(command)}` failed: {detail}")


# ── Snapshot load ─────────────────────────────────────────────


class SnapshotError(DepsawError):
    stage = "snapshot load"

    def __init__(self, path: Path | str, message: str):
        self.path = Path(path)
        super().__init__(f"{self.path}: {message}")


class IncompatibleSnapshotError(SnapshotError):
    def __init__(self, path: Path | str, message: str,
                 expected: object = None, found: object = None):
        self.expected = expected
        self.found = found
        super().__init__(path, message)


class CorruptSnapshotError(SnapshotError):
    pass


# ── Scoring ───────────────────────────────────────────────────


class UnknownTargetError(DepsawError):
    stage = "scoring"

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"target {label!r} not found in dependency graph")
