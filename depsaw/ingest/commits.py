"""Raw commit-record parsing: marker-delimited git log text and JSON mappings."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Mapping

from pydantic import BaseModel, Field, ValidationError

from depsaw.errors import MalformedRecordError
from depsaw.ingest.records import describe_validation_error
from depsaw.models import CommitRecord

logger = logging.getLogger(__name__)

COMMIT_MARKER = "__DEPSAW_COMMIT__"
GIT_LOG_FORMAT = f"{COMMIT_MARKER}%H %ct"


class RawCommit(BaseModel):
    id: str = Field(min_length=1)
    timestamp: int | datetime
    files: list[str] = Field(default_factory=list)

    def to_record(self) -> CommitRecord:
        return CommitRecord(
            id=self.id,
            timestamp=to_unix_seconds(self.timestamp),
            files=frozenset(_normalize_path(p) for p in self.files if p.strip()),
        )


def to_unix_seconds(value: int | datetime) -> int:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())
    return int(value)


def _normalize_path(path: str) -> str:
    path = path.strip().replace("\\", "/")
    if path.startswith("./"):
        path = path[2:]
    return path


def parse_commit(raw: Any, index: int | None = None) -> CommitRecord:
    if not isinstance(raw, Mapping):
        raise MalformedRecordError(f"expected an object, got {type(raw).__name__}", index)
    try:
        return RawCommit.model_validate(raw).to_record()
    except ValidationError as e:
        raise MalformedRecordError(describe_validation_error(e), index) from e


def iter_commit_lines(lines: Iterable[str]) -> Iterator[CommitRecord]:
    """Parse JSON lines, one commit mapping per line."""
    for index, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            raw = json.loads(line)
        except json.JSONDecodeError as e:
            raise MalformedRecordError(f"invalid JSON: {e.msg}", index) from e
        yield parse_commit(raw, index)


def iter_git_log(lines: Iterable[str]) -> Iterator[CommitRecord]:
    """Parse ``git log --name-only --format=<GIT_LOG_FORMAT>`` output.

    Each marker line opens a commit (``<sha> <unix-seconds>``); the non-blank
    lines after it are the paths that commit touched. The record index in
    errors is the 1-based line number.
    """
    commit_id: str | None = None
    timestamp = 0
    files: set[str] = set()

    for lineno, raw in enumerate(lines, start=1):
        line = raw.rstrip("\r\n")
        if not line.strip():
            continue
        if line.startswith(COMMIT_MARKER):
            if commit_id is not None:
                yield CommitRecord(commit_id, timestamp, frozenset(files))
            commit_id, timestamp = _parse_header(line[len(COMMIT_MARKER):], lineno)
            files = set()
            continue
        if commit_id is None:
            raise MalformedRecordError(f"path {line.strip()!r} appears before any commit header", lineno)
        files.add(_normalize_path(line))

    if commit_id is not None:
        yield CommitRecord(commit_id, timestamp, frozenset(files))


def _parse_header(header: str, lineno: int) -> tuple[str, int]:
    parts = header.split()
    if len(parts) != 2:
        raise MalformedRecordError(f"commit header {header!r} is not '<id> <timestamp>'", lineno)
    commit_id, raw_ts = parts
    try:
        return commit_id, int(raw_ts)
    except ValueError:
        raise MalformedRecordError(f"commit {commit_id} has non-integer timestamp {raw_ts!r}", lineno) from None


def iter_commits(lines: Iterable[str]) -> Iterator[CommitRecord]:
    """Dispatch on the first non-blank line: JSON objects or git log text."""
    iterator = iter(lines)
    head: list[str] = []
    for line in iterator:
        head.append(line)
        if line.strip():
            break

    def chained() -> Iterator[str]:
        yield from head
        yield from iterator

    if head and head[-1].lstrip().startswith("{"):
        logger.debug("Reading commit records as JSON lines")
        return iter_commit_lines(chained())
    return iter_git_log(chained())
