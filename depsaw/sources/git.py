"""Change-history producer: ``git log`` with one marker line per commit."""

from __future__ import annotations

from pathlib import Path

from depsaw.ingest.commits import GIT_LOG_FORMAT
from depsaw.sources._command import run_command


def log_command(since: str | None = None, max_count: int | None = None) -> list[str]:
    args = ["git", "log", "--name-only", "--no-renames", f"--format={GIT_LOG_FORMAT}"]
    if since:
        args.append(f"--since={since}")
    if max_count is not None:
        args.append(f"--max-count={max_count}")
    return args


def read_commit_log(
    workspace_root: Path | str,
    since: str | None = None,
    max_count: int | None = None,
) -> list[str]:
    """Raw git log lines; ``since`` takes any date format git understands."""
    return run_command(log_command(since, max_count), workspace_root).splitlines()
