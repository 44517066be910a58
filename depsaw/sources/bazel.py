"""Build-graph producer: ``bazel query`` in streamed_jsonproto form."""

from __future__ import annotations

from pathlib import Path

from depsaw.sources._command import run_command


def query_command(target: str) -> list[str]:
    return ["bazel", "query", f"deps({target})", "--output", "streamed_jsonproto"]


def query_deps(workspace_root: Path | str, target: str) -> list[str]:
    """Raw record lines for ``target`` and everything it depends on."""
    return run_command(query_command(target), workspace_root).splitlines()
