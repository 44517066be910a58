"""External producers of raw target and commit records."""

from depsaw.sources.bazel import query_deps
from depsaw.sources.git import read_commit_log

__all__ = ["query_deps", "read_commit_log"]
