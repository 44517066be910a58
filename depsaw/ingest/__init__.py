"""Parsers mapping raw producer output to graph and commit records."""

from depsaw.ingest.commits import iter_commits, iter_git_log, parse_commit
from depsaw.ingest.records import iter_records, parse_record

__all__ = ["iter_commits", "iter_git_log", "iter_records", "parse_commit", "parse_record"]
