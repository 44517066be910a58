"""Tests for the ingest-then-query pipeline and report rendering."""

import csv
import io
import json
from pathlib import Path

import pytest
import yaml

from depsaw import snapshot
from depsaw.errors import SourceCommandError, UnknownTargetError
from depsaw.models import AnalysisConfig, OwnFilesPolicy, Strategy, Window
from depsaw.pipeline import load_graph, load_history, precalculate_graph, precalculate_history, run_analysis
from depsaw.report import render, result_rows
from depsaw.sources import bazel, git

FIXTURES = Path(__file__).parent / "fixtures"


def _config(**kwargs):
    kwargs.setdefault("target", "//app:main")
    kwargs.setdefault("query_file", FIXTURES / "deps.jsonl")
    kwargs.setdefault("log_file", FIXTURES / "commits.log")
    return AnalysisConfig(**kwargs)


def _fixture_lines(name):
    return (FIXTURES / name).read_text().splitlines()


class TestRunAnalysis:
    def test_most_unique_triggers(self):
        result = run_analysis(_config(strategy=Strategy.MOST_UNIQUE_TRIGGERS))
        assert result.as_mapping() == {"//app:main.py": 1, "//lib:b": 1, "//lib:c": 0}

    def test_most_unique_triggers_excluding_own_files(self):
        config = _config(strategy=Strategy.MOST_UNIQUE_TRIGGERS, own_files=OwnFilesPolicy.EXCLUDE)
        assert run_analysis(config).as_mapping() == {"//app:main.py": 1, "//lib:b": 0, "//lib:c": 0}

    def test_trigger_scores_map(self):
        result = run_analysis(_config(strategy=Strategy.TRIGGER_SCORES_MAP))
        assert result.as_mapping() == {"//lib:d": 6, "//lib:b": 4, "//lib:c": 3, "//app:main": 0}
        assert [e.label for e in result.ranked()] == ["//lib:d", "//lib:b", "//lib:c", "//app:main"]

    def test_window(self):
        config = _config(strategy=Strategy.TRIGGER_SCORES_MAP, window=Window(since=1700000250))
        assert run_analysis(config).score("//lib:d") == 2

    def test_progress_callback(self):
        calls = []
        run_analysis(_config(), progress=lambda stage, done, total: calls.append((stage, done, total)))
        assert calls[0] == ("Loading dependency graph", 0, 3)
        assert calls[-1][1:] == (3, 3)

    def test_unknown_target(self):
        with pytest.raises(UnknownTargetError):
            run_analysis(_config(target="//nowhere:x"))

    def test_snapshots_take_precedence(self, tmp_path, monkeypatch):
        graph = load_graph(_config())
        history = load_history(_config())
        graph_path = snapshot.save(graph, tmp_path / "graph.snap")
        history_path = snapshot.save(history, tmp_path / "history.snap")

        def fail(*args, **kwargs):
            raise AssertionError("live producer should not run")

        monkeypatch.setattr(bazel, "query_deps", fail)
        monkeypatch.setattr(git, "read_commit_log", fail)
        config = AnalysisConfig(
            target="//app:main",
            strategy=Strategy.MOST_UNIQUE_TRIGGERS,
            graph_snapshot=graph_path,
            history_snapshot=history_path,
        )
        assert run_analysis(config).score("//lib:b") == 1

    def test_live_producers(self, tmp_path, monkeypatch):
        seen = {}

        def query_deps(workspace_root, target):
            seen["query"] = (workspace_root, target)
            return _fixture_lines("deps.jsonl")

        def read_commit_log(workspace_root, since=None, max_count=None):
            seen["log"] = (since, max_count)
            return _fixture_lines("commits.log")

        monkeypatch.setattr(bazel, "query_deps", query_deps)
        monkeypatch.setattr(git, "read_commit_log", read_commit_log)
        config = AnalysisConfig(target="//app:main", workspace_root=tmp_path, git_since="2023-11-01", max_commits=50)
        result = run_analysis(config)
        assert result.score("//lib:d") == 6
        assert seen == {"query": (tmp_path, "//app:main"), "log": ("2023-11-01", 50)}


class TestPrecalculate:
    def test_graph_and_history(self, tmp_path, monkeypatch):
        monkeypatch.setattr(bazel, "query_deps", lambda root, target: _fixture_lines("deps.jsonl"))
        monkeypatch.setattr(git, "read_commit_log", lambda root, since=None, max_count=None: _fixture_lines("commits.log"))

        graph_path = precalculate_graph(tmp_path, "//app:main", tmp_path / "g.snap")
        history_path = precalculate_history(tmp_path, tmp_path / "h.snap")
        assert snapshot.load_graph(graph_path) == load_graph(_config())
        assert snapshot.load_history(history_path) == load_history(_config())

    def test_producer_failure_propagates(self, tmp_path, monkeypatch):
        def broken(root, target):
            raise SourceCommandError(["bazel", "query"], "no WORKSPACE")

        monkeypatch.setattr(bazel, "query_deps", broken)
        with pytest.raises(SourceCommandError) as exc:
            precalculate_graph(tmp_path, "//...", tmp_path / "g.snap")
        assert "no WORKSPACE" in str(exc.value)
        assert not (tmp_path / "g.snap").exists()


class TestAnalysisConfig:
    def test_env_fallbacks(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DEPSAW_WORKSPACE", str(tmp_path))
        monkeypatch.setenv("DEPSAW_GRAPH_SNAPSHOT", str(tmp_path / "g.snap"))
        monkeypatch.delenv("DEPSAW_HISTORY_SNAPSHOT", raising=False)
        config = AnalysisConfig(target="//a:b")
        assert config.workspace_root == tmp_path
        assert config.graph_snapshot == tmp_path / "g.snap"
        assert config.history_snapshot is None

    def test_explicit_values_win(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DEPSAW_GRAPH_SNAPSHOT", "/elsewhere")
        config = AnalysisConfig(target="//a:b", graph_snapshot=tmp_path / "mine.snap")
        assert config.graph_snapshot == tmp_path / "mine.snap"


class TestReport:
    @pytest.fixture
    def result(self):
        return run_analysis(_config(strategy=Strategy.TRIGGER_SCORES_MAP))

    def test_yaml(self, result):
        doc = yaml.safe_load(render(result, "yaml"))
        assert doc["strategy"] == "trigger-scores-map"
        assert doc["root"] == "//app:main"
        assert doc["targets"][0] == {"label": "//lib:d", "score": 6, "rebuilds": 3, "immediate_dependents": 2}

    def test_json_limit(self, result):
        doc = json.loads(render(result, "json", limit=2))
        assert [row["label"] for row in doc["targets"]] == ["//lib:d", "//lib:b"]

    def test_csv(self, result):
        rows = list(csv.DictReader(io.StringIO(render(result, "csv"))))
        assert rows[0]["label"] == "//lib:d"
        assert rows[0]["score"] == "6"
        assert "total_dependents" not in rows[0]

    def test_total_dependents_column(self):
        result = run_analysis(_config(strategy=Strategy.TRIGGER_SCORES_MAP, total_dependents=True))
        rows = result_rows(result)
        assert rows[0]["total_dependents"] == 3
        assert render(result, "csv").splitlines()[0].endswith("total_dependents")

    def test_unknown_format(self, result):
        with pytest.raises(ValueError):
            render(result, "xml")
