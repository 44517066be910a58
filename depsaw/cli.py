"""Click CLI with precalculate and analyze subcommands."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

import click

from depsaw import __version__
from depsaw.errors import DepsawError
from depsaw.models import AnalysisConfig, OwnFilesPolicy, Strategy, Window
from depsaw.pipeline import precalculate_graph, precalculate_history, run_analysis
from depsaw.report import FORMATS, render

_OWN_FILES_CHOICES = [p.value for p in OwnFilesPolicy]


def parse_timestamp(value: str) -> int:
    """Unix seconds, an ISO date, or an ISO datetime (naive values are UTC)."""
    value = value.strip()
    if value.lstrip("-").isdigit():
        return int(value)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"{value!r} is not unix seconds or an ISO date") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def _timestamp_option(ctx, param, value):
    return None if value is None else parse_timestamp(value)


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", count=True, help="-v for info, -vv for debug logging")
def cli(verbose: int):
    """depsaw: find the dependencies that trigger the most rebuilds."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


# ── precalculate ──────────────────────────────────────────────


@cli.group()
def precalculate():
    """Write snapshots so later analyses skip re-ingestion."""


@precalculate.command("graph")
@click.option("--workspace-root", type=click.Path(exists=True, file_okay=False, path_type=Path), required=True)
@click.option("--target", required=True, help="Label or //pkg/... pattern to query")
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), required=True)
def precalculate_graph_cmd(workspace_root: Path, target: str, output: Path):
    """Snapshot the dependency graph of TARGET."""
    try:
        path = precalculate_graph(workspace_root, target, output)
    except DepsawError as e:
        raise click.ClickException(str(e))
    click.echo(f"Wrote graph snapshot to {path}")


@precalculate.command("history")
@click.option("--workspace-root", type=click.Path(exists=True, file_okay=False, path_type=Path), required=True)
@click.option("--since", help="Oldest commit to read, in any format git accepts")
@click.option("--max-commits", type=click.IntRange(min=1), help="Stop after this many commits")
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), required=True)
def precalculate_history_cmd(workspace_root: Path, since: str | None, max_commits: int | None, output: Path):
    """Snapshot per-file change history."""
    try:
        path = precalculate_history(workspace_root, output, since=since, max_count=max_commits)
    except DepsawError as e:
        raise click.ClickException(str(e))
    click.echo(f"Wrote history snapshot to {path}")


# ── analyze ───────────────────────────────────────────────────


def _analysis_options(func):
    options = [
        click.option("--target", required=True, help="Root label (or //pkg/... for trigger-scores-map)"),
        click.option("--workspace-root", type=click.Path(exists=True, file_okay=False, path_type=Path)),
        click.option("--since", callback=_timestamp_option, help="Count commits at or after this time"),
        click.option("--until", callback=_timestamp_option, help="Count commits before this time"),
        click.option("--graph-snapshot", type=click.Path(exists=True, dir_okay=False, path_type=Path)),
        click.option("--history-snapshot", type=click.Path(exists=True, dir_okay=False, path_type=Path)),
        click.option("--query-file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
                     help="Saved `bazel query --output streamed_jsonproto` output"),
        click.option("--log-file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
                     help="Saved git log output or JSON commit lines"),
        click.option("--max-commits", type=click.IntRange(min=1)),
        click.option("--format", "fmt", type=click.Choice(list(FORMATS)), default="yaml", show_default=True),
        click.option("--limit", type=click.IntRange(min=1), help="Only print the top N entries"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _run(strategy: Strategy, fmt: str, limit: int | None, **kwargs) -> None:
    since, until = kwargs.pop("since"), kwargs.pop("until")
    try:
        window = Window(since=since, until=until)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--until")

    # Live git reads can stop at the window start
    git_since = datetime.fromtimestamp(since, timezone.utc).isoformat() if since is not None else None
    config = AnalysisConfig(strategy=strategy, window=window, git_since=git_since, **kwargs)
    try:
        result = run_analysis(config)
    except DepsawError as e:
        raise click.ClickException(str(e))

    if not result.entries:
        click.echo("No targets scored.", err=True)
        return
    click.echo(render(result, fmt, limit), nl=False)


@cli.group()
def analyze():
    """Rank dependencies by trigger impact."""


@analyze.command("trigger-scores-map")
@_analysis_options
@click.option("--total-dependents", is_flag=True, help="Also count transitive reverse dependencies")
def trigger_scores_map(fmt: str, limit: int | None, **kwargs):
    """Score every target: distinct commits x direct reverse dependencies."""
    _run(Strategy.TRIGGER_SCORES_MAP, fmt, limit, **kwargs)


@analyze.command("most-unique-triggers")
@_analysis_options
@click.option("--own-files", type=click.Choice(_OWN_FILES_CHOICES), default=OwnFilesPolicy.INCLUDE.value,
              show_default=True, help="Count a dependency's own data files toward its exclusive commits")
def most_unique_triggers(fmt: str, limit: int | None, own_files: str, **kwargs):
    """Score each immediate dependency of TARGET by the commits only it brings in."""
    _run(Strategy.MOST_UNIQUE_TRIGGERS, fmt, limit, own_files=OwnFilesPolicy(own_files), **kwargs)


if __name__ == "__main__":
    cli()
