"""Render ranked score results as YAML, CSV, or JSON."""

from __future__ import annotations

import csv
import io
import json

import yaml

from depsaw.models import ScoreResult

FORMATS = ("yaml", "csv", "json")

_COLUMNS = ["label", "score", "rebuilds", "immediate_dependents", "total_dependents"]


def result_rows(result: ScoreResult, limit: int | None = None) -> list[dict]:
    rows = []
    for entry in result.ranked(limit):
        row = {
            "label": entry.label,
            "score": entry.score,
            "rebuilds": entry.rebuilds,
            "immediate_dependents": entry.immediate_dependents,
        }
        if entry.total_dependents is not None:
            row["total_dependents"] = entry.total_dependents
        rows.append(row)
    return rows


def render(result: ScoreResult, fmt: str = "yaml", limit: int | None = None) -> str:
    rows = result_rows(result, limit)

    if fmt == "yaml":
        return yaml.safe_dump(
            {"strategy": result.strategy.value, "root": result.root, "targets": rows},
            sort_keys=False,
        )

    if fmt == "json":
        return json.dumps(
            {"strategy": result.strategy.value, "root": result.root, "targets": rows},
            indent=2,
        )

    if fmt == "csv":
        columns = [c for c in _COLUMNS if any(c in row for row in rows)] or _COLUMNS[:4]
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=columns, lineterminator="\n")
        writer.writeheader()
        writer.writerows(rows)
        return buf.getvalue()

    raise ValueError(f"Unsupported format: {fmt!r} (expected one of {', '.join(FORMATS)})")
