"""Run log for pipeline executions.

``cardpipe run --log-csv/--log-jsonl`` appends one row per run; ``cardpipe log
summarize`` reads the file back and totals records in and out per pipeline.
"""

from __future__ import annotations

import csv
import json
from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from cardpipe.dsl.runner import PipelineResult

RUN_FIELDS = ["timestamp", "pipeline", "tag", "input_count", "output_count", "stages"]


def summary_row(result: PipelineResult, pipeline: str, tag: str | None = None) -> dict:
    """One log row for a finished pipeline run."""
    return {
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "pipeline": pipeline,
        "tag": tag or "",
        "input_count": result.input_count,
        "output_count": result.output_count,
        "stages": " | ".join(result.stage_names),
    }


def append_csv(path: Path, row: dict) -> None:
    """Add a run to a CSV log; a new log starts with the header line."""
    path.parent.mkdir(parents=True, exist_ok=True)
    write_header = not path.exists()
    with path.open("a", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=RUN_FIELDS, extrasaction="ignore")
        if write_header:
            writer.writeheader()
        writer.writerow(row)


def append_jsonl(path: Path, row: dict) -> None:
    """Add a run to a JSONL log, one object per line."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(row) + "\n")


def _csv_runs(path: Path) -> Iterator[dict[str, str]]:
    with path.open(newline="") as f:
        yield from csv.DictReader(f)


def _jsonl_runs(path: Path) -> Iterator[dict[str, Any]]:
    with path.open(encoding="utf-8") as f:
        for line in f:
            if line.strip():
                yield json.loads(line)


def summarize_log(path: Path) -> dict[str, object]:
    """Totals and per-pipeline run counts from a CSV/JSONL run log."""
    runs = 0
    records_in = 0
    records_out = 0
    per_pipeline: dict[str, int] = {}

    entries = _csv_runs(path) if path.suffix.lower() == ".csv" else _jsonl_runs(path)
    for entry in entries:
        runs += 1
        # counts come back as strings from CSV
        records_in += int(entry.get("input_count") or 0)
        records_out += int(entry.get("output_count") or 0)
        name = str(entry.get("pipeline") or "unknown")
        per_pipeline[name] = per_pipeline.get(name, 0) + 1

    return {
        "runs": runs,
        "records_in": records_in,
        "records_out": records_out,
        "pipelines": per_pipeline,
    }
