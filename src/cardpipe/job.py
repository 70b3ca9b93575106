from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import orjson
import yaml

from cardpipe.dsl.runner import PipelineResult, execute_pipeline_rat, execute_pipeline_rat_debug
from cardpipe.errors import PipelineError

logger = logging.getLogger(__name__)


@dataclass
class PipelineJob:
    name: str
    pipeline: Path
    input: Path
    output: Path | None = None
    trace: Path | None = None
    expected_output_count: int | None = None
    notes: str | None = None

    @staticmethod
    def from_mapping(payload: dict[str, Any], base_dir: Path | None = None) -> PipelineJob:
        def _path(key: str) -> Path | None:
            value = payload.get(key)
            if not value:
                return None
            path = Path(value)
            return base_dir / path if base_dir and not path.is_absolute() else path

        missing = [key for key in ("name", "pipeline", "input") if not payload.get(key)]
        if missing:
            raise PipelineError(f"Job is missing required keys: {', '.join(missing)}")
        expected = payload.get("expected_output_count")
        return PipelineJob(
            name=str(payload["name"]),
            pipeline=_path("pipeline"),  # type: ignore[arg-type]
            input=_path("input"),  # type: ignore[arg-type]
            output=_path("output"),
            trace=_path("trace"),
            expected_output_count=int(expected) if expected is not None else None,
            notes=payload.get("notes"),
        )


def load_job(path: Path) -> PipelineJob:
    """Load a job from YAML or JSON; relative paths resolve against the job file."""
    if path.suffix.lower() in {".yml", ".yaml"}:
        payload = yaml.safe_load(path.read_text())
    else:
        payload = json.loads(path.read_text())
    if not isinstance(payload, dict):
        raise PipelineError(f"Job file {path} must contain a mapping")
    return PipelineJob.from_mapping(payload, base_dir=path.parent)


def validate_job(job: PipelineJob) -> dict[str, Any]:
    result: dict[str, Any] = {
        "name": job.name,
        "pipeline": str(job.pipeline),
        "pipeline_exists": job.pipeline.is_file(),
        "input": str(job.input),
        "input_exists": job.input.is_file(),
        "output": str(job.output) if job.output else None,
        "trace": str(job.trace) if job.trace else None,
        "warnings": [],
    }
    if not result["pipeline_exists"]:
        result["warnings"].append("pipeline_missing")
    if not result["input_exists"]:
        result["warnings"].append("input_missing")
    return result


def run_job(job: PipelineJob) -> tuple[PipelineResult, dict[str, Any]]:
    """Execute a job, writing output and trace files where configured."""
    validation = validate_job(job)
    if validation["warnings"]:
        raise PipelineError(f"Job validation warnings: {validation['warnings']}")

    pipeline_text = job.pipeline.read_text()
    input_text = job.input.read_text()
    if job.trace:
        result = execute_pipeline_rat_debug(input_text, pipeline_text)
    else:
        result = execute_pipeline_rat(input_text, pipeline_text)

    summary: dict[str, Any] = {
        "job": job.name,
        "input_count": result.input_count,
        "output_count": result.output_count,
        "output": None,
        "trace": None,
        "warnings": [],
    }
    if job.output:
        job.output.parent.mkdir(parents=True, exist_ok=True)
        job.output.write_text(result.output_text + ("\n" if result.output_text else ""))
        summary["output"] = str(job.output)
    if job.trace and result.trace is not None:
        job.trace.parent.mkdir(parents=True, exist_ok=True)
        job.trace.write_bytes(orjson.dumps(result.trace.to_payload(), option=orjson.OPT_INDENT_2))
        summary["trace"] = str(job.trace)
    if job.expected_output_count is not None and job.expected_output_count != result.output_count:
        summary["warnings"].append("output_count_mismatch")
    logger.debug("job %s: %d in -> %d out", job.name, result.input_count, result.output_count)
    return result, summary


def sample_job() -> dict[str, Any]:
    return {
        "name": "sales_report",
        "pipeline": "specs/sales-report.pipe",
        "input": "specs/input-fixed-80.data",
        "output": "work/sales-report.out",
        "trace": None,
        "expected_output_count": None,
        "notes": "edit with real paths",
    }
