"""Run pipeline text end to end with the record-at-a-time executor.

The first stage is the source and is resolved here rather than by the
executor: CONSOLE reads the non-empty lines of the input text, LITERAL yields
its one card, HOLE yields an empty stream. The remaining stages are built
fresh for each call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from cardpipe import commands as cmd
from cardpipe.dsl.parser import parse_commands
from cardpipe.errors import PipelineError
from cardpipe.executor import execute_rat, execute_rat_traced
from cardpipe.record import Record
from cardpipe.stages import build_stages
from cardpipe.trace import RatDebugTrace

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    output_text: str
    input_count: int
    output_count: int
    records: list[Record] = field(default_factory=list)
    stage_names: list[str] = field(default_factory=list)
    trace: RatDebugTrace | None = None


def validate_commands(commands: list[cmd.Command]) -> None:
    if not commands:
        raise PipelineError("Pipeline is empty")
    if len(commands) < 2:
        raise PipelineError("Pipeline must have at least 2 stages")
    first = commands[0]
    if not first.can_be_first():
        raise PipelineError(
            f"{first.name} cannot be the first stage (try CONSOLE, LITERAL, or HOLE)"
        )


def source_records(source: cmd.Command, input_text: str) -> list[Record]:
    if isinstance(source, cmd.Console):
        return [Record.from_str(line) for line in input_text.splitlines() if line]
    if isinstance(source, cmd.Literal):
        return [Record.from_str(source.text)]
    if isinstance(source, cmd.Hole):
        return []
    raise PipelineError(f"Unhandled source stage: {source.name}")


def render_records(records: list[Record]) -> str:
    return "\n".join(record.trimmed() for record in records)


def _prepare(input_text: str, pipeline_text: str) -> tuple[list[Record], list[cmd.Command]]:
    commands = parse_commands(pipeline_text)
    validate_commands(commands)
    records = source_records(commands[0], input_text)
    logger.debug(
        "pipeline: source %s produced %d record(s), %d stage(s) follow",
        commands[0].name,
        len(records),
        len(commands) - 1,
    )
    return records, commands[1:]


def execute_pipeline_rat(input_text: str, pipeline_text: str) -> PipelineResult:
    """Parse, validate and run a pipeline. Raises PipelineError."""
    records, commands = _prepare(input_text, pipeline_text)
    stages = build_stages(commands)
    output = execute_rat(records, stages)
    return PipelineResult(
        output_text=render_records(output),
        input_count=len(records),
        output_count=len(output),
        records=output,
        stage_names=[s.name for s in stages],
    )


def execute_pipeline_rat_debug(input_text: str, pipeline_text: str) -> PipelineResult:
    """Like ``execute_pipeline_rat`` but also returns the debug trace."""
    records, commands = _prepare(input_text, pipeline_text)
    stages = build_stages(commands)
    output, trace = execute_rat_traced(records, stages)
    return PipelineResult(
        output_text=render_records(output),
        input_count=len(records),
        output_count=len(output),
        records=output,
        stage_names=list(trace.stage_names),
        trace=trace,
    )
