"""Record-at-a-time (RAT) executor.

Each input record travels the whole stage chain before the next one is read,
unlike a batch executor where one stage consumes the entire stream before the
next stage starts. Once input is exhausted the stages are flushed in chain
order and any flush output travels the stages downstream of its origin, so a
COUNT placed after a LITERAL also counts the literal flushed into it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, MutableSequence, Sequence

from cardpipe.record import Record
from cardpipe.stages import Stage
from cardpipe.trace import FlushTrace, PipePoints, RatDebugTrace, RecordTrace

logger = logging.getLogger(__name__)


def _through(stage: Stage, records: Iterable[Record]) -> list[Record]:
    out: list[Record] = []
    for record in records:
        out.extend(stage.process(record))
    return out


def push_through_stages(records: list[Record], stages: Sequence[Stage]) -> list[Record]:
    """Feed ``records`` through ``stages`` in order and return what comes out."""
    current = records
    for stage in stages:
        current = _through(stage, current)
    return current


def _trace_through_stages(records: list[Record], stages: Sequence[Stage]) -> PipePoints:
    points: PipePoints = [[r.copy() for r in records]]
    current = records
    for stage in stages:
        current = _through(stage, current)
        points.append([r.copy() for r in current])
    return points


def execute_rat(input_records: Iterable[Record], stages: MutableSequence[Stage]) -> list[Record]:
    """Run records through the stage chain one at a time, then flush in order."""
    output: list[Record] = []
    count_in = 0
    for record in input_records:
        count_in += 1
        output.extend(push_through_stages([record], stages))

    for i, stage in enumerate(stages):
        flushed = stage.flush()
        if flushed:
            logger.debug("stage %d (%s) flushed %d record(s)", i, stage.name, len(flushed))
            output.extend(push_through_stages(flushed, stages[i + 1 :]))

    logger.debug("RAT run: %d in -> %d out over %d stage(s)", count_in, len(output), len(stages))
    return output


def execute_rat_traced(
    input_records: Iterable[Record], stages: MutableSequence[Stage]
) -> tuple[list[Record], RatDebugTrace]:
    """Same results as ``execute_rat`` plus a snapshot at every pipe point."""
    stage_names = [stage.name for stage in stages]
    output: list[Record] = []
    record_traces: list[RecordTrace] = []
    flush_traces: list[FlushTrace] = []

    for record in input_records:
        points = _trace_through_stages([record], stages)
        record_traces.append(RecordTrace(pipe_points=points))
        output.extend(r.copy() for r in points[-1])

    for i, stage in enumerate(stages):
        flushed = stage.flush()
        if not flushed:
            continue
        points = _trace_through_stages(flushed, stages[i + 1 :])
        flush_traces.append(FlushTrace(stage_index=i, pipe_points=points))
        output.extend(r.copy() for r in points[-1])

    logger.debug(
        "traced RAT run: %d record trace(s), %d flush trace(s), %d out",
        len(record_traces),
        len(flush_traces),
        len(output),
    )
    trace = RatDebugTrace(
        stage_names=stage_names, record_traces=record_traces, flush_traces=flush_traces
    )
    return output, trace
