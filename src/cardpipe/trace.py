"""Trace types for the traced record-at-a-time executor.

A pipe point is the set of records sitting between two adjacent stages (or
before the first / after the last) at one moment of one record's journey.
Point ``0`` is the input to the first stage, point ``i`` is the output of
stage ``i - 1``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from cardpipe.record import Record

PipePoints = list[list[Record]]


def _texts(points: PipePoints) -> list[list[str]]:
    return [[record.trimmed() for record in point] for point in points]


@dataclass(frozen=True)
class RecordTrace:
    """One input record's journey: ``num_stages + 1`` pipe points."""

    pipe_points: PipePoints

    @property
    def output(self) -> list[Record]:
        return self.pipe_points[-1]


@dataclass(frozen=True)
class FlushTrace:
    """Flush output of ``stage_index`` followed through every downstream stage."""

    stage_index: int
    pipe_points: PipePoints

    @property
    def output(self) -> list[Record]:
        return self.pipe_points[-1]

    def aligned(self, num_stages: int) -> PipePoints:
        """Pipe points re-indexed to the full pipeline (upstream points empty).

        The flush output of stage ``i`` sits at pipe point ``i + 1``.
        """
        padding: PipePoints = [[] for _ in range(self.stage_index + 1)]
        aligned = padding + self.pipe_points
        return aligned[: num_stages + 1]


@dataclass(frozen=True)
class RatDebugTrace:
    stage_names: list[str]
    record_traces: list[RecordTrace] = field(default_factory=list)
    flush_traces: list[FlushTrace] = field(default_factory=list)

    @property
    def num_stages(self) -> int:
        return len(self.stage_names)

    @property
    def total_steps(self) -> int:
        return len(self.record_traces) + len(self.flush_traces)

    def outputs(self) -> list[Record]:
        """Final records in emission order: per-record output, then flush output."""
        out: list[Record] = []
        for trace in self.record_traces:
            out.extend(trace.output)
        for flush in self.flush_traces:
            out.extend(flush.output)
        return out

    def to_payload(self) -> dict[str, Any]:
        """JSON-friendly view with records rendered as trimmed text."""
        return {
            "stage_names": list(self.stage_names),
            "record_traces": [
                {"pipe_points": _texts(trace.pipe_points)} for trace in self.record_traces
            ],
            "flush_traces": [
                {"stage_index": flush.stage_index, "pipe_points": _texts(flush.pipe_points)}
                for flush in self.flush_traces
            ],
        }
