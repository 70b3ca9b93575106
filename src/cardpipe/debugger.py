"""Headless step debugger over a ``RatDebugTrace``.

Stepping reveals one pipe point at a time. A record trace is walked from the
input point downstream; once an empty pipe point is revealed (the record was
filtered out) the next step moves on to the next record. After the records
the flush traces are walked the same way, starting at the pipe point just
below the flushing stage.

Pipe points are numbered by the stage above them: point ``0`` sits between
the source and the first processing stage, point ``i`` between processing
stages ``i - 1`` and ``i``. The record set after the last stage is not a
pipe point; it reaches ``accumulated_output`` instead, as each trace finishes.

``current_step`` counts steps already taken: 0 before the first ``step()``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from cardpipe.record import Record
from cardpipe.trace import FlushTrace, PipePoints, RatDebugTrace, RecordTrace

logger = logging.getLogger(__name__)


@dataclass
class Watch:
    label: str
    pipe_point: int


@dataclass(frozen=True)
class StepView:
    """State of the display after one step."""

    step: int
    kind: str  # "record" or "flush"
    index: int  # position in record_traces or flush_traces
    visible: int  # pipe points revealed for this trace so far
    max_visible: int
    revealed: int  # pipe point revealed by this step
    pipe_points: list[list[Record] | None]  # None where not revealed yet
    stage_index: int | None = None  # flushing stage, flush steps only
    output: tuple[str, ...] = ()  # records reaching the end with this step


def max_visible_for_record(trace: RecordTrace, num_pipe_points: int) -> int:
    """Pipe points to reveal for a record: up to and including the first empty one."""
    for idx, point in enumerate(trace.pipe_points[:num_pipe_points]):
        if not point:
            return idx + 1
    return num_pipe_points


def max_visible_for_flush(trace: FlushTrace, num_pipe_points: int) -> int:
    start = trace.stage_index + 1
    viewable = min(max(num_pipe_points - start, 0), len(trace.pipe_points))
    for idx, point in enumerate(trace.pipe_points[:viewable]):
        if not point:
            return idx + 1
    return viewable


@dataclass
class DebugSession:
    trace: RatDebugTrace
    current_step: int = 0
    watches: list[Watch] = field(default_factory=list)
    breakpoints: set[int] = field(default_factory=set)
    next_watch_id: int = 1
    hit_breakpoint: int | None = None
    _views: list[StepView] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._views = self._build_views()

    @property
    def pipe_point_count(self) -> int:
        return self.trace.num_stages

    @property
    def total_steps(self) -> int:
        return len(self._views)

    @property
    def finished(self) -> bool:
        return self.current_step >= self.total_steps

    def _build_views(self) -> list[StepView]:
        views: list[StepView] = []
        count = self.pipe_point_count
        # output of traces with nothing to reveal is attached to a neighbouring step
        pending: list[str] = []

        def emit(view: StepView) -> None:
            if pending:
                view = replace(view, output=tuple(pending) + view.output)
                pending.clear()
            views.append(view)

        def walk(
            kind: str,
            index: int,
            points: PipePoints,
            start: int,
            limit: int,
            stage_index: int | None,
        ) -> None:
            final = tuple(r.trimmed() for r in points[-1]) if points else ()
            if limit == 0:
                if views:
                    last = views[-1]
                    views[-1] = replace(last, output=last.output + final)
                else:
                    pending.extend(final)
                return
            for visible in range(1, limit + 1):
                shown: list[list[Record] | None] = [None] * count
                for offset in range(visible):
                    shown[start + offset] = points[offset]
                emit(
                    StepView(
                        step=len(views) + 1,
                        kind=kind,
                        index=index,
                        visible=visible,
                        max_visible=limit,
                        revealed=start + visible - 1,
                        pipe_points=shown,
                        stage_index=stage_index,
                        output=final if visible == limit else (),
                    )
                )

        for idx, rt in enumerate(self.trace.record_traces):
            walk("record", idx, rt.pipe_points, 0, max_visible_for_record(rt, count), None)
        for idx, ft in enumerate(self.trace.flush_traces):
            limit = max_visible_for_flush(ft, count)
            walk("flush", idx, ft.pipe_points, ft.stage_index + 1, limit, ft.stage_index)
        return views

    def _check_pipe_point(self, pipe_point: int) -> None:
        if not 0 <= pipe_point < self.pipe_point_count:
            raise ValueError(
                f"pipe point {pipe_point} out of range 0..{self.pipe_point_count - 1}"
            )

    def view(self, step: int) -> StepView:
        """Display state after ``step`` (1-based)."""
        if not 1 <= step <= self.total_steps:
            raise IndexError(f"step {step} out of range 1..{self.total_steps}")
        return self._views[step - 1]

    def current_view(self) -> StepView | None:
        if self.current_step == 0:
            return None
        return self.view(self.current_step)

    def label_for(self, step: int) -> str:
        """``Record 2 of 8 (1/3)`` style counter; empty outside the step range."""
        if step <= 0 or step > self.total_steps:
            return ""
        view = self.view(step)
        if view.kind == "record":
            prefix, total = "Record", len(self.trace.record_traces)
        else:
            prefix, total = "Flush", len(self.trace.flush_traces)
        return f"{prefix} {view.index + 1} of {total} ({view.visible}/{view.max_visible})"

    @property
    def step_label(self) -> str:
        label = self.label_for(self.current_step)
        if label and self.hit_breakpoint is not None:
            return f"[BP] {label}"
        return label

    @property
    def accumulated_output(self) -> str:
        """Records that reached the end of the pipeline over the steps taken."""
        lines: list[str] = []
        for view in self._views[: self.current_step]:
            lines.extend(view.output)
        return "\n".join(lines)

    def step(self) -> bool:
        """Reveal the next pipe point; False once the trace is exhausted.

        Sets ``hit_breakpoint`` when the revealed pipe point carries a breakpoint.
        """
        if self.finished:
            return False
        self.current_step += 1
        revealed = self._views[self.current_step - 1].revealed
        self.hit_breakpoint = revealed if revealed in self.breakpoints else None
        return True

    def run_all(self) -> int:
        """Step to the end, or until a step hits a breakpoint.

        Returns the number of steps taken.
        """
        taken = 0
        while self.step():
            taken += 1
            if self.hit_breakpoint is not None:
                logger.debug(
                    "breakpoint hit at pipe point %d (%s)", self.hit_breakpoint, self.step_label
                )
                break
        return taken

    def reset(self) -> None:
        self.current_step = 0
        self.hit_breakpoint = None

    def add_watch(self, pipe_point: int) -> Watch:
        self._check_pipe_point(pipe_point)
        watch = Watch(label=f"w{self.next_watch_id}", pipe_point=pipe_point)
        self.next_watch_id += 1
        self.watches.append(watch)
        return watch

    def remove_watch(self, label: str) -> None:
        self.watches = [w for w in self.watches if w.label != label]

    def watches_at(self, pipe_point: int) -> list[Watch]:
        return [w for w in self.watches if w.pipe_point == pipe_point]

    def toggle_breakpoint(self, pipe_point: int) -> bool:
        """Flip a breakpoint; returns True when it is now set."""
        self._check_pipe_point(pipe_point)
        if pipe_point in self.breakpoints:
            self.breakpoints.discard(pipe_point)
            return False
        self.breakpoints.add(pipe_point)
        return True

    def watch_values(self) -> dict[str, list[str]]:
        """Trimmed records revealed at each watch over steps 1..current_step."""
        values: dict[str, list[str]] = {w.label: [] for w in self.watches}
        for view in self._views[: self.current_step]:
            records = view.pipe_points[view.revealed] or []
            for watch in self.watches_at(view.revealed):
                values[watch.label].extend(r.trimmed() for r in records)
        return values
