from pathlib import Path

import pytest

from cardpipe import commands as cmd
from cardpipe.dsl.parser import parse_commands
from cardpipe.dsl.runner import source_records
from cardpipe.executor import execute_rat, execute_rat_traced
from cardpipe.record import Record
from cardpipe.stages import build_stages

DATA_DIR = Path(__file__).parent / "data"
PIPE_FILES = sorted(DATA_DIR.glob("*.pipe"))


def _records(*texts: str) -> list[Record]:
    return [Record.from_str(t) for t in texts]


def _texts(records: list[Record]) -> list[str]:
    return [r.trimmed() for r in records]


def _both(records: list[Record], commands: list[cmd.Command]):
    plain = execute_rat([r.copy() for r in records], build_stages(commands))
    traced, trace = execute_rat_traced([r.copy() for r in records], build_stages(commands))
    return plain, traced, trace


def test_simple_passthrough():
    out = execute_rat(_records("A", "B"), build_stages([cmd.Console()]))
    assert _texts(out) == ["A", "B"]


def test_locate_then_count_with_no_matches_yields_zero():
    commands = [cmd.Locate(pattern="SALES"), cmd.Count()]
    out = execute_rat(_records("A", "B", "C"), build_stages(commands))
    assert _texts(out) == ["0"]


def test_duplicate_three():
    out = execute_rat(_records("X"), build_stages([cmd.Duplicate(n=3)]))
    assert _texts(out) == ["X", "X", "X"]


def test_literal_on_empty_input_comes_from_flush():
    out, trace = execute_rat_traced([], build_stages([cmd.Literal(text="ONLY")]))
    assert _texts(out) == ["ONLY"]
    assert trace.record_traces == []
    assert [f.stage_index for f in trace.flush_traces] == [0]


def test_per_record_output_precedes_flush_output():
    commands = [cmd.Literal(text="HDR"), cmd.Console()]
    counted = [cmd.Console(), cmd.Count()]
    assert _texts(execute_rat(_records("A", "B"), build_stages(commands))) == ["HDR", "A", "B"]
    assert _texts(execute_rat(_records("A", "B"), build_stages(counted))) == ["2"]


def test_downstream_count_sees_upstream_flush():
    commands = [cmd.Literal(text="ONLY"), cmd.Count()]
    out, trace = execute_rat_traced([], build_stages(commands))
    assert _texts(out) == ["1"]
    assert [f.stage_index for f in trace.flush_traces] == [0, 1]
    literal_flush, count_flush = trace.flush_traces
    assert [_texts(p) for p in literal_flush.pipe_points] == [["ONLY"], []]
    assert [_texts(p) for p in count_flush.pipe_points] == [["1"]]


def test_flush_output_only_runs_downstream_stages():
    # COUNT at index 0 flushes "3" which must not be re-counted by itself,
    # but does get duplicated by the stage after it.
    commands = [cmd.Count(), cmd.Duplicate(n=2)]
    out = execute_rat(_records("A", "B", "C"), build_stages(commands))
    assert _texts(out) == ["3", "3"]


def test_two_counts_flush_in_chain_order():
    commands = [cmd.Count(), cmd.Count()]
    out, trace = execute_rat_traced(_records("A", "B"), build_stages(commands))
    # first COUNT flushes "2" into the second, which then reports one record
    assert _texts(out) == ["1"]
    assert [f.stage_index for f in trace.flush_traces] == [0, 1]


def test_empty_flushes_leave_no_trace_entry():
    commands = [cmd.Upper(), cmd.Literal(text="HDR"), cmd.Take(n=10)]
    _, trace = execute_rat_traced(_records("a"), build_stages(commands))
    assert trace.flush_traces == []


def test_take_and_skip_state_spans_records():
    commands = [cmd.Skip(n=1), cmd.Take(n=2)]
    out = execute_rat(_records("A", "B", "C", "D"), build_stages(commands))
    assert _texts(out) == ["B", "C"]


def test_trace_shape_invariant():
    commands = [cmd.Locate(pattern="A"), cmd.Duplicate(n=2), cmd.Count()]
    _, trace = execute_rat_traced(_records("A1", "B1", "A2"), build_stages(commands))
    assert trace.stage_names == ["LOCATE", "DUPLICATE", "COUNT"]
    for rt in trace.record_traces:
        assert len(rt.pipe_points) == len(commands) + 1
        assert len(rt.pipe_points[0]) == 1
    first, second, _ = trace.record_traces
    assert [len(p) for p in first.pipe_points] == [1, 1, 2, 0]
    assert [len(p) for p in second.pipe_points] == [1, 0, 0, 0]
    assert _texts(trace.flush_traces[0].pipe_points[0]) == ["4"]


def test_trace_snapshots_do_not_alias_output():
    out, trace = execute_rat_traced(_records("A"), build_stages([cmd.Console()]))
    out[0].set_field(0, 1, "Z")
    assert _texts(trace.record_traces[0].pipe_points[1]) == ["A"]
    assert _texts(trace.record_traces[0].pipe_points[0]) == ["A"]


@pytest.mark.parametrize(
    "commands",
    [
        [cmd.Console()],
        [cmd.Literal(text="HDR"), cmd.Count()],
        [cmd.Hole(), cmd.Literal(text="EMPTY")],
        [cmd.Take(n=1), cmd.Duplicate(n=3), cmd.Reverse()],
        [cmd.Select(fields=((2, 3, 0),)), cmd.Change(old="C", new="cc"), cmd.Upper()],
    ],
)
@pytest.mark.parametrize("inputs", [[], ["ABCDE"], ["ABCDE", "VWXYZ", "C"]])
def test_traced_output_matches_untraced(commands, inputs):
    plain, traced, trace = _both(_records(*inputs), commands)
    assert [r.as_str() for r in traced] == [r.as_str() for r in plain]
    assert [r.as_str() for r in trace.outputs()] == [r.as_str() for r in plain]


@pytest.mark.parametrize("pipe_file", PIPE_FILES, ids=lambda p: p.stem)
def test_sample_pipelines_traced_equivalence(pipe_file, deck_text):
    commands = parse_commands(pipe_file.read_text())
    records = source_records(commands[0], deck_text)
    plain, traced, trace = _both(records, commands[1:])
    assert [r.as_str() for r in traced] == [r.as_str() for r in plain]
    assert len(trace.record_traces) == len(records)
    assert trace.stage_names == [c.name for c in commands[1:]]
    indices = [f.stage_index for f in trace.flush_traces]
    assert indices == sorted(indices)
    for flush in trace.flush_traces:
        assert flush.pipe_points[0]
        assert len(flush.pipe_points) == len(commands) - 1 - flush.stage_index
