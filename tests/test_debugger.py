import pytest

from cardpipe import commands as cmd
from cardpipe.debugger import DebugSession
from cardpipe.executor import execute_rat_traced
from cardpipe.record import Record
from cardpipe.stages import build_stages


def _session(inputs: list[str], commands: list[cmd.Command]) -> DebugSession:
    _, trace = execute_rat_traced([Record.from_str(t) for t in inputs], build_stages(commands))
    return DebugSession(trace)


def _texts(points):
    return [None if p is None else [r.trimmed() for r in p] for p in points]


def test_each_step_reveals_one_pipe_point():
    session = _session(["SALES", "X"], [cmd.Locate(pattern="SALES"), cmd.Console()])
    assert session.total_steps == 4
    assert session.step_label == ""
    assert session.current_view() is None

    session.step()
    assert session.step_label == "Record 1 of 2 (1/2)"
    assert _texts(session.current_view().pipe_points) == [["SALES"], None]
    assert session.accumulated_output == ""

    session.step()
    assert _texts(session.current_view().pipe_points) == [["SALES"], ["SALES"]]
    assert session.accumulated_output == "SALES"

    session.step()
    assert session.step_label == "Record 2 of 2 (1/2)"
    session.step()
    # the filtered record ends on its empty pipe point
    assert _texts(session.current_view().pipe_points) == [["X"], []]
    assert session.finished
    assert not session.step()
    assert session.accumulated_output == "SALES"

    session.reset()
    assert session.current_step == 0
    assert session.accumulated_output == ""


def test_filtered_record_stops_after_first_empty_pipe_point():
    session = _session(
        ["SALES A", "OTHER", "SALES B"],
        [cmd.Locate(pattern="SALES"), cmd.Count(), cmd.Console()],
    )
    labels = []
    while session.step():
        labels.append(session.step_label)
    assert labels == [
        "Record 1 of 3 (1/3)",
        "Record 1 of 3 (2/3)",
        "Record 1 of 3 (3/3)",
        "Record 2 of 3 (1/2)",
        "Record 2 of 3 (2/2)",
        "Record 3 of 3 (1/3)",
        "Record 3 of 3 (2/3)",
        "Record 3 of 3 (3/3)",
        "Flush 1 of 1 (1/1)",
    ]


def test_flush_steps_start_below_the_flushing_stage():
    session = _session(
        ["SALES A", "OTHER", "SALES B"],
        [cmd.Locate(pattern="SALES"), cmd.Count(), cmd.Console()],
    )
    session.run_all()
    view = session.current_view()
    assert view.kind == "flush"
    assert view.stage_index == 1
    assert view.revealed == 2
    assert _texts(view.pipe_points) == [None, None, ["2"]]
    assert session.accumulated_output == "2"


def test_flush_from_last_stage_still_reaches_output():
    session = _session([], [cmd.Literal(text="ONLY"), cmd.Count()])
    assert session.total_steps == 1
    session.step()
    assert session.step_label == "Flush 1 of 2 (1/1)"
    assert session.accumulated_output == "1"


def test_watches_collect_values_over_revealed_steps():
    session = _session(["a", "b"], [cmd.Upper(), cmd.Duplicate(n=2), cmd.Console()])
    w1 = session.add_watch(1)
    w2 = session.add_watch(2)
    assert (w1.label, w2.label) == ("w1", "w2")
    for _ in range(3):
        session.step()
    assert session.watch_values() == {"w1": ["A"], "w2": ["A", "A"]}
    session.run_all()
    assert session.watch_values()["w1"] == ["A", "B"]
    assert session.accumulated_output == "A\nA\nB\nB"

    session.remove_watch("w1")
    assert session.watches_at(1) == []
    assert [w.label for w in session.watches_at(2)] == ["w2"]
    assert session.add_watch(0).label == "w3"


def test_run_all_stops_when_breakpoint_is_revealed():
    session = _session(["x", "SALES", "y"], [cmd.Locate(pattern="SALES"), cmd.Console()])
    assert session.toggle_breakpoint(1) is True
    assert session.run_all() == 2
    assert session.hit_breakpoint == 1
    assert session.step_label == "[BP] Record 1 of 3 (2/2)"

    assert session.run_all() == 2
    assert session.step_label == "[BP] Record 2 of 3 (2/2)"
    assert session.accumulated_output == "SALES"

    # a hit on the final step is still reported
    assert session.run_all() == 2
    assert session.finished
    assert session.hit_breakpoint == 1

    session.reset()
    assert session.hit_breakpoint is None
    assert session.toggle_breakpoint(1) is False
    assert session.breakpoints == set()
    assert session.run_all() == 6
    assert session.hit_breakpoint is None


def test_pipe_point_range_is_checked():
    session = _session(["a"], [cmd.Console()])
    assert session.pipe_point_count == 1
    with pytest.raises(ValueError):
        session.add_watch(1)
    with pytest.raises(ValueError):
        session.toggle_breakpoint(-1)
    with pytest.raises(IndexError):
        session.view(5)
