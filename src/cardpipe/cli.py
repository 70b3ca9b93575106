from pathlib import Path
from typing import NoReturn

import orjson
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cardpipe.debugger import DebugSession, StepView
from cardpipe.dsl.parser import parse_commands
from cardpipe.dsl.runner import execute_pipeline_rat, execute_pipeline_rat_debug
from cardpipe.errors import PipelineError
from cardpipe.job import load_job, run_job, sample_job, validate_job
from cardpipe.logconfig import setup_logging
from cardpipe.runlog import append_csv, append_jsonl, summarize_log, summary_row

app = typer.Typer(help="Run 80-column card pipelines record at a time.")
job_app = typer.Typer(help="Pipeline job files (YAML/JSON).")
log_app = typer.Typer(help="Run log helpers.")
console = Console()
err_console = Console(stderr=True)

app.add_typer(job_app, name="job")
app.add_typer(log_app, name="log")


def _read_text(path: Path, what: str) -> str:
    if not path.is_file():
        raise typer.BadParameter(f"{what} file not found: {path}")
    return path.read_text()


def _fail(exc: PipelineError) -> NoReturn:
    err_console.print(f"[bold red]Pipeline error:[/] {exc}")
    raise typer.Exit(code=1)


def _write_output(output: Path, text: str) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text + ("\n" if text else ""))


@app.command()
def run(
    pipeline: Path = typer.Argument(..., help="Pipeline definition file (.pipe)."),
    input: Path = typer.Argument(..., help="Input deck (80-column records, one per line)."),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write output to a file instead of stdout."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show paths, counts and debug logging on stderr."
    ),
    log_csv: Path | None = typer.Option(None, "--log-csv", help="Append a run summary row."),
    log_jsonl: Path | None = typer.Option(
        None, "--log-jsonl", help="Append a run summary as JSONL."
    ),
    tag: str | None = typer.Option(None, "--tag", help="Optional tag to mark this run."),
) -> None:
    """Run a pipeline file against an input deck."""
    setup_logging(verbose)
    pipeline_text = _read_text(pipeline, "Pipeline")
    input_text = _read_text(input, "Input")
    if verbose:
        err_console.print(f"Pipeline: {pipeline}")
        err_console.print(f"Input:    {input}")
        err_console.print(f"Output:   {output or '(stdout)'}")
        err_console.print("Executor: record-at-a-time")

    try:
        result = execute_pipeline_rat(input_text, pipeline_text)
    except PipelineError as exc:
        _fail(exc)

    if output:
        _write_output(output, result.output_text)
    elif result.output_text:
        # plain print: card images must not be reflowed or markup-parsed
        typer.echo(result.output_text)

    if verbose:
        err_console.print(f"Records:  {result.input_count} in -> {result.output_count} out")
    if log_csv or log_jsonl:
        row = summary_row(result, pipeline=str(pipeline), tag=tag)
        if log_csv:
            append_csv(log_csv, row)
        if log_jsonl:
            append_jsonl(log_jsonl, row)


def _step_table(session: DebugSession, view: StepView) -> Table:
    title = session.label_for(view.step)
    if view.stage_index is not None:
        title += f" (from {session.trace.stage_names[view.stage_index]})"
    names = ["source", *session.trace.stage_names]
    table = Table(title=title, show_lines=False)
    table.add_column("pipe", justify="right")
    table.add_column("between")
    table.add_column("records")
    table.add_column("mark")
    for idx, records in enumerate(view.pipe_points):
        marks = [w.label for w in session.watches_at(idx)]
        if idx in session.breakpoints:
            marks.append("break")
        if records is None:
            shown = "..."
        else:
            shown = escape("\n".join(r.trimmed() for r in records)) or "-"
        table.add_row(str(idx), f"{names[idx]} -> {names[idx + 1]}", shown, " ".join(marks))
    return table


@app.command()
def debug(
    pipeline: Path = typer.Argument(..., help="Pipeline definition file (.pipe)."),
    input: Path = typer.Argument(..., help="Input deck (80-column records, one per line)."),
    trace_out: Path | None = typer.Option(
        None, "--trace-out", "-t", help="Write the debug trace as JSON."
    ),
    watch: list[int] | None = typer.Option(
        None, "--watch", "-w", help="Watch a pipe point (repeatable)."
    ),
    breaks: list[int] | None = typer.Option(
        None, "--break", "-b", help="Stop when this pipe point is revealed."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr."),
) -> None:
    """Step through a pipeline one pipe point at a time."""
    setup_logging(verbose)
    pipeline_text = _read_text(pipeline, "Pipeline")
    input_text = _read_text(input, "Input")
    try:
        result = execute_pipeline_rat_debug(input_text, pipeline_text)
    except PipelineError as exc:
        _fail(exc)
    if result.trace is None:
        raise RuntimeError("debug run returned no trace")

    session = DebugSession(result.trace)
    try:
        for pp in watch or []:
            session.add_watch(pp)
        for pp in breaks or []:
            session.toggle_breakpoint(pp)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    session.run_all()
    for step in range(1, session.current_step + 1):
        console.print(_step_table(session, session.view(step)))

    if session.hit_breakpoint is not None:
        console.print(
            f"[yellow]Stopped at breakpoint[/] on pipe point {session.hit_breakpoint}"
            f" ({escape(session.step_label)})"
        )
    if session.accumulated_output:
        console.print("[bold]Output so far[/]")
        console.print(escape(session.accumulated_output))
    for label, values in session.watch_values().items():
        console.print(f"[bold]{label}[/]: {escape(str(values))}")
    console.print(
        f"[bold green]Records[/] {result.input_count} in -> {result.output_count} out"
    )

    if trace_out:
        trace_out.parent.mkdir(parents=True, exist_ok=True)
        trace_out.write_bytes(
            orjson.dumps(result.trace.to_payload(), option=orjson.OPT_INDENT_2)
        )
        console.print(f"[bold green]Wrote trace[/] to {trace_out}")


@app.command()
def parse(
    pipeline: Path = typer.Argument(..., help="Pipeline definition file (.pipe)."),
) -> None:
    """Parse a pipeline file and print its commands as JSON."""
    pipeline_text = _read_text(pipeline, "Pipeline")
    try:
        commands = parse_commands(pipeline_text)
    except PipelineError as exc:
        _fail(exc)
    payload = [c.to_dict() for c in commands]
    typer.echo(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())


@job_app.command("run")
def job_run(
    job_file: Path = typer.Argument(..., help="Job file (.yaml/.yml/.json)."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr."),
) -> None:
    """Run a pipeline job and report a JSON summary."""
    setup_logging(verbose)
    if not job_file.is_file():
        raise typer.BadParameter(f"Job file not found: {job_file}")
    try:
        _result, summary = run_job(load_job(job_file))
    except PipelineError as exc:
        _fail(exc)
    typer.echo(orjson.dumps(summary, option=orjson.OPT_INDENT_2).decode())
    if summary["warnings"]:
        raise typer.Exit(code=1)


@job_app.command("validate")
def job_validate(
    job_file: Path = typer.Argument(..., help="Job file (.yaml/.yml/.json)."),
) -> None:
    """Check that a job's pipeline and input files exist."""
    if not job_file.is_file():
        raise typer.BadParameter(f"Job file not found: {job_file}")
    try:
        result = validate_job(load_job(job_file))
    except PipelineError as exc:
        _fail(exc)
    typer.echo(orjson.dumps(result, option=orjson.OPT_INDENT_2).decode())
    if result["warnings"]:
        raise typer.Exit(code=1)


@job_app.command("sample")
def job_sample() -> None:
    """Print a job template."""
    typer.echo(orjson.dumps(sample_job(), option=orjson.OPT_INDENT_2).decode())


@log_app.command("summarize")
def log_summarize(
    log: Path = typer.Argument(..., help="CSV or JSONL run log."),
) -> None:
    """Summarize a run log written with --log-csv / --log-jsonl."""
    if not log.is_file():
        raise typer.BadParameter(f"Log file not found: {log}")
    typer.echo(orjson.dumps(summarize_log(log), option=orjson.OPT_INDENT_2).decode())


if __name__ == "__main__":
    app()
