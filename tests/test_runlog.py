from cardpipe.dsl.runner import execute_pipeline_rat
from cardpipe.runlog import append_csv, append_jsonl, summarize_log, summary_row


def _row(deck_text, data_dir, name, tag=None):
    pipeline = data_dir / f"{name}.pipe"
    result = execute_pipeline_rat(deck_text, pipeline.read_text())
    return summary_row(result, pipeline=name, tag=tag)


def test_summary_row_fields(deck_text, data_dir):
    row = _row(deck_text, data_dir, "sales-report", tag="nightly")
    assert row["tag"] == "nightly"
    assert (row["input_count"], row["output_count"]) == (8, 3)
    assert row["stages"] == "LOCATE | SELECT | CONSOLE"
    assert row["timestamp"].endswith("Z")


def test_csv_and_jsonl_logs_summarize_alike(tmp_path, deck_text, data_dir):
    csv_path = tmp_path / "logs" / "runs.csv"
    jsonl_path = tmp_path / "logs" / "runs.jsonl"
    for name in ("sales-report", "count-records", "sales-report"):
        row = _row(deck_text, data_dir, name)
        append_csv(csv_path, row)
        append_jsonl(jsonl_path, row)

    assert csv_path.read_text().splitlines()[0].startswith("timestamp,pipeline")
    expected = {
        "runs": 3,
        "records_in": 24,
        "records_out": 7,
        "pipelines": {"sales-report": 2, "count-records": 1},
    }
    assert summarize_log(csv_path) == expected
    assert summarize_log(jsonl_path) == expected
