from __future__ import annotations

import csv
import gzip
from io import StringIO
from pathlib import Path

import pytest

from bugsnag_csv import (
    ExportConfig,
    MalformedRecordError,
    encode_row,
    export_csv,
    export_csv_text,
    flatten_records,
    write_csv,
    write_csv_filelike,
)

RECORDS = [{"x": 1, "y": 2}, {"x": 3}]


def test_encode_row_plain_cells():
    assert encode_row(["a", "b", "c"]) == "a,b,c\n"


def test_encode_row_quotes_special_characters():
    assert encode_row(["a,b"]) == '"a,b"\n'
    assert encode_row(['a"b']) == '"a""b"\n'
    assert encode_row(["line1\nline2", "x"]) == '"line1\nline2",x\n'


def test_encode_row_single_empty_cell_is_quoted():
    assert encode_row([""]) == '""\n'


def test_encode_row_empty_cell_among_others_is_bare():
    assert encode_row(["a", "", "b"]) == "a,,b\n"


def test_encode_row_does_not_touch_whitespace_or_carriage_returns():
    assert encode_row([" padded ", "a\rb"]) == " padded ,a\rb\n"


def test_encode_row_empty_row():
    assert encode_row([]) == "\n"


def test_export_csv_frequency_policy():
    lines = list(export_csv(RECORDS, "frequency"))

    assert lines == ["x,y\n", "1,2\n", "3,\n"]


def test_export_csv_intersection_policy():
    lines = list(export_csv(RECORDS, "intersection"))

    assert lines == ["x\n", "1\n", "3\n"]


def test_export_csv_zero_records_still_has_header():
    assert list(export_csv([])) == ["\n"]


def test_export_csv_flattens_nested_events():
    events = [
        {"id": "e1", "error": {"class": "KeyError", "message": "missing, key"}},
        {"id": "e2", "error": {"class": "ValueError"}, "unhandled": True},
    ]

    text = export_csv_text(events)

    assert text == (
        "id,error.class,error.message,unhandled\n"
        'e1,KeyError,"missing, key",\n'
        "e2,ValueError,,true\n"
    )


def test_export_csv_is_deterministic():
    events = [{"b": 1, "a": {"c": [1, 2]}}, {"a": {"d": None}, "e": "x"}, {"b": 2}]

    assert export_csv_text(events, "frequency") == export_csv_text(events, "frequency")
    assert export_csv_text(events, "intersection") == export_csv_text(events, "intersection")


def test_export_csv_round_trips_through_csv_reader():
    records = [
        {"name": "alpha", "note": 'says "hi"', "count": 3},
        {"name": "beta, gamma", "note": "two\nlines", "count": 0},
        {"name": "delta", "note": "", "count": 12},
    ]

    reader = csv.reader(StringIO(export_csv_text(records)))
    rows = list(reader)

    assert rows[0] == ["name", "note", "count"]
    assert rows[1:] == [
        [str(record["name"]), str(record["note"]), str(record["count"])] for record in records
    ]


def test_export_csv_malformed_record_fails_before_header():
    with pytest.raises(MalformedRecordError) as excinfo:
        export_csv([{"a": 1}, "not an object"])

    assert "Record 1" in str(excinfo.value)


def test_flatten_records_accepts_top_level_arrays():
    assert flatten_records([["a", "b"]]) == [{"0": "a", "1": "b"}]


def test_export_config_validation():
    ExportConfig().validate()
    ExportConfig(limit=5, schema_policy="intersection").validate()

    with pytest.raises(ValueError):
        ExportConfig(limit=0).validate()
    with pytest.raises(ValueError):
        ExportConfig(schema_policy="union").validate()  # type: ignore[arg-type]


def test_export_config_from_env(monkeypatch):
    monkeypatch.setenv("BUGSNAG_EXPORT_LIMIT", "25")
    monkeypatch.setenv("BUGSNAG_SCHEMA_POLICY", "intersection")

    config = ExportConfig.from_env()

    assert config.limit == 25
    assert config.schema_policy == "intersection"


def test_write_csv_creates_file(tmp_path: Path):
    output = tmp_path / "events.csv"

    count = write_csv(export_csv(RECORDS), str(output))

    assert count == 3
    assert output.read_text(encoding="utf-8") == "x,y\n1,2\n3,\n"


def test_write_csv_to_gzip(tmp_path: Path):
    output = tmp_path / "events.csv.gz"

    write_csv(export_csv(RECORDS), str(output))

    with gzip.open(output, "rt", encoding="utf-8", newline="") as handle:
        assert handle.read() == "x,y\n1,2\n3,\n"


def test_write_csv_filelike():
    buffer = StringIO()

    write_csv_filelike(export_csv([{"a": 1}]), buffer)

    assert buffer.getvalue() == "a\n1\n"
