"""Tests for the record adapter and RawValue wrapping."""

import json

from typed_columns.adapters.record_adapter import RecordAdapter, records_to_raw_columns
from typed_columns.canonical.values import RawValue
from typed_columns.execution.config import BuildConfig


class TestFromField:
    """Wrapping one reader field."""

    def test_null_tokens(self) -> None:
        """None and configured tokens become the null marker."""
        assert RawValue.from_field(None).is_null
        assert RawValue.from_field("").is_null
        assert RawValue.from_field("NA", null_tokens=("NA",)).is_null
        assert not RawValue.from_field("NA").is_null

    def test_percent_decoding(self) -> None:
        """Escapes decode to text, or to bytes when not valid UTF-8."""
        assert RawValue.from_field("a%20b", percent_decode=True).payload == "a b"
        assert RawValue.from_field("a%20b").payload == "a%20b"

        value = RawValue.from_field("%FF%FE", percent_decode=True)
        assert value.payload == b"\xff\xfe"
        assert not value.is_text

    def test_bytes_fields(self) -> None:
        """UTF-8 bytes become text; other bytes are kept."""
        assert RawValue.from_field("é".encode("utf-8")).payload == "é"
        assert RawValue.from_field(b"\xff").payload == b"\xff"


class TestRecordsToRawColumns:
    """Transposition and row-width handling."""

    def test_transpose(self) -> None:
        """Records become per-column value lists."""
        columns = records_to_raw_columns(["a", "b"], [["1", "x"], ["2", None]])

        assert [v.payload for v in columns[0]] == ["1", "2"]
        assert [v.payload for v in columns[1]] == ["x", None]

    def test_short_and_long_records(self, log_messages) -> None:
        """Short records pad with nulls, long records drop extras."""
        adapter = RecordAdapter(["a", "b"])
        columns = adapter.to_raw_columns([["1"], ["2", "y", "extra"], ["3", "z"]])

        assert [v.payload for v in columns[0]] == ["1", "2", "3"]
        assert [v.payload for v in columns[1]] == [None, "y", "z"]
        assert adapter.mismatch_count == 2
        assert len(adapter.row_mismatches) == 1
        assert adapter.row_mismatches[0]["row_number"] == 0
        assert adapter.row_mismatches[0]["missing_columns"] == ["b"]

        events = [json.loads(m) for m in log_messages]
        warning = [e for e in events if e["event_type"] == "ROW_WIDTH_MISMATCH"]
        assert warning and warning[0]["mismatch_count"] == 2

    def test_config_applies_at_boundary(self) -> None:
        """Null tokens and percent-decoding come from the config."""
        config = BuildConfig(null_tokens=("-",), percent_decode=True)
        columns = records_to_raw_columns(["a"], [["-"], ["x%2Cy"], [""]], config)

        assert columns[0][0].is_null
        assert columns[0][1].payload == "x,y"
        assert columns[0][2].payload == ""
