"""Tests for the column builder."""

import json
import threading

import pyarrow as pa
import pytest

from typed_columns.canonical.column_type import ColumnType
from typed_columns.execution.config import BuildConfig
from typed_columns.inference.classifier import classify
from typed_columns.inference.type_inference import CANCEL_CHECK_INTERVAL
from typed_columns.pipeline.column_builder import ColumnBuilder, build_column
from typed_columns.utils.exceptions import BuildCancelled, DictionaryOverflow, TypeMismatch


class TestBuild:
    """Inference followed by materialization."""

    def test_lenient_noise_becomes_coerced_null(self, to_raw, lenient_config) -> None:
        """3 of 4 integers at 0.75: Int64 with one coerced null."""
        column = build_column("n", to_raw("3", "7", "not_a_number", "5"), lenient_config)

        assert column.column_type == ColumnType.INT64
        assert column.values() == [3, 7, None, 5]
        assert column.statistics.coerced_null_count == 1
        assert column.statistics.null_count == 1
        assert column.array.type == pa.int64()

    def test_strict_mismatch_identifies_row(self, to_raw) -> None:
        """Strict policy fails the whole column at the first bad row."""
        config = BuildConfig(acceptance_threshold=0.75)

        with pytest.raises(TypeMismatch) as exc:
            build_column("n", to_raw("3", "7", "not_a_number", "5"), config)

        assert exc.value.column == "n"
        assert exc.value.row == 2
        assert exc.value.value == "not_a_number"

    def test_enum_dictionary(self, to_raw) -> None:
        """Low-cardinality text is dictionary encoded in first-seen order."""
        config = BuildConfig(enum_cardinality_cap=10)
        column = build_column("color", to_raw("red", "blue", "red", "green"), config)

        assert column.column_type == ColumnType.ENUM
        assert column.dictionary.to_dict() == {"red": 0, "blue": 1, "green": 2}
        assert column.codes() == [0, 1, 0, 2]
        assert column.values() == ["red", "blue", "red", "green"]
        assert pa.types.is_dictionary(column.array.type)

    def test_nulls_keep_their_rows(self, to_raw) -> None:
        """Null markers become nulls in the array and statistics."""
        column = build_column("n", to_raw("4", None, "6"))

        assert column.values() == [4, None, 6]
        assert column.array.null_count == 1
        assert column.statistics.null_count == 1
        assert column.statistics.coerced_null_count == 0

    def test_stored_values_reclassify_against_own_type(self, to_raw) -> None:
        """Every stored value renders back to a raw value of the column's type."""
        samples = {
            "b": ["true", "0"],
            "i": ["-1", "2"],
            "f": ["0.1", "1e20", "-3"],
            "d": ["2024-01-01", "2024-06-30T12:30:00.250+02:00"],
            "ip": ["10.0.0.1", "2001:db8::1"],
            "e": ["a", "b", "a"],
        }
        for name, fields in samples.items():
            column = build_column(name, to_raw(*fields, None))
            for raw, typed in zip(column.to_raw_values(), column.typed_values()):
                assert classify(raw, column.column_type) == typed

    def test_enum_overflow_falls_back_to_utf8(self, to_raw) -> None:
        """A sampled Enum that overflows during build restarts as Utf8."""
        config = BuildConfig(sample_size=2, enum_cardinality_cap=2)
        column = build_column("tag", to_raw("a", "b", "c", "d"), config)

        assert column.column_type == ColumnType.UTF8
        assert column.dictionary is None
        assert column.values() == ["a", "b", "c", "d"]

    def test_enum_overflow_without_fallback(self, to_raw) -> None:
        """Overflow surfaces when the fallback is disabled."""
        config = BuildConfig(sample_size=2, enum_cardinality_cap=2, allow_utf8_fallback=False)

        with pytest.raises(DictionaryOverflow):
            build_column("tag", to_raw("a", "b", "c"), config)

    def test_empty_column(self) -> None:
        """No values build an empty Utf8 column."""
        column = build_column("empty", [])

        assert column.column_type == ColumnType.UTF8
        assert column.row_count == 0


class TestBuildAs:
    """Fixed-type construction."""

    def test_fixed_type_skips_inference(self, to_raw) -> None:
        """Values are classified against the requested type."""
        column = ColumnBuilder("f").build_as(ColumnType.FLOAT64, to_raw("1", "2"))

        assert column.column_type == ColumnType.FLOAT64
        assert column.values() == [1.0, 2.0]

    def test_lenient_fixed_type(self, to_raw) -> None:
        """Lenient policy coerces failures under a fixed type."""
        builder = ColumnBuilder("i", BuildConfig(failure_policy="lenient"))
        column = builder.build_as(ColumnType.INT64, to_raw("1", "x", "y"))

        assert column.values() == [1, None, None]
        assert column.statistics.coerced_null_count == 2


class _CancelAfter:
    """Reports set once is_set() has been called more than `calls` times."""

    def __init__(self, calls: int):
        self.calls = calls
        self.seen = 0

    def is_set(self) -> bool:
        self.seen += 1
        return self.seen > self.calls


class TestCancellation:
    """Cooperative cancellation between rows."""

    def test_cancelled_before_first_row(self, to_raw) -> None:
        """A set event aborts the build without returning a column."""
        event = threading.Event()
        event.set()

        with pytest.raises(BuildCancelled) as exc:
            build_column("n", to_raw("1", "2"), cancel_event=event)
        assert exc.value.row == 0

    def test_unset_event_does_not_interfere(self, to_raw) -> None:
        """An unset event lets the build finish."""
        column = build_column("n", to_raw("1", "2"), cancel_event=threading.Event())
        assert column.column_type == ColumnType.INT64
        assert column.values() == [1, 2]

    def test_cancelled_mid_build(self, to_raw) -> None:
        """An event set between rows stops the build at that row."""
        builder = ColumnBuilder("n", cancel_event=_CancelAfter(3))

        with pytest.raises(BuildCancelled) as exc:
            builder.build_as(ColumnType.INT64, to_raw("1", "2", "3", "4", "5"))
        assert exc.value.column == "n"
        assert exc.value.row == 3

    def test_cancelled_during_inference(self, to_raw, log_messages) -> None:
        """Inference checks the event while scanning long columns."""
        fields = to_raw(*["true"] * (CANCEL_CHECK_INTERVAL * 2 + 10))

        with pytest.raises(BuildCancelled) as exc:
            build_column("flag", fields, cancel_event=_CancelAfter(1))
        assert exc.value.column == "flag"
        assert exc.value.row == CANCEL_CHECK_INTERVAL

        events = [json.loads(m) for m in log_messages]
        cancelled = [e for e in events if e["event_type"] == "COLUMN_BUILD_CANCELLED"]
        assert cancelled and cancelled[0]["row"] == CANCEL_CHECK_INTERVAL
        assert "COLUMN_TYPE_INFERRED" not in [e["event_type"] for e in events]
