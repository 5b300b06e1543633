"""Tests for the Column container."""

from datetime import datetime, timedelta, timezone

import pyarrow as pa
import pytest

from typed_columns.canonical.column import Column, build_array
from typed_columns.canonical.column_type import ColumnType
from typed_columns.canonical.dictionary import Dictionary
from typed_columns.canonical.statistics import Statistics


class TestColumnInvariants:
    """Construction checks."""

    def test_array_type_must_match(self) -> None:
        """The array type must be the column type's storage type."""
        stats = Statistics(ColumnType.INT64, 10)
        stats.record_coerced_null()
        with pytest.raises(ValueError):
            Column("a", ColumnType.INT64, pa.array([None], type=pa.string()), stats)

    def test_length_must_match_statistics(self) -> None:
        """Statistics must cover every row."""
        with pytest.raises(ValueError):
            Column("a", ColumnType.INT64, build_array(ColumnType.INT64, [1]), Statistics(ColumnType.INT64, 10))

    def test_enum_requires_dictionary(self) -> None:
        """Only Enum columns carry a dictionary."""
        stats = Statistics(ColumnType.UTF8, 10)
        with pytest.raises(ValueError):
            Column("a", ColumnType.UTF8, build_array(ColumnType.UTF8, []), stats, Dictionary())

        with pytest.raises(ValueError):
            build_array(ColumnType.ENUM, [0])


class TestColumnAccess:
    """Cell access."""

    def test_value_and_text(self, make_column) -> None:
        """Cells read as typed values or canonical text."""
        column = make_column("f", ["1.5", None, "2"])

        assert column.value(0) == 1.5
        assert column.value(1) is None
        assert column.value_text(2) == "2.0"
        assert column.value_text(1) is None

    def test_out_of_range(self, make_column) -> None:
        """Reading past the end raises IndexError."""
        column = make_column("f", ["1"])
        with pytest.raises(IndexError):
            column.value(1)

    def test_codes_only_for_enum(self, make_column) -> None:
        """Codes are an Enum-only view."""
        with pytest.raises(TypeError):
            make_column("n", ["4"]).codes()

    def test_binary_raw_values(self, make_column) -> None:
        """Binary cells render back as bytes payloads."""
        column = make_column("b", ["x", "y"], column_type=ColumnType.BINARY)

        assert column.values() == [b"x", b"y"]
        assert [r.payload for r in column.to_raw_values()] == [b"x", b"y"]


class TestTopIntervals:
    """Fixed-width bucketing of numeric and datetime cells."""

    def test_float_buckets(self, make_column) -> None:
        """The densest interval comes first, ties by lower bound."""
        column = make_column("f", ["0.5", "1.2", "1.8", "3.1", None])

        assert column.top_intervals(2, 1.0) == [((1.0, 2.0), 2), ((0.0, 1.0), 1)]

    def test_integer_buckets(self, make_column) -> None:
        """Integer columns bucket on integer bounds."""
        column = make_column("n", ["5", "12", "17", "18"])

        assert column.top_intervals(5, 10) == [((10, 20), 3), ((0, 10), 1)]

    def test_datetime_buckets(self, make_column) -> None:
        """Datetimes bucket from the Unix epoch by a timedelta."""
        column = make_column("t", ["2024-01-01T01:00:00", "2024-01-01T23:00:00", "2024-01-02"])
        day = timedelta(days=1)
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)

        assert column.top_intervals(1, day) == [((start, start + day), 2)]

    def test_rejects_non_interval_types(self, make_column) -> None:
        """Text columns have no intervals."""
        with pytest.raises(TypeError):
            make_column("s", ["a", "b"], column_type=ColumnType.UTF8).top_intervals(1, 1.0)

    @pytest.mark.parametrize("width", [0, -1.5, True, timedelta(days=1)])
    def test_numeric_width_must_be_positive_number(self, make_column, width) -> None:
        """Numeric widths are positive numbers."""
        with pytest.raises(ValueError):
            make_column("f", ["1.5"]).top_intervals(1, width)

    def test_datetime_width_must_be_timedelta(self, make_column) -> None:
        """Datetime widths are positive timedeltas."""
        column = make_column("t", ["2024-01-01"])
        with pytest.raises(ValueError):
            column.top_intervals(1, 3600)
        with pytest.raises(ValueError):
            column.top_intervals(1, timedelta(0))
