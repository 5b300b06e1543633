import ipaddress
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pyarrow as pa

from typed_columns.canonical.column_type import ENUM_INDEX_TYPE, ColumnType
from typed_columns.canonical.dictionary import Dictionary
from typed_columns.canonical.statistics import Statistics
from typed_columns.canonical.values import RawValue, TypedValue
from typed_columns.inference.classifier import render

INTERVAL_TYPES = frozenset({
    ColumnType.INT64,
    ColumnType.UINT64,
    ColumnType.FLOAT64,
    ColumnType.DATETIME,
})

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def build_array(
    column_type: ColumnType,
    payloads: Sequence[Any],
    dictionary: Optional[Dictionary] = None,
) -> pa.Array:
    """
    Materialize typed payloads (None = null) as an Arrow array.
    For ENUM the payloads are dictionary codes.
    """
    if column_type == ColumnType.ENUM:
        if dictionary is None:
            raise ValueError("ENUM arrays require a dictionary")
        indices = pa.array(payloads, type=ENUM_INDEX_TYPE)
        return pa.DictionaryArray.from_arrays(indices, dictionary.to_arrow())

    if column_type == ColumnType.IP_ADDR:
        payloads = [None if p is None else str(p) for p in payloads]

    return pa.array(payloads, type=column_type.arrow_type())


@dataclass
class Column:
    """
    One named, typed column.

    Every non-null entry is valid under `column_type`; the array length
    equals the statistics' row count. A Column is never mutated after
    construction; merges produce new columns.
    """
    name: str
    column_type: ColumnType
    array: pa.Array
    statistics: Statistics
    dictionary: Optional[Dictionary] = None

    def __post_init__(self):
        if self.column_type == ColumnType.ENUM and self.dictionary is None:
            raise ValueError(f"ENUM column '{self.name}' requires a dictionary")
        if self.column_type != ColumnType.ENUM and self.dictionary is not None:
            raise ValueError(f"Only ENUM columns carry a dictionary ('{self.name}')")
        if self.array.type != self.column_type.arrow_type():
            raise ValueError(
                f"Column '{self.name}' array type {self.array.type} "
                f"does not match {self.column_type}"
            )
        if len(self.array) != self.statistics.row_count:
            raise ValueError(
                f"Column '{self.name}' has {len(self.array)} values "
                f"but statistics cover {self.statistics.row_count} rows"
            )

    def __len__(self) -> int:
        return len(self.array)

    @property
    def row_count(self) -> int:
        return len(self.array)

    def codes(self) -> List[Optional[int]]:
        """
        Dictionary codes of an ENUM column.
        """
        if self.column_type != ColumnType.ENUM:
            raise TypeError(f"Column '{self.name}' is {self.column_type}, not enum")
        return self.array.indices.to_pylist()

    def _from_storage(self, stored):
        if stored is None:
            return None
        if self.column_type == ColumnType.ENUM:
            return self.dictionary.value_of(stored)
        if self.column_type == ColumnType.IP_ADDR:
            return ipaddress.ip_address(stored)
        if self.column_type == ColumnType.DATETIME:
            if stored.tzinfo is None:
                return stored.replace(tzinfo=timezone.utc)
            return stored.astimezone(timezone.utc)
        return stored

    def _storage(self) -> pa.Array:
        # ENUM cells are read as codes
        if self.column_type == ColumnType.ENUM:
            return self.array.indices
        return self.array

    def values(self) -> List[Any]:
        """
        Python payloads in row order (None = null).
        """
        return [self._from_storage(v) for v in self._storage().to_pylist()]

    def typed_values(self) -> List[TypedValue]:
        return [TypedValue(self.column_type, v) for v in self.values()]

    def value(self, index: int) -> Any:
        if not 0 <= index < len(self):
            raise IndexError(f"Row {index} out of range for column '{self.name}'")
        return self._from_storage(self._storage()[index].as_py())

    def value_text(self, index: int) -> Optional[str]:
        """
        Canonical text of one cell, None when null.
        """
        return render(TypedValue(self.column_type, self.value(index)))

    def top_intervals(self, n: int, width) -> List[Tuple[Tuple[Any, Any], int]]:
        """
        Most populated fixed-width intervals of a numeric or datetime column.

        `width` is a positive number, or a timedelta for DATETIME. Intervals
        are half-open [lower, upper) and aligned to 0 (the Unix epoch for
        datetimes). Ranked by count descending, then by lower bound. Nulls
        are not counted.

        Raises:
            TypeError: the column type has no intervals
            ValueError: `width` is not positive or has the wrong kind
        """
        if self.column_type not in INTERVAL_TYPES:
            raise TypeError(
                f"Column '{self.name}' is {self.column_type}; "
                "intervals need a numeric or datetime column"
            )

        if self.column_type == ColumnType.DATETIME:
            if not isinstance(width, timedelta) or width <= timedelta(0):
                raise ValueError(f"Datetime interval width must be a positive timedelta, got {width!r}")
        elif isinstance(width, bool) or not isinstance(width, (int, float)) or not width > 0:
            raise ValueError(f"Interval width must be a positive number, got {width!r}")

        counts: Dict[Any, int] = {}
        for value in self.values():
            if value is None:
                continue
            if self.column_type == ColumnType.DATETIME:
                bucket = (value - _EPOCH) // width
            else:
                bucket = value // width
            counts[bucket] = counts.get(bucket, 0) + 1

        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
        result = []
        for bucket, count in ranked[:n]:
            if self.column_type == ColumnType.DATETIME:
                lower = _EPOCH + bucket * width
            else:
                lower = bucket * width
            result.append(((lower, lower + width), count))
        return result

    def to_raw_values(self) -> List[RawValue]:
        """
        Render every cell back to a RawValue. Classifying the result
        against `column_type` reproduces the stored values.
        """
        raws = []
        for typed in self.typed_values():
            if typed.is_null:
                raws.append(RawValue.null())
            elif self.column_type == ColumnType.BINARY:
                raws.append(RawValue(typed.value))
            else:
                raws.append(RawValue(render(typed)))
        return raws

    def __eq__(self, other) -> bool:
        if not isinstance(other, Column):
            return NotImplemented
        return (
            self.name == other.name
            and self.column_type == other.column_type
            and self.values() == other.values()
        )

    def __repr__(self) -> str:
        return (
            f"Column(name={self.name!r}, column_type={self.column_type.value}, "
            f"rows={len(self)})"
        )
