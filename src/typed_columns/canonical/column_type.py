from enum import Enum
from functools import reduce
from typing import Iterable

import pyarrow as pa


class ColumnType(str, Enum):
    """
    Closed set of column types.

    Widening lattice (least upper bound):
    BOOLEAN -> INT64 -> FLOAT64
    BOOLEAN -> UINT64 -> FLOAT64
    everything else -> UTF8 -> BINARY
    """

    INT64 = "int64"
    UINT64 = "uint64"
    FLOAT64 = "float64"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    IP_ADDR = "ip_addr"
    ENUM = "enum"
    UTF8 = "utf8"
    BINARY = "binary"

    def __str__(self) -> str:
        return self.value

    @property
    def is_ordered(self) -> bool:
        """
        True when min/max/mean/variance are tracked for the type.
        """
        return self in ORDERED_TYPES

    @property
    def is_numeric(self) -> bool:
        return self in NUMERIC_TYPES

    def arrow_type(self) -> pa.DataType:
        return _ARROW_TYPES[self]


# Candidate order used by inference, most specific first.
INFERENCE_ORDER = (
    ColumnType.BOOLEAN,
    ColumnType.INT64,
    ColumnType.UINT64,
    ColumnType.FLOAT64,
    ColumnType.DATETIME,
    ColumnType.IP_ADDR,
    ColumnType.ENUM,
    ColumnType.UTF8,
    ColumnType.BINARY,
)

NUMERIC_TYPES = frozenset({
    ColumnType.BOOLEAN,
    ColumnType.INT64,
    ColumnType.UINT64,
    ColumnType.FLOAT64,
})

ORDERED_TYPES = NUMERIC_TYPES | {ColumnType.DATETIME}

ENUM_INDEX_TYPE = pa.int32()

_ARROW_TYPES = {
    ColumnType.INT64: pa.int64(),
    ColumnType.UINT64: pa.uint64(),
    ColumnType.FLOAT64: pa.float64(),
    ColumnType.BOOLEAN: pa.bool_(),
    ColumnType.DATETIME: pa.timestamp("us", tz="UTC"),
    ColumnType.IP_ADDR: pa.string(),
    ColumnType.ENUM: pa.dictionary(ENUM_INDEX_TYPE, pa.string()),
    ColumnType.UTF8: pa.string(),
    ColumnType.BINARY: pa.binary(),
}


def _widen_numeric(a: ColumnType, b: ColumnType) -> ColumnType:
    pair = {a, b}
    if ColumnType.FLOAT64 in pair:
        return ColumnType.FLOAT64
    if ColumnType.BOOLEAN in pair:
        # BOOLEAN sits below both integer types
        pair.discard(ColumnType.BOOLEAN)
        return pair.pop()
    # INT64 with UINT64: neither holds the other's full range
    return ColumnType.FLOAT64


def widen(a: ColumnType, b: ColumnType) -> ColumnType:
    """
    Least upper bound of two column types. Total over every pair.
    """
    if a == b:
        return a
    if ColumnType.BINARY in (a, b):
        return ColumnType.BINARY
    if a in NUMERIC_TYPES and b in NUMERIC_TYPES:
        return _widen_numeric(a, b)
    return ColumnType.UTF8


def widen_all(types: Iterable[ColumnType]) -> ColumnType:
    types = list(types)
    if not types:
        raise ValueError("widen_all() requires at least one column type")
    return reduce(widen, types)


def is_narrower_or_equal(narrow: ColumnType, wide: ColumnType) -> bool:
    return widen(narrow, wide) == wide


def from_name(name: str) -> ColumnType:
    """
    Parse a column type from its serialized name (case-insensitive).
    """
    try:
        return ColumnType(str(name).strip().lower())
    except ValueError:
        raise ValueError(
            f"Unknown column type '{name}'. "
            f"Allowed: {[t.value for t in ColumnType]}"
        ) from None
