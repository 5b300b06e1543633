import ipaddress
import json
import logging
from datetime import date, datetime, timezone
from typing import Any, List, Optional

import pyarrow as pa

from typed_columns.canonical.column import Column, build_array
from typed_columns.canonical.column_type import ColumnType, from_name
from typed_columns.canonical.dataset import Dataset
from typed_columns.canonical.dictionary import Dictionary
from typed_columns.canonical.statistics import Statistics
from typed_columns.canonical.values import TypedValue
from typed_columns.execution.config import BuildConfig
from typed_columns.observability.logger import log_event
from typed_columns.utils.exceptions import DictionaryOverflow

COLUMN_TYPE_KEY = b"column_type"
STATISTICS_KEY = b"statistics"


def map_arrow_type_to_column_type(arrow_type: pa.DataType) -> ColumnType:
    """
    Best ColumnType for an Arrow type written without column metadata.
    """
    if pa.types.is_dictionary(arrow_type):
        value_type = arrow_type.value_type
        if pa.types.is_string(value_type) or pa.types.is_large_string(value_type):
            return ColumnType.ENUM
        return map_arrow_type_to_column_type(value_type)

    if pa.types.is_boolean(arrow_type):
        return ColumnType.BOOLEAN

    if pa.types.is_unsigned_integer(arrow_type):
        return ColumnType.UINT64

    if pa.types.is_integer(arrow_type):
        return ColumnType.INT64

    if pa.types.is_floating(arrow_type):
        return ColumnType.FLOAT64

    if pa.types.is_timestamp(arrow_type) or pa.types.is_date(arrow_type):
        return ColumnType.DATETIME

    if pa.types.is_string(arrow_type) or pa.types.is_large_string(arrow_type):
        return ColumnType.UTF8

    if pa.types.is_binary(arrow_type) or pa.types.is_large_binary(arrow_type):
        return ColumnType.BINARY

    raise ValueError(f"Unsupported Arrow type {arrow_type}")


def column_to_arrow_field(column: Column) -> pa.Field:
    return pa.field(
        column.name,
        column.array.type,
        nullable=True,
        metadata={
            COLUMN_TYPE_KEY: column.column_type.value.encode("utf-8"),
            STATISTICS_KEY: json.dumps(column.statistics.to_dict()).encode("utf-8"),
        },
    )


def dataset_to_arrow(dataset: Dataset) -> pa.Table:
    """
    Dataset -> pyarrow.Table. Each field's metadata carries its
    ColumnType and a JSON statistics summary.
    """
    fields = [column_to_arrow_field(c) for c in dataset]
    arrays = [c.array for c in dataset]
    return pa.Table.from_arrays(arrays, schema=pa.schema(fields))


def _field_column_type(field: pa.Field) -> ColumnType:
    metadata = field.metadata
    if metadata and COLUMN_TYPE_KEY in metadata:
        return from_name(metadata[COLUMN_TYPE_KEY].decode("utf-8"))
    return map_arrow_type_to_column_type(field.type)


def _field_coerced_nulls(field: pa.Field) -> int:
    metadata = field.metadata
    if not metadata or STATISTICS_KEY not in metadata:
        return 0
    summary = json.loads(metadata[STATISTICS_KEY].decode("utf-8"))
    return int(summary.get("coerced_null_count") or 0)


def _to_payload(column_type: ColumnType, value: Any) -> Any:
    if value is None:
        return None
    if column_type == ColumnType.DATETIME:
        if not isinstance(value, datetime) and isinstance(value, date):
            return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if column_type == ColumnType.IP_ADDR:
        return ipaddress.ip_address(value)
    if column_type == ColumnType.FLOAT64:
        return float(value)
    return value


def _enum_dictionary(chunked: pa.ChunkedArray, values: List[Optional[str]], cap: int) -> Dictionary:
    """
    Keep the stored dictionary order; values seen only in later chunks
    are appended.

    Raises:
        DictionaryOverflow: more distinct values than `cap`
    """
    dictionary = Dictionary(cap=cap)
    if pa.types.is_dictionary(chunked.type):
        for chunk in chunked.chunks:
            for value in chunk.dictionary.to_pylist():
                dictionary.intern(value)
    for value in values:
        if value is not None:
            dictionary.intern(value)
    return dictionary


def _column_from_arrow(field: pa.Field, chunked: pa.ChunkedArray, config: BuildConfig) -> Column:
    column_type = _field_column_type(field)
    values = chunked.to_pylist()
    dictionary = None

    if column_type == ColumnType.ENUM:
        try:
            dictionary = _enum_dictionary(chunked, values, config.enum_cardinality_cap)
        except DictionaryOverflow as err:
            if not config.allow_utf8_fallback:
                raise
            log_event("ENUM_OVERFLOW_FALLBACK", {
                "column": field.name,
                "cap": err.cap,
                "fallback_type": ColumnType.UTF8.value,
            }, level=logging.WARNING)
            column_type = ColumnType.UTF8

    payloads = [_to_payload(column_type, v) for v in values]
    statistics = Statistics.from_values(
        column_type,
        (TypedValue(column_type, p) for p in payloads),
        config.enum_cardinality_cap,
    )
    # coerced nulls are indistinguishable from nulls once stored
    statistics.coerced_null_count = min(_field_coerced_nulls(field), statistics.null_count)

    if dictionary is not None:
        payloads = [None if p is None else dictionary.code_of(p) for p in payloads]

    return Column(
        name=field.name,
        column_type=column_type,
        array=build_array(column_type, payloads, dictionary),
        statistics=statistics,
        dictionary=dictionary,
    )


def dataset_from_arrow(table: pa.Table, config: Optional[BuildConfig] = None) -> Dataset:
    """
    pyarrow.Table -> Dataset.

    Column types come from field metadata when present, otherwise from
    the Arrow types. Statistics are rebuilt from the stored values.

    Raises:
        ValueError: an Arrow type with no ColumnType counterpart
        SchemaConflict: duplicate column names
    """
    config = config or BuildConfig()
    columns = [
        _column_from_arrow(field, table.column(idx), config)
        for idx, field in enumerate(table.schema)
    ]
    return Dataset(columns=columns)
