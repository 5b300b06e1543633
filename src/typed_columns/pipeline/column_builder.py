import logging
from typing import Iterable, List, Optional

from typed_columns.canonical.column import Column, build_array
from typed_columns.canonical.column_type import ColumnType
from typed_columns.canonical.dictionary import Dictionary
from typed_columns.canonical.statistics import Statistics
from typed_columns.canonical.values import RawValue
from typed_columns.execution.config import BuildConfig
from typed_columns.inference.classifier import classify
from typed_columns.inference.type_inference import infer_type
from typed_columns.observability.logger import BuildTimer, log_event
from typed_columns.utils.exceptions import (
    BuildCancelled,
    ClassifyMismatch,
    DictionaryOverflow,
    TypeMismatch,
)


class ColumnBuilder:
    """
    Materializes one typed column from raw values.

    Flow:
    raw values -> infer type -> classify each row -> array + statistics (+ dictionary)

    The builder owns its dictionary, statistics and buffers until the
    finished Column is returned; a failed or cancelled build returns
    nothing, so no partially typed column is ever published.
    """

    def __init__(
        self,
        name: str,
        config: Optional[BuildConfig] = None,
        cancel_event=None,
    ):
        self.name = name
        self.config = config or BuildConfig()
        # Anything with is_set(), e.g. threading.Event
        self.cancel_event = cancel_event

    def build(self, raw_values: Iterable[RawValue]) -> Column:
        raw_values = list(raw_values)
        timer = BuildTimer()

        try:
            column_type = infer_type(raw_values, self.config, self.cancel_event, self.name)
            log_event("COLUMN_TYPE_INFERRED", {
                "column": self.name,
                "column_type": column_type.value,
                "rows": len(raw_values),
                "sample_size": self.config.sample_size,
            }, level=logging.DEBUG)

            try:
                column = self.build_as(column_type, raw_values)
            except DictionaryOverflow as err:
                if not self.config.allow_utf8_fallback:
                    raise
                log_event("ENUM_OVERFLOW_FALLBACK", {
                    "column": self.name,
                    "cap": err.cap,
                    "fallback_type": ColumnType.UTF8.value,
                }, level=logging.WARNING)
                column = self.build_as(ColumnType.UTF8, raw_values)
        except BuildCancelled as err:
            log_event("COLUMN_BUILD_CANCELLED", {
                "column": self.name,
                "row": err.row,
            }, level=logging.WARNING)
            raise
        except (TypeMismatch, DictionaryOverflow) as err:
            log_event("COLUMN_BUILD_FAILED", {
                "column": self.name,
                "column_type": column_type.value,
                "error": str(err),
            }, level=logging.ERROR)
            raise

        log_event("COLUMN_BUILD_COMPLETED", {
            "column": self.name,
            "column_type": column.column_type.value,
            "rows": column.row_count,
            "null_count": column.statistics.null_count,
            "coerced_null_count": column.statistics.coerced_null_count,
            "duration_seconds": timer.duration(),
        })
        return column

    def build_as(self, column_type: ColumnType, raw_values: List[RawValue]) -> Column:
        """
        Build with a fixed column type, skipping inference.

        Raises:
            TypeMismatch: STRICT policy and a row does not fit `column_type`
            DictionaryOverflow: ENUM distinct values exceed the cap
            BuildCancelled: the cancel event was set between rows
        """
        cap = self.config.enum_cardinality_cap
        statistics = Statistics(column_type, cap)
        dictionary = Dictionary(cap=cap) if column_type == ColumnType.ENUM else None
        payloads = []

        for row, raw in enumerate(raw_values):
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise BuildCancelled(self.name, row)

            try:
                typed = classify(raw, column_type, self.config.datetime_formats)
            except ClassifyMismatch:
                if self.config.is_strict:
                    raise TypeMismatch(self.name, row, raw.payload, column_type) from None
                payloads.append(None)
                statistics.record_coerced_null()
                continue

            statistics.update(typed)
            if dictionary is not None and not typed.is_null:
                payloads.append(dictionary.intern(typed.value))
            else:
                payloads.append(typed.value)

        array = build_array(column_type, payloads, dictionary)
        return Column(
            name=self.name,
            column_type=column_type,
            array=array,
            statistics=statistics,
            dictionary=dictionary,
        )


def build_column(
    name: str,
    raw_values: Iterable[RawValue],
    config: Optional[BuildConfig] = None,
    cancel_event=None,
) -> Column:
    return ColumnBuilder(name, config, cancel_event).build(raw_values)
