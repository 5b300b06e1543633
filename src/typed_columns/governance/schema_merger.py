import logging
from concurrent.futures import ThreadPoolExecutor
from functools import reduce
from typing import Dict, Hashable, List, Optional, Sequence

from typed_columns.canonical.column import Column, build_array
from typed_columns.canonical.column_type import ColumnType, widen_all
from typed_columns.canonical.dataset import Dataset
from typed_columns.canonical.statistics import Statistics
from typed_columns.execution.config import BuildConfig
from typed_columns.governance.schema_diff import SchemaDiff
from typed_columns.inference.classifier import reclassify
from typed_columns.observability.logger import BuildTimer, log_event
from typed_columns.utils.exceptions import DictionaryOverflow, SchemaConflict


def _merge_statistics(statistics: Sequence[Statistics]) -> Statistics:
    # The result never shares statistics with an input
    return reduce(
        lambda left, right: left.merge(right),
        statistics[1:],
        statistics[0].copy(),
    )


def _merge_enum(name: str, columns: Sequence[Column], config: BuildConfig) -> Column:
    """
    Union dictionaries left to right and recode every input's codes.

    Raises:
        DictionaryOverflow: the unified dictionary exceeds the cap
    """
    dictionary = columns[0].dictionary.copy()
    codes: List[Optional[int]] = list(columns[0].codes())

    for column in columns[1:]:
        dictionary, remap = dictionary.union(column.dictionary, cap=config.enum_cardinality_cap)
        codes.extend(None if code is None else remap[code] for code in column.codes())

    return Column(
        name=name,
        column_type=ColumnType.ENUM,
        array=build_array(ColumnType.ENUM, codes, dictionary),
        statistics=_merge_statistics([c.statistics for c in columns]),
        dictionary=dictionary,
    )


def _merge_widened(
    name: str,
    columns: Sequence[Column],
    target: ColumnType,
    config: BuildConfig,
) -> Column:
    """
    Re-classify inputs narrower than `target`, then concatenate.
    """
    payloads = []
    statistics = []

    for column in columns:
        if column.column_type == target:
            payloads.extend(column.values())
            statistics.append(column.statistics)
            continue

        payloads.extend(
            reclassify(value, target, config.datetime_formats).value
            for value in column.typed_values()
        )
        statistics.append(column.statistics.widened(target, config.datetime_formats))

    return Column(
        name=name,
        column_type=target,
        array=build_array(target, payloads),
        statistics=_merge_statistics(statistics),
    )


def merge_columns(columns: Sequence[Column], config: Optional[BuildConfig] = None) -> Column:
    """
    Merge same-named columns into one new column.

    - Result type is the least upper bound of the input types
    - Rows keep the input order
    - ENUM inputs union their dictionaries; on overflow the merge falls
      back to UTF8 unless `allow_utf8_fallback` is disabled
    - Statistics are merged algebraically, never recomputed
    Inputs are left unchanged.

    Raises:
        SchemaConflict: inputs have different names
        DictionaryOverflow: ENUM union overflow with fallback disabled
        UnsupportedWidening: a value failed to re-classify (invariant violation)
    """
    columns = list(columns)
    if not columns:
        raise ValueError("merge_columns() requires at least one column")

    names = {c.name for c in columns}
    if len(names) > 1:
        raise SchemaConflict(f"Cannot merge columns with different names: {sorted(names)}")

    config = config or BuildConfig()
    name = columns[0].name
    timer = BuildTimer()
    target = widen_all(c.column_type for c in columns)

    merged = None
    if target == ColumnType.ENUM:
        try:
            merged = _merge_enum(name, columns, config)
        except DictionaryOverflow as err:
            if not config.allow_utf8_fallback:
                log_event("COLUMN_MERGE_FAILED", {
                    "column": name,
                    "error": str(err),
                }, level=logging.ERROR)
                raise
            log_event("ENUM_OVERFLOW_FALLBACK", {
                "column": name,
                "cap": err.cap,
                "attempted": err.attempted,
                "fallback_type": ColumnType.UTF8.value,
            }, level=logging.WARNING)
            target = ColumnType.UTF8

    if merged is None:
        merged = _merge_widened(name, columns, target, config)

    log_event("COLUMN_MERGE_COMPLETED", {
        "column": name,
        "inputs": [c.column_type.value for c in columns],
        "column_type": merged.column_type.value,
        "rows": merged.row_count,
        "duration_seconds": timer.duration(),
    }, level=logging.DEBUG)
    return merged


def _merge_event_ids(datasets: Sequence[Dataset]) -> Dict[Hashable, int]:
    merged: Dict[Hashable, int] = {}
    offset = 0
    for dataset in datasets:
        for event, row in dataset.event_ids.items():
            if event in merged:
                raise SchemaConflict(f"Event id {event!r} appears in more than one dataset")
            merged[event] = row + offset
        offset += dataset.num_rows
    return merged


def merge_datasets(datasets: Sequence[Dataset], config: Optional[BuildConfig] = None) -> Dataset:
    """
    Merge datasets with the same column names, one column merge per worker.

    Column order follows the first dataset; rows follow the input order.

    Raises:
        SchemaConflict: column sets differ, or event ids collide
    """
    datasets = list(datasets)
    if not datasets:
        raise ValueError("merge_datasets() requires at least one dataset")

    config = config or BuildConfig()
    timer = BuildTimer()
    base = datasets[0]

    widenings = []
    for other in datasets[1:]:
        report = SchemaDiff(base.schema(), other.schema()).diff()
        if report["breaking_changes"]:
            raise SchemaConflict(
                f"Datasets do not share the same columns: {report['breaking_changes']}"
            )
        widenings.extend(report["non_breaking_changes"])

    event_ids = _merge_event_ids(datasets)

    names = base.names
    if names:
        with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
            futures = [
                executor.submit(merge_columns, [d[name] for d in datasets], config)
                for name in names
            ]
            columns = [future.result() for future in futures]
    else:
        columns = []

    merged = Dataset(columns=columns, event_ids=event_ids)

    log_event("DATASET_MERGE_COMPLETED", {
        "datasets": len(datasets),
        "rows": merged.num_rows,
        "type_widenings": widenings,
        "duration_seconds": timer.duration(),
    })
    return merged
