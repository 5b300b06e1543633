import math
from itertools import islice
from typing import Iterable, List, Optional

from typed_columns.canonical.column_type import INFERENCE_ORDER, ColumnType
from typed_columns.canonical.values import RawValue
from typed_columns.execution.config import BuildConfig
from typed_columns.inference.classifier import matches
from typed_columns.utils.exceptions import BuildCancelled

# Guards ceil() against float noise, e.g. 0.7 * 10 -> 7.000000000000001
_EPSILON = 1e-9

# Rows scanned between cancellation checks
CANCEL_CHECK_INTERVAL = 1024


def required_successes(total: int, threshold: float) -> int:
    """
    Minimum number of classified values for a candidate to be accepted.
    """
    return max(1, math.ceil(total * threshold - _EPSILON))


def _check_cancel(cancel_event, column: str, row: int) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise BuildCancelled(column, row)


def _sample(raw_values: Iterable[RawValue], sample_size: Optional[int]) -> List[RawValue]:
    if sample_size is None:
        return list(raw_values)
    return list(islice(raw_values, sample_size))


def _meets_threshold(
    values: List[RawValue],
    candidate: ColumnType,
    required: int,
    config: BuildConfig,
    cancel_event=None,
    column: str = "",
) -> bool:
    allowed_failures = len(values) - required
    successes = 0
    failures = 0
    for idx, value in enumerate(values):
        if idx % CANCEL_CHECK_INTERVAL == 0:
            _check_cancel(cancel_event, column, idx)
        if matches(value, candidate, config.datetime_formats):
            successes += 1
            if successes >= required:
                return True
        else:
            failures += 1
            if failures > allowed_failures:
                return False
    return successes >= required


def _enum_qualifies(
    values: List[RawValue],
    required: int,
    cap: int,
    cancel_event=None,
    column: str = "",
) -> bool:
    """
    ENUM needs text values and a distinct count that never exceeds the cap.
    """
    distinct = set()
    successes = 0
    for idx, value in enumerate(values):
        if idx % CANCEL_CHECK_INTERVAL == 0:
            _check_cancel(cancel_event, column, idx)
        if not value.is_text:
            continue
        successes += 1
        distinct.add(value.payload)
        if len(distinct) > cap:
            return False
    return successes >= required


def infer_type(
    raw_values: Iterable[RawValue],
    config: Optional[BuildConfig] = None,
    cancel_event=None,
    column: str = "",
) -> ColumnType:
    """
    Infer the most specific column type for one column of raw values.

    Candidates are tried in order:
    BOOLEAN -> INT64 -> UINT64 -> FLOAT64 -> DATETIME -> IP_ADDR -> ENUM -> UTF8 -> BINARY

    A candidate is accepted when its success ratio over the non-null values
    (of the sample prefix, if `sample_size` is set) reaches the acceptance
    threshold. The first accepted candidate wins. UTF8 fails only when
    non-text (binary) payloads are present, in which case BINARY is chosen.

    Notes:
    - A column with no non-null values is UTF8.
    - ENUM is only considered while the distinct count stays at or below
      `enum_cardinality_cap`.
    - `cancel_event` (anything with is_set()) is checked at the start of
      each candidate scan and every CANCEL_CHECK_INTERVAL values; a set event
      raises BuildCancelled for `column`, with the row counted in non-null values.
    """
    config = config or BuildConfig()

    non_null = [v for v in _sample(raw_values, config.sample_size) if not v.is_null]
    if not non_null:
        return ColumnType.UTF8

    required = required_successes(len(non_null), config.acceptance_threshold)

    for candidate in INFERENCE_ORDER:
        if candidate == ColumnType.BINARY:
            return candidate

        if candidate == ColumnType.ENUM:
            accepted = _enum_qualifies(
                non_null, required, config.enum_cardinality_cap, cancel_event, column
            )
        else:
            accepted = _meets_threshold(
                non_null, candidate, required, config, cancel_event, column
            )

        if accepted:
            return candidate

    # BINARY accepts everything, so the loop always returns
    return ColumnType.BINARY
