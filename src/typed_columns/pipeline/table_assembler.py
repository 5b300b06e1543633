import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Hashable, Iterable, List, Optional, Sequence

from typed_columns.adapters.record_adapter import records_to_raw_columns
from typed_columns.canonical.column import Column
from typed_columns.canonical.dataset import Dataset
from typed_columns.canonical.values import Payload, RawValue
from typed_columns.execution.config import BuildConfig
from typed_columns.observability.logger import BuildTimer, generate_batch_id, log_event
from typed_columns.pipeline.column_builder import build_column


class CancelSignal:
    """
    Cancellation seen by every column worker of one dataset build:
    set by the caller's event or by the first failing column.
    """

    def __init__(self, external=None):
        self._external = external
        self._internal = threading.Event()

    def abort(self) -> None:
        self._internal.set()

    def is_set(self) -> bool:
        if self._internal.is_set():
            return True
        return self._external is not None and self._external.is_set()


def assemble(
    columns: Sequence[Column],
    event_ids: Optional[Dict[Hashable, int]] = None,
) -> Dataset:
    """
    Compose built columns into a Dataset.

    Raises:
        SchemaConflict: duplicate names, unequal row counts, or event ids
        outside the row range
    """
    return Dataset(columns=list(columns), event_ids=dict(event_ids or {}))


def build_columns(
    names: Sequence[str],
    raw_columns: Sequence[Sequence[RawValue]],
    config: Optional[BuildConfig] = None,
    cancel_event=None,
) -> List[Column]:
    """
    Build one column per name on a worker pool keyed by column index.

    Each worker owns its column's values, dictionary and statistics, so no
    state is shared. Results keep the input order; the first failing
    column (in column order) aborts the remaining workers and its error
    is raised.
    """
    if len(names) != len(raw_columns):
        raise ValueError(
            f"{len(names)} column names given for {len(raw_columns)} raw columns"
        )

    config = config or BuildConfig()
    signal = CancelSignal(cancel_event)

    if not names:
        return []

    with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
        futures = [
            executor.submit(build_column, name, raw_values, config, signal)
            for name, raw_values in zip(names, raw_columns)
        ]
        try:
            return [future.result() for future in futures]
        except BaseException:
            signal.abort()
            for future in futures:
                future.cancel()
            raise


def build_dataset(
    names: Sequence[str],
    records: Iterable[Sequence[Optional[Payload]]],
    config: Optional[BuildConfig] = None,
    event_ids: Optional[Dict[Hashable, int]] = None,
    cancel_event=None,
) -> Dataset:
    """
    Records (text-or-null fields in `names` order) -> typed Dataset.
    """
    config = config or BuildConfig()
    batch_id = generate_batch_id()
    timer = BuildTimer()

    raw_columns = records_to_raw_columns(names, records, config)
    num_rows = len(raw_columns[0]) if raw_columns else 0

    log_event("DATASET_BUILD_STARTED", {
        "batch_id": batch_id,
        "columns": len(names),
        "rows": num_rows,
        "max_workers": config.max_workers,
    })

    columns = build_columns(names, raw_columns, config, cancel_event)
    dataset = assemble(columns, event_ids)

    log_event("DATASET_BUILD_COMPLETED", {
        "batch_id": batch_id,
        "schema": {name: column_type.value for name, column_type in dataset.schema().items()},
        "rows": dataset.num_rows,
        "duration_seconds": timer.duration(),
    })
    return dataset
