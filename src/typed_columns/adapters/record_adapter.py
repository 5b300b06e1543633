import logging
from typing import Dict, Iterable, List, Optional, Sequence

from typed_columns.canonical.values import Payload, RawValue
from typed_columns.execution.config import BuildConfig
from typed_columns.observability.logger import log_event

MAX_MISMATCH_PREVIEW = 1


class RecordAdapter:
    """
    Turns reader records into per-column RawValue sequences.

    Responsibilities:
    - Wrap each field as a RawValue (null tokens, optional percent-decoding)
    - Transpose row-major records into column-major sequences
    - Pad short records with nulls, drop extra trailing fields
    - Report the first row-width mismatch
    DOES NOT:
    - Split delimiters or handle quoting (the reader does)
    - Infer types
    """

    def __init__(self, names: Sequence[str], config: Optional[BuildConfig] = None):
        self.names = list(names)
        self.config = config or BuildConfig()
        self.row_mismatches: List[Dict] = []
        self.mismatch_count = 0

    def _build_row_mismatch_entry(self, row_num: int, record: Sequence[Optional[Payload]]) -> Dict:
        mapped = {}
        for idx, col in enumerate(self.names):
            mapped[col] = record[idx] if idx < len(record) else "<MISSING>"

        return {
            "row_number": row_num,  # 0-based record index
            "expected_columns": len(self.names),
            "actual_columns": len(record),
            "mapped_preview": mapped,
            "extra_values": list(record[len(self.names):]),
            "missing_columns": self.names[len(record):],
        }

    def wrap(self, field: Optional[Payload]) -> RawValue:
        return RawValue.from_field(
            field,
            percent_decode=self.config.percent_decode,
            null_tokens=self.config.null_tokens,
        )

    def to_raw_columns(self, records: Iterable[Sequence[Optional[Payload]]]) -> List[List[RawValue]]:
        width = len(self.names)
        columns: List[List[RawValue]] = [[] for _ in range(width)]

        for row_num, record in enumerate(records):
            if len(record) != width:
                self.mismatch_count += 1
                if len(self.row_mismatches) < MAX_MISMATCH_PREVIEW:
                    self.row_mismatches.append(self._build_row_mismatch_entry(row_num, record))

            for idx in range(width):
                field = record[idx] if idx < len(record) else None
                columns[idx].append(self.wrap(field))

        if self.row_mismatches:
            log_event("ROW_WIDTH_MISMATCH", {
                "message": (
                    "Some records have a different field count than the column list. "
                    "Missing fields were read as null, extra fields were dropped."
                ),
                "header_columns": width,
                "mismatch_count": self.mismatch_count,
                "mismatches": self.row_mismatches,
            }, level=logging.WARNING)

        return columns


def records_to_raw_columns(
    names: Sequence[str],
    records: Iterable[Sequence[Optional[Payload]]],
    config: Optional[BuildConfig] = None,
) -> List[List[RawValue]]:
    return RecordAdapter(names, config).to_raw_columns(records)
