from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterator, List, Optional, Sequence

from typed_columns.canonical.column import Column
from typed_columns.canonical.column_type import ColumnType
from typed_columns.utils.exceptions import SchemaConflict


def validate_columns(columns: Sequence[Column]) -> None:
    """
    Raise SchemaConflict unless names are unique and lengths are equal.
    """
    seen = set()
    duplicates = []
    for column in columns:
        if column.name in seen:
            duplicates.append(column.name)
        seen.add(column.name)
    if duplicates:
        raise SchemaConflict(f"Duplicate column names: {sorted(set(duplicates))}")

    if not columns:
        return

    expected = len(columns[0])
    mismatched = {c.name: len(c) for c in columns if len(c) != expected}
    if mismatched:
        raise SchemaConflict(
            f"Columns must have the same length: '{columns[0].name}' has {expected} rows, "
            f"but {mismatched}"
        )


@dataclass
class Dataset:
    """
    Ordered, uniquely named columns sharing one row count.

    `event_ids` optionally maps caller-side event identifiers to row
    indices for point lookups.
    """
    columns: List[Column]
    event_ids: Dict[Hashable, int] = field(default_factory=dict)

    def __post_init__(self):
        self.columns = list(self.columns)
        validate_columns(self.columns)

        out_of_range = {
            event: row for event, row in self.event_ids.items()
            if not 0 <= row < self.num_rows
        }
        if out_of_range:
            raise SchemaConflict(
                f"Event ids point outside the {self.num_rows} dataset rows: {out_of_range}"
            )

    @property
    def num_rows(self) -> int:
        if not self.columns:
            return 0
        return len(self.columns[0])

    @property
    def num_columns(self) -> int:
        return len(self.columns)

    @property
    def names(self) -> List[str]:
        return [c.name for c in self.columns]

    def schema(self) -> Dict[str, ColumnType]:
        return {c.name: c.column_type for c in self.columns}

    def column(self, name: str) -> Optional[Column]:
        """
        Retrieve a column by name.
        """
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def __getitem__(self, name: str) -> Column:
        column = self.column(name)
        if column is None:
            raise KeyError(name)
        return column

    def __iter__(self) -> Iterator[Column]:
        return iter(self.columns)

    def event_index(self, event_id: Hashable) -> Optional[int]:
        return self.event_ids.get(event_id)

    def column_values(
        self,
        events: Sequence[Hashable],
        column_names: Sequence[str],
    ) -> Dict[Hashable, List[Optional[str]]]:
        """
        Canonical text of the requested columns for each known event.

        Unknown events are skipped; a missing column or a null cell
        yields None in that position.
        """
        selected = [(e, self.event_ids[e]) for e in events if e in self.event_ids]
        targets = [self.column(name) for name in column_names]

        result: Dict[Hashable, List[Optional[str]]] = {}
        for event, row in selected:
            result[event] = [
                None if column is None else column.value_text(row)
                for column in targets
            ]
        return result

    def __repr__(self) -> str:
        return f"Dataset(columns={self.names!r}, rows={self.num_rows})"
