from typing import Dict, List, Mapping

from typed_columns.canonical.column_type import ColumnType, widen


class SchemaDiff:
    """
    Computes drift between two dataset schemas (column name -> type).

    Added or removed columns are breaking: the datasets cannot be merged
    column by column. Type changes are never breaking; they resolve to
    the least upper bound of the two types.
    """

    def __init__(self, old_schema: Mapping[str, ColumnType], new_schema: Mapping[str, ColumnType]):
        self.old_schema = dict(old_schema)
        self.new_schema = dict(new_schema)

    def diff(self) -> Dict:
        added = [name for name in self.new_schema if name not in self.old_schema]
        removed = [name for name in self.old_schema if name not in self.new_schema]
        modified = []

        for name, new_type in self.new_schema.items():
            old_type = self.old_schema.get(name)
            if old_type is not None and old_type != new_type:
                modified.append({
                    "column": name,
                    "old": old_type.value,
                    "new": new_type.value,
                    "widened_to": widen(old_type, new_type).value,
                })

        breaking, non_breaking = self._classify_changes(added, removed, modified)

        return {
            "added_columns": added,
            "removed_columns": removed,
            "modified_columns": modified,
            "breaking_changes": breaking,
            "non_breaking_changes": non_breaking,
        }

    def _classify_changes(
        self,
        added: List[str],
        removed: List[str],
        modified: List[Dict],
    ):
        breaking = []
        non_breaking = []

        for name in added:
            breaking.append({"type": "ADD_COLUMN", "column": name})

        for name in removed:
            breaking.append({"type": "REMOVE_COLUMN", "column": name})

        for change in modified:
            non_breaking.append({
                "type": "TYPE_WIDENING",
                "column": change["column"],
                "from": change["old"],
                "to": change["widened_to"],
            })

        return breaking, non_breaking

    def is_mergeable(self) -> bool:
        return not self.diff()["breaking_changes"]
