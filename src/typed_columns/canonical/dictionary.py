from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import pyarrow as pa

from typed_columns.utils.exceptions import DictionaryOverflow


class Dictionary:
    """
    Stable value -> code mapping for categorical columns.

    Codes are issued in first-seen order starting at 0 and are never
    reassigned. There is no removal. `union` returns a new dictionary and
    leaves both inputs untouched.
    """

    def __init__(self, values: Iterable[str] = (), cap: Optional[int] = None):
        if cap is not None and cap <= 0:
            raise ValueError(f"Dictionary cap must be positive, got {cap}")
        self.cap = cap
        self._codes: Dict[str, int] = {}
        self._values: List[str] = []
        for value in values:
            self.intern(value)

    def intern(self, value: str) -> int:
        """
        Return the code of `value`, issuing the next code if unseen.

        Raises:
            DictionaryOverflow: a new value would exceed the cap
        """
        code = self._codes.get(value)
        if code is not None:
            return code

        if self.cap is not None and len(self._values) >= self.cap:
            raise DictionaryOverflow(self.cap, len(self._values) + 1)

        code = len(self._values)
        self._codes[value] = code
        self._values.append(value)
        return code

    def code_of(self, value: str) -> Optional[int]:
        return self._codes.get(value)

    def value_of(self, code: int) -> str:
        return self._values[code]

    def union(
        self,
        other: "Dictionary",
        cap: Optional[int] = None,
    ) -> Tuple["Dictionary", List[int]]:
        """
        Merge `other` into a copy of this dictionary.

        This dictionary's codes are kept as-is; values only `other` knows
        are appended in `other`'s code order.

        Returns:
            (merged dictionary, remap) where remap[old_code_in_other] is
            the code of the same value in the merged dictionary

        Raises:
            DictionaryOverflow: the combined distinct count exceeds the cap
            (`cap` argument, defaulting to this dictionary's cap)
        """
        cap = self.cap if cap is None else cap

        unseen = [v for v in other._values if v not in self._codes]
        combined = len(self._values) + len(unseen)
        if cap is not None and combined > cap:
            raise DictionaryOverflow(cap, combined)

        merged = self.copy()
        merged.cap = cap
        remap = [merged.intern(value) for value in other._values]
        return merged, remap

    def copy(self) -> "Dictionary":
        clone = Dictionary(cap=self.cap)
        clone._codes = dict(self._codes)
        clone._values = list(self._values)
        return clone

    @property
    def values(self) -> List[str]:
        """
        Values in code order.
        """
        return list(self._values)

    def items(self) -> Iterator[Tuple[str, int]]:
        return iter(self._codes.items())

    def to_dict(self) -> Dict[str, int]:
        return dict(self._codes)

    def to_arrow(self) -> pa.Array:
        return pa.array(self._values, type=pa.string())

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, value) -> bool:
        return value in self._codes

    def __eq__(self, other) -> bool:
        if not isinstance(other, Dictionary):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"Dictionary({self._codes!r}, cap={self.cap})"
