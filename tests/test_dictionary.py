"""Tests for the dictionary encoder."""

import pyarrow as pa
import pytest

from typed_columns.canonical.dictionary import Dictionary
from typed_columns.utils.exceptions import DictionaryOverflow


class TestIntern:
    """Code assignment."""

    def test_first_seen_order(self) -> None:
        """Codes follow first-seen order and repeat for known values."""
        dictionary = Dictionary()
        codes = [dictionary.intern(v) for v in ["red", "blue", "red", "green"]]

        assert codes == [0, 1, 0, 2]
        assert dictionary.to_dict() == {"red": 0, "blue": 1, "green": 2}
        assert dictionary.values == ["red", "blue", "green"]

    def test_codes_never_change(self) -> None:
        """A value's first code survives later interns and unions."""
        dictionary = Dictionary(["x", "y"])
        first = dictionary.code_of("y")

        for value in ["z", "y", "w"]:
            dictionary.intern(value)
        merged, _ = dictionary.union(Dictionary(["y", "q", "x"]))

        assert dictionary.code_of("y") == first
        assert merged.code_of("y") == first
        assert merged.code_of("x") == 0

    def test_cap_overflow(self) -> None:
        """A new value past the cap raises; known values still resolve."""
        dictionary = Dictionary(["a", "b"], cap=2)

        assert dictionary.intern("a") == 0
        with pytest.raises(DictionaryOverflow) as exc:
            dictionary.intern("c")
        assert exc.value.cap == 2
        assert len(dictionary) == 2

    def test_invalid_cap(self) -> None:
        """The cap must be positive."""
        with pytest.raises(ValueError):
            Dictionary(cap=0)


class TestUnion:
    """Dictionary union with remapping."""

    def test_left_codes_are_authoritative(self) -> None:
        """Right-only values are appended and right codes remapped."""
        left = Dictionary(["a", "b"])
        right = Dictionary(["b", "c"])

        merged, remap = left.union(right)

        assert merged.to_dict() == {"a": 0, "b": 1, "c": 2}
        assert remap == [1, 2]

    def test_inputs_are_unchanged(self) -> None:
        """Union returns a new dictionary."""
        left = Dictionary(["a"])
        right = Dictionary(["b"])

        left.union(right)

        assert left.values == ["a"]
        assert right.values == ["b"]

    def test_union_overflow(self) -> None:
        """The combined distinct count is checked against the cap."""
        left = Dictionary(["a", "b"])
        right = Dictionary(["b", "c"])

        with pytest.raises(DictionaryOverflow) as exc:
            left.union(right, cap=2)
        assert exc.value.attempted == 3

        merged, _ = left.union(right, cap=3)
        assert len(merged) == 3


class TestArrow:
    """Arrow representation."""

    def test_to_arrow(self) -> None:
        """Values are exported in code order as strings."""
        dictionary = Dictionary(["b", "a"])
        array = dictionary.to_arrow()

        assert array.type == pa.string()
        assert array.to_pylist() == ["b", "a"]
