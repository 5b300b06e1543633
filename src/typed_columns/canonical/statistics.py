import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from typed_columns.canonical.column_type import ColumnType
from typed_columns.canonical.values import TypedValue
from typed_columns.inference.classifier import (
    DEFAULT_DATETIME_FORMATS,
    reclassify,
    render,
)


@dataclass
class MomentAccumulator:
    """
    Streaming mean / variance (Welford), with an associative combine.
    """
    count: int = 0
    mean: float = 0.0
    m2: float = 0.0

    def update(self, x: float) -> None:
        self.count += 1
        delta = x - self.mean
        self.mean += delta / self.count
        self.m2 += delta * (x - self.mean)

    def combine(self, other: "MomentAccumulator") -> "MomentAccumulator":
        n = self.count + other.count
        if n == 0:
            return MomentAccumulator()
        if self.count == 0:
            return MomentAccumulator(other.count, other.mean, other.m2)
        if other.count == 0:
            return MomentAccumulator(self.count, self.mean, self.m2)

        delta = other.mean - self.mean
        mean = self.mean + delta * other.count / n
        m2 = self.m2 + other.m2 + delta * delta * self.count * other.count / n
        return MomentAccumulator(n, mean, m2)

    @property
    def variance(self) -> Optional[float]:
        # Population variance
        if self.count == 0:
            return None
        return self.m2 / self.count

    def copy(self) -> "MomentAccumulator":
        return MomentAccumulator(self.count, self.mean, self.m2)


def _moment_input(column_type: ColumnType, value: Any) -> float:
    if column_type == ColumnType.DATETIME:
        return value.timestamp()
    return float(value)


class Statistics:
    """
    Incremental column summary.

    - row_count / null_count / coerced_null_count for every type
    - exact per-value frequencies while the distinct count stays within
      `cardinality_cap`; past the cap tracking is dropped and
      `distinct_count` becomes a lower bound (`distinct_exact` is False)
    - min / max / mean / variance for ordered types (numeric, boolean as
      0/1, datetime as POSIX seconds)
    """

    def __init__(self, column_type: ColumnType, cardinality_cap: int):
        self.column_type = column_type
        self.cardinality_cap = cardinality_cap

        self.row_count = 0
        self.null_count = 0
        self.coerced_null_count = 0

        self._frequencies: Optional[Dict[Any, int]] = {}
        self._distinct_lower_bound = 0

        self._moments: Optional[MomentAccumulator] = (
            MomentAccumulator() if column_type.is_ordered else None
        )
        self.min = None
        self.max = None

    # ------------------------------------------------------------------
    # Incremental update
    # ------------------------------------------------------------------

    def update(self, value: TypedValue) -> None:
        if value.column_type != self.column_type:
            raise ValueError(
                f"Cannot add a {value.column_type} value to {self.column_type} statistics"
            )

        self.row_count += 1
        if value.is_null:
            self.null_count += 1
            return

        self._track_distinct(value.value, 1)

        if self._moments is not None:
            self._moments.update(_moment_input(self.column_type, value.value))
            if self.min is None or value.value < self.min:
                self.min = value.value
            if self.max is None or value.value > self.max:
                self.max = value.value

    def record_coerced_null(self) -> None:
        """
        A value that failed classification was stored as null.
        """
        self.row_count += 1
        self.null_count += 1
        self.coerced_null_count += 1

    def _track_distinct(self, key, count: int) -> None:
        if self._frequencies is None:
            return
        self._frequencies[key] = self._frequencies.get(key, 0) + count
        if len(self._frequencies) > self.cardinality_cap:
            self._abandon_distinct(len(self._frequencies))

    def _abandon_distinct(self, lower_bound: int) -> None:
        self._frequencies = None
        self._distinct_lower_bound = lower_bound

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def non_null_count(self) -> int:
        return self.row_count - self.null_count

    @property
    def distinct_exact(self) -> bool:
        return self._frequencies is not None

    @property
    def distinct_count(self) -> int:
        if self._frequencies is None:
            return self._distinct_lower_bound
        return len(self._frequencies)

    @property
    def mean(self) -> Optional[float]:
        if self._moments is None or self._moments.count == 0:
            return None
        return self._moments.mean

    @property
    def variance(self) -> Optional[float]:
        if self._moments is None:
            return None
        return self._moments.variance

    @property
    def std_dev(self) -> Optional[float]:
        variance = self.variance
        return None if variance is None else math.sqrt(variance)

    def top_n(self, n: int) -> Optional[List[Tuple[Any, int]]]:
        """
        Most frequent values, ties in first-seen order.
        None once distinct tracking has been abandoned.
        """
        if self._frequencies is None:
            return None
        ranked = sorted(self._frequencies.items(), key=lambda kv: -kv[1])
        return ranked[:n]

    @property
    def mode(self):
        top = self.top_n(1)
        if not top:
            return None
        return top[0][0]

    # ------------------------------------------------------------------
    # Merge / widen
    # ------------------------------------------------------------------

    def merge(self, other: "Statistics") -> "Statistics":
        """
        Combine two aggregates of the same column type without replaying values.
        """
        if other.column_type != self.column_type:
            raise ValueError(
                f"Cannot merge {other.column_type} statistics into {self.column_type}; "
                "widen both to a common type first"
            )

        merged = Statistics(self.column_type, self.cardinality_cap)
        merged.row_count = self.row_count + other.row_count
        merged.null_count = self.null_count + other.null_count
        merged.coerced_null_count = self.coerced_null_count + other.coerced_null_count

        if self._frequencies is not None and other._frequencies is not None:
            merged._frequencies = dict(self._frequencies)
            for key, count in other._frequencies.items():
                merged._track_distinct(key, count)
        else:
            merged._abandon_distinct(max(self.distinct_count, other.distinct_count))

        if self._moments is not None:
            merged._moments = self._moments.combine(other._moments)
            merged.min = _pick(min, self.min, other.min)
            merged.max = _pick(max, self.max, other.max)

        return merged

    def widened(
        self,
        target: ColumnType,
        datetime_formats: Sequence[str] = DEFAULT_DATETIME_FORMATS,
    ) -> "Statistics":
        """
        Re-express these statistics under a wider column type.

        Distinct keys and min/max are re-classified; moments carry over
        between ordered types and are dropped otherwise.
        """
        if target == self.column_type:
            return self.copy()

        def convert(value):
            return reclassify(TypedValue(self.column_type, value), target, datetime_formats).value

        widened = Statistics(target, self.cardinality_cap)
        widened.row_count = self.row_count
        widened.null_count = self.null_count
        widened.coerced_null_count = self.coerced_null_count

        if self._frequencies is None:
            widened._abandon_distinct(self._distinct_lower_bound)
        else:
            for key, count in self._frequencies.items():
                widened._track_distinct(convert(key), count)

        if widened._moments is not None and self._moments is not None:
            widened._moments = self._moments.copy()
            widened.min = None if self.min is None else convert(self.min)
            widened.max = None if self.max is None else convert(self.max)

        return widened

    def copy(self) -> "Statistics":
        clone = Statistics(self.column_type, self.cardinality_cap)
        clone.row_count = self.row_count
        clone.null_count = self.null_count
        clone.coerced_null_count = self.coerced_null_count
        clone._frequencies = None if self._frequencies is None else dict(self._frequencies)
        clone._distinct_lower_bound = self._distinct_lower_bound
        clone._moments = None if self._moments is None else self._moments.copy()
        clone.min = self.min
        clone.max = self.max
        return clone

    @classmethod
    def from_values(
        cls,
        column_type: ColumnType,
        values: Iterable[TypedValue],
        cardinality_cap: int,
    ) -> "Statistics":
        """
        Full rebuild from stored values.
        """
        stats = cls(column_type, cardinality_cap)
        for value in values:
            stats.update(value)
        return stats

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "column_type": self.column_type.value,
            "row_count": self.row_count,
            "null_count": self.null_count,
            "coerced_null_count": self.coerced_null_count,
            "distinct_count": self.distinct_count,
            "distinct_exact": self.distinct_exact,
        }
        if self.column_type.is_ordered:
            data.update({
                "min": _render(self.column_type, self.min),
                "max": _render(self.column_type, self.max),
                "mean": self.mean,
                "variance": self.variance,
            })
        return data

    def __repr__(self) -> str:
        return f"Statistics({self.to_dict()!r})"


def _pick(fn, a, b):
    if a is None:
        return b
    if b is None:
        return a
    return fn(a, b)


def _render(column_type: ColumnType, value):
    if value is None:
        return None
    if isinstance(value, (bool, int, float)):
        return value
    return render(TypedValue(column_type, value))
