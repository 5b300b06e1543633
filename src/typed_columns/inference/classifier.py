"""
Value classification: parse one raw value against one candidate type.

Pure and stateless. A mismatch raises ClassifyMismatch, which callers
treat as ordinary control flow; `matches()` is the boolean form.
"""
import ipaddress
import math
import re
from datetime import datetime, timezone
from typing import Optional, Sequence

from typed_columns.canonical.column_type import ColumnType, is_narrower_or_equal
from typed_columns.canonical.values import RawValue, TypedValue
from typed_columns.utils.exceptions import ClassifyMismatch, UnsupportedWidening

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1
UINT64_MAX = 2 ** 64 - 1
# Longest magnitude either integer type can hold (UINT64_MAX has 20 digits)
MAX_INTEGER_DIGITS = 20

INT64_PATTERN = re.compile(r"[+-]?[0-9]+")
UINT64_PATTERN = re.compile(r"\+?[0-9]+")
FLOAT_PATTERN = re.compile(
    r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?"
)

# Closed literal set, compared case-insensitively.
BOOLEAN_TRUE = frozenset({"true", "1"})
BOOLEAN_FALSE = frozenset({"false", "0"})

DEFAULT_DATETIME_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%d %H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%d %H:%M:%S.%f%z",
)


def _require_text(raw: RawValue, candidate: ColumnType) -> str:
    if not raw.is_text:
        raise ClassifyMismatch(raw.payload, candidate, "payload is not valid UTF-8 text")
    return raw.payload


def _integer_literal(text: str, candidate: ColumnType) -> int:
    """
    Parse a literal already matched by an integer pattern, rejecting
    magnitudes too long for 64 bits before converting.
    """
    sign = "-" if text.startswith("-") else ""
    digits = text.lstrip("+-").lstrip("0") or "0"
    if len(digits) > MAX_INTEGER_DIGITS:
        raise ClassifyMismatch(text, candidate, "out of range")
    return int(sign + digits)


def _parse_int64(text: str) -> int:
    if not INT64_PATTERN.fullmatch(text):
        raise ClassifyMismatch(text, ColumnType.INT64, "not an integer literal")
    value = _integer_literal(text, ColumnType.INT64)
    if not INT64_MIN <= value <= INT64_MAX:
        raise ClassifyMismatch(text, ColumnType.INT64, "out of range")
    return value


def _parse_uint64(text: str) -> int:
    if not UINT64_PATTERN.fullmatch(text):
        raise ClassifyMismatch(text, ColumnType.UINT64, "not an unsigned integer literal")
    value = _integer_literal(text, ColumnType.UINT64)
    if value > UINT64_MAX:
        raise ClassifyMismatch(text, ColumnType.UINT64, "out of range")
    return value


def _parse_float64(text: str) -> float:
    if not FLOAT_PATTERN.fullmatch(text):
        raise ClassifyMismatch(text, ColumnType.FLOAT64, "not a decimal literal")
    value = float(text)
    if not math.isfinite(value):
        raise ClassifyMismatch(text, ColumnType.FLOAT64, "out of range")
    return value


def _parse_boolean(text: str) -> bool:
    token = text.lower()
    if token in BOOLEAN_TRUE:
        return True
    if token in BOOLEAN_FALSE:
        return False
    raise ClassifyMismatch(text, ColumnType.BOOLEAN)


def _parse_datetime(text: str, formats: Sequence[str]) -> datetime:
    """
    First matching format wins. Values without an offset are read as UTC.
    """
    for fmt in formats:
        try:
            dt = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        try:
            return dt.astimezone(timezone.utc)
        except OverflowError:
            # the offset pushes the instant outside years 1..9999
            raise ClassifyMismatch(text, ColumnType.DATETIME, "out of range") from None
    raise ClassifyMismatch(text, ColumnType.DATETIME, "no accepted format matched")


def _parse_ip_addr(text: str):
    # Scoped IPv6 ("fe80::1%eth0") is not a standard textual form here.
    if "%" in text:
        raise ClassifyMismatch(text, ColumnType.IP_ADDR, "scoped addresses are not accepted")
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        raise ClassifyMismatch(text, ColumnType.IP_ADDR) from None


def classify(
    raw: RawValue,
    candidate: ColumnType,
    datetime_formats: Sequence[str] = DEFAULT_DATETIME_FORMATS,
) -> TypedValue:
    """
    Parse `raw` as `candidate`.

    Null always succeeds. ENUM succeeds structurally for any text; the
    cardinality cap is enforced by the caller, not here.

    Raises:
        ClassifyMismatch: the value does not fit the candidate
    """
    if raw.is_null:
        return TypedValue.null(candidate)

    if candidate == ColumnType.BINARY:
        payload = raw.payload
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        return TypedValue(candidate, payload)

    text = _require_text(raw, candidate)

    if candidate == ColumnType.INT64:
        return TypedValue(candidate, _parse_int64(text))
    if candidate == ColumnType.UINT64:
        return TypedValue(candidate, _parse_uint64(text))
    if candidate == ColumnType.FLOAT64:
        return TypedValue(candidate, _parse_float64(text))
    if candidate == ColumnType.BOOLEAN:
        return TypedValue(candidate, _parse_boolean(text))
    if candidate == ColumnType.DATETIME:
        return TypedValue(candidate, _parse_datetime(text, datetime_formats))
    if candidate == ColumnType.IP_ADDR:
        return TypedValue(candidate, _parse_ip_addr(text))
    if candidate in (ColumnType.ENUM, ColumnType.UTF8):
        return TypedValue(candidate, text)

    raise ValueError(f"Unknown candidate type: {candidate!r}")


def matches(
    raw: RawValue,
    candidate: ColumnType,
    datetime_formats: Sequence[str] = DEFAULT_DATETIME_FORMATS,
) -> bool:
    try:
        classify(raw, candidate, datetime_formats)
        return True
    except ClassifyMismatch:
        return False


def render(value: TypedValue) -> Optional[str]:
    """
    Canonical text of a typed value; classifying it again yields the same value.
    """
    if value.is_null:
        return None

    column_type = value.column_type
    if column_type == ColumnType.BOOLEAN:
        return "true" if value.value else "false"
    if column_type == ColumnType.FLOAT64:
        return repr(float(value.value))
    if column_type == ColumnType.DATETIME:
        return value.value.isoformat()
    if column_type == ColumnType.BINARY:
        return value.value.decode("utf-8", errors="replace")
    return str(value.value)


def reclassify(
    value: TypedValue,
    target: ColumnType,
    datetime_formats: Sequence[str] = DEFAULT_DATETIME_FORMATS,
) -> TypedValue:
    """
    Convert a typed value to a wider column type.

    Raises:
        UnsupportedWidening: `target` is not wider, or the value failed to
        re-classify (lattice invariant violation)
    """
    source = value.column_type
    if source == target:
        return value

    if not is_narrower_or_equal(source, target):
        raise UnsupportedWidening(source, target, value.value)

    if value.is_null:
        return TypedValue.null(target)

    if target == ColumnType.BINARY:
        return TypedValue(target, render(value).encode("utf-8"))

    if target == ColumnType.UTF8:
        return TypedValue(target, render(value))

    if source == ColumnType.BOOLEAN:
        number = int(value.value)
        if target == ColumnType.FLOAT64:
            return TypedValue(target, float(number))
        return TypedValue(target, number)

    try:
        return classify(RawValue(render(value)), target, datetime_formats)
    except ClassifyMismatch as err:
        raise UnsupportedWidening(source, target, value.value) from err
