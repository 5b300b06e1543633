from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union
from urllib.parse import unquote_to_bytes

from typed_columns.canonical.column_type import ColumnType

Payload = Union[str, bytes]


@dataclass(frozen=True)
class RawValue:
    """
    One ingested cell: a null marker (payload None) or a text payload.
    The payload is bytes only when percent-decoding produced invalid UTF-8.
    """
    payload: Optional[Payload] = None

    @property
    def is_null(self) -> bool:
        return self.payload is None

    @property
    def is_text(self) -> bool:
        return isinstance(self.payload, str)

    @classmethod
    def null(cls) -> "RawValue":
        return NULL

    @classmethod
    def from_field(
        cls,
        field: Optional[Payload],
        percent_decode: bool = False,
        null_tokens: Sequence[str] = ("",),
    ) -> "RawValue":
        """
        Wrap one reader field.

        - None and any of `null_tokens` become the null marker
        - bytes that are valid UTF-8 become text
        - with `percent_decode`, %XX escapes are decoded before wrapping
        """
        if field is None:
            return NULL

        if isinstance(field, bytes):
            try:
                field = field.decode("utf-8")
            except UnicodeDecodeError:
                return cls(field)

        if field in null_tokens:
            return NULL

        if percent_decode and "%" in field:
            decoded = unquote_to_bytes(field)
            try:
                return cls(decoded.decode("utf-8"))
            except UnicodeDecodeError:
                return cls(decoded)

        return cls(field)


NULL = RawValue(None)


@dataclass(frozen=True)
class TypedValue:
    """
    A classified value tagged with the column type it was parsed as.
    `value` is None for a typed null.

    Payload per type:
    INT64/UINT64 -> int, FLOAT64 -> float, BOOLEAN -> bool,
    DATETIME -> aware datetime (UTC), IP_ADDR -> IPv4Address/IPv6Address,
    ENUM/UTF8 -> str, BINARY -> bytes
    """
    column_type: ColumnType
    value: Any = None

    @property
    def is_null(self) -> bool:
        return self.value is None

    @classmethod
    def null(cls, column_type: ColumnType) -> "TypedValue":
        return cls(column_type, None)
