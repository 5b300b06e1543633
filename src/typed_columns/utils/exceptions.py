class StructuredDataError(Exception):
    """
    Base exception for all typed column errors
    """
    pass


class ClassifyMismatch(StructuredDataError, ValueError):
    """
    Raised when one raw value does not fit one candidate type.
    Expected control flow during inference; never surfaces past a column.
    """

    def __init__(self, value, candidate, reason: str = ""):
        self.value = value
        self.candidate = candidate
        message = f"{value!r} is not a valid {candidate}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class TypeMismatch(StructuredDataError):
    """
    Raised by a STRICT build when a value does not fit the column's fixed type.
    """

    def __init__(self, column: str, row: int, value, column_type):
        self.column = column
        self.row = row
        self.value = value
        self.column_type = column_type
        super().__init__(
            f"Column '{column}', row {row}: value {value!r} "
            f"does not match column type {column_type}"
        )


class DictionaryOverflow(StructuredDataError):
    """
    Raised when a dictionary would grow past its cardinality cap.
    """

    def __init__(self, cap: int, attempted: int):
        self.cap = cap
        self.attempted = attempted
        super().__init__(
            f"Dictionary cardinality cap exceeded: {attempted} distinct values > cap {cap}"
        )


class SchemaConflict(StructuredDataError):
    """
    Raised when columns cannot form one dataset
    (duplicate names, unequal row counts, mismatched column sets).
    """
    pass


class UnsupportedWidening(StructuredDataError):
    """
    Internal invariant violation: a value failed to re-classify
    against a type the lattice says is wider.
    """

    def __init__(self, source, target, value=None):
        self.source = source
        self.target = target
        self.value = value
        super().__init__(
            f"Cannot widen {source} to {target}"
            + (f" (value {value!r})" if value is not None else "")
        )


class BuildCancelled(StructuredDataError):
    """
    Raised when a column build observes its cancellation signal.
    """

    def __init__(self, column: str, row: int):
        self.column = column
        self.row = row
        super().__init__(f"Build of column '{column}' cancelled at row {row}")


class ConfigurationError(StructuredDataError, ValueError):
    """
    Raised when a build configuration is invalid
    """
    pass
