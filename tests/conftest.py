"""
Shared pytest fixtures for the typed_columns test suite.
"""

import logging
from typing import List, Optional

import pytest

from typed_columns.canonical.column import Column
from typed_columns.canonical.column_type import ColumnType
from typed_columns.canonical.values import RawValue
from typed_columns.execution.config import BuildConfig
from typed_columns.observability.logger import logger
from typed_columns.pipeline.column_builder import ColumnBuilder


def raw(*fields: Optional[str]) -> List[RawValue]:
    """Wrap fields as RawValues; None stays null."""
    return [RawValue.null() if f is None else RawValue(f) for f in fields]


@pytest.fixture
def to_raw():
    """Helper turning text fields into RawValues."""
    return raw


@pytest.fixture
def make_column():
    """Factory building a column from text fields, optionally with a fixed type."""

    def _make(
        name: str,
        fields: List[Optional[str]],
        column_type: Optional[ColumnType] = None,
        config: Optional[BuildConfig] = None,
    ) -> Column:
        builder = ColumnBuilder(name, config or BuildConfig())
        if column_type is None:
            return builder.build(raw(*fields))
        return builder.build_as(column_type, raw(*fields))

    return _make


@pytest.fixture
def lenient_config() -> BuildConfig:
    return BuildConfig(acceptance_threshold=0.75, failure_policy="LENIENT")


class _Collector(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.messages: List[str] = []

    def emit(self, record):
        self.messages.append(record.getMessage())


@pytest.fixture
def log_messages():
    """Collect raw log lines emitted through the typed_columns logger."""
    collector = _Collector()
    previous_level = logger.level
    logger.addHandler(collector)
    logger.setLevel(logging.DEBUG)
    try:
        yield collector.messages
    finally:
        logger.removeHandler(collector)
        logger.setLevel(previous_level)
