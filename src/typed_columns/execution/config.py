import os
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional, Tuple

import yaml

from typed_columns.inference.classifier import DEFAULT_DATETIME_FORMATS
from typed_columns.utils.exceptions import ConfigurationError


class FailurePolicy:
    STRICT = "STRICT"
    LENIENT = "LENIENT"

    @classmethod
    def is_valid(cls, policy: str) -> bool:
        return policy in {cls.STRICT, cls.LENIENT}


DEFAULT_ENUM_CARDINALITY_CAP = 256


@dataclass(frozen=True)
class BuildConfig:
    """
    Settings shared by inference and construction of one batch.

    The same object must drive both steps so that the type accepted by
    inference and the failure handling during build stay consistent.
    """
    sample_size: Optional[int] = None
    acceptance_threshold: float = 1.0
    failure_policy: str = FailurePolicy.STRICT
    enum_cardinality_cap: int = DEFAULT_ENUM_CARDINALITY_CAP
    datetime_formats: Tuple[str, ...] = DEFAULT_DATETIME_FORMATS
    allow_utf8_fallback: bool = True

    # Record boundary
    percent_decode: bool = False
    null_tokens: Tuple[str, ...] = ("",)

    # Worker pool size for dataset build / merge (None = executor default)
    max_workers: Optional[int] = None

    def __post_init__(self):
        # Normalize list-valued settings coming from YAML
        object.__setattr__(self, "datetime_formats", tuple(self.datetime_formats))
        object.__setattr__(self, "null_tokens", tuple(self.null_tokens))
        object.__setattr__(self, "failure_policy", str(self.failure_policy).upper())
        self._validate()

    def _validate(self):
        if self.sample_size is not None and (
            isinstance(self.sample_size, bool)
            or not isinstance(self.sample_size, int)
            or self.sample_size <= 0
        ):
            raise ConfigurationError(
                f"sample_size must be a positive integer or None, got {self.sample_size!r}"
            )

        threshold = self.acceptance_threshold
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
            raise ConfigurationError(
                f"acceptance_threshold must be a number, got {threshold!r}"
            )
        if not 0 < threshold <= 1:
            raise ConfigurationError(
                f"acceptance_threshold must be in (0, 1], got {threshold}"
            )

        if not FailurePolicy.is_valid(self.failure_policy):
            raise ConfigurationError(
                f"Invalid failure_policy '{self.failure_policy}'. "
                f"Allowed values: STRICT, LENIENT"
            )

        cap = self.enum_cardinality_cap
        if isinstance(cap, bool) or not isinstance(cap, int) or cap <= 0:
            raise ConfigurationError(
                f"enum_cardinality_cap must be a positive integer, got {cap!r}"
            )

        if not self.datetime_formats:
            raise ConfigurationError("datetime_formats must list at least one format")

        if self.max_workers is not None and self.max_workers <= 0:
            raise ConfigurationError(
                f"max_workers must be a positive integer or None, got {self.max_workers!r}"
            )

    @property
    def is_strict(self) -> bool:
        return self.failure_policy == FailurePolicy.STRICT

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "BuildConfig":
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown build settings: {unknown}. Allowed: {sorted(known)}"
            )
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["datetime_formats"] = list(self.datetime_formats)
        data["null_tokens"] = list(self.null_tokens)
        return data


def load_config(config_path: str) -> BuildConfig:
    """
    Load a BuildConfig from YAML.

    Settings may sit at the top level or under a `build:` mapping.
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Config file must contain a mapping, got {type(raw).__name__}"
        )

    if "build" in raw:
        raw = raw["build"] or {}
        if not isinstance(raw, dict):
            raise ConfigurationError("'build' section must be a mapping")

    return BuildConfig.from_dict(raw)
