"""
Runtime settings schema (``club_config.settings``).

Responsibility
--------------
The frozen ``ClubSettings`` dataclass and its parser.  Every field has a
default in ``defaults.yaml``; a settings file overrides any subset.

Invariants enforced
-------------------
* Unknown keys raise ``ValueError`` -- a typo never silently falls back
  to a default.
* Field types are checked on parse; ``bool`` is not accepted where an
  ``int`` is expected.
* ``dues_min_year <= dues_max_year`` and ``max_batch_size >= 1``.
* ``log_level`` names a standard logging level; ``Store.from_settings``
  applies it when it configures logging.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ClubSettings:
    """Resolved runtime settings."""

    database_url: str
    pool_size: int
    max_overflow: int
    pool_timeout: int
    pool_recycle: int
    echo: bool
    log_level: str
    dues_min_year: int
    dues_max_year: int
    max_batch_size: int
    checksum: str = ""

    def __post_init__(self) -> None:
        if self.dues_min_year > self.dues_max_year:
            raise ValueError(
                f"dues_min_year ({self.dues_min_year}) is after "
                f"dues_max_year ({self.dues_max_year})"
            )
        if self.max_batch_size < 1:
            raise ValueError(f"max_batch_size must be >= 1, got {self.max_batch_size}")
        if self.pool_size < 1:
            raise ValueError(f"pool_size must be >= 1, got {self.pool_size}")
        if self.log_level.upper() not in logging.getLevelNamesMapping():
            raise ValueError(f"log_level is not a logging level name: {self.log_level!r}")


_FIELD_TYPES: dict[str, type] = {
    "database_url": str,
    "pool_size": int,
    "max_overflow": int,
    "pool_timeout": int,
    "pool_recycle": int,
    "echo": bool,
    "log_level": str,
    "dues_min_year": int,
    "dues_max_year": int,
    "max_batch_size": int,
}


def parse_settings(data: dict[str, Any], checksum: str = "") -> ClubSettings:
    """
    Build ClubSettings from a merged mapping.

    Raises:
        ValueError: On unknown or missing keys, or a value of the wrong type.
    """
    unknown = sorted(set(data) - set(_FIELD_TYPES))
    if unknown:
        raise ValueError(f"Unknown settings keys: {', '.join(unknown)}")

    missing = sorted(set(_FIELD_TYPES) - set(data))
    if missing:
        raise ValueError(f"Missing settings keys: {', '.join(missing)}")

    for key, expected in _FIELD_TYPES.items():
        value = data[key]
        if expected is int and isinstance(value, bool):
            raise ValueError(f"Setting {key!r} must be an integer, got {value!r}")
        if not isinstance(value, expected):
            raise ValueError(
                f"Setting {key!r} must be {expected.__name__}, got {type(value).__name__}"
            )

    return ClubSettings(checksum=checksum, **data)
