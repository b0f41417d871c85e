"""
club_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads settings files
    or environment variables directly.

Architecture position:
    Configuration.  Sits beside ``club_ledger``; the ledger never imports
    from ``club_config`` except for type checking (``Store.from_settings``).

Invariants enforced:
    - Single entrypoint: all runtime settings flow through
      ``get_active_settings()``.
    - Deterministic: the same files always produce the same
      ``ClubSettings.checksum``.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` -- unknown keys, missing keys or wrongly typed values.
    - ``yaml.YAMLError`` -- malformed YAML.
"""

from __future__ import annotations

import logging
from pathlib import Path

from club_config.loader import compute_checksum, load_yaml_file
from club_config.settings import ClubSettings, parse_settings

__all__ = ["ClubSettings", "get_active_settings"]

_logger = logging.getLogger("club_ledger.config")

_DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"


def get_active_settings(path: Path | str | None = None) -> ClubSettings:
    """The ONLY public settings entrypoint.

    Args:
        path: Optional YAML file whose keys override ``defaults.yaml``.

    Returns:
        Frozen ClubSettings.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the merged settings fail validation.
    """
    merged = load_yaml_file(_DEFAULTS_FILE)
    source = str(_DEFAULTS_FILE)
    if path is not None:
        overrides = load_yaml_file(Path(path))
        unknown = sorted(set(overrides) - set(merged))
        if unknown:
            raise ValueError(f"Unknown settings keys: {', '.join(unknown)}")
        merged.update(overrides)
        source = str(path)

    settings = parse_settings(merged, checksum=compute_checksum(merged))

    _logger.info(
        "CLUB_CONFIG_TRACE",
        extra={
            "trace_type": "CLUB_CONFIG_TRACE",
            "source": source,
            "checksum": settings.checksum,
            "dialect": settings.database_url.split(":", 1)[0],
            "max_batch_size": settings.max_batch_size,
        },
    )
    return settings
