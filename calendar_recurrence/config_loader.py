"""calendar_recurrence.config_loader

Config loader for calendar_recurrence.

- Reads YAML (PyYAML) or JSON (by ``.json`` suffix).
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .models import Frequency

logger = logging.getLogger(__name__)

MIN_OCCURRENCES_PER_WINDOW = 1
MAX_OCCURRENCES_PER_WINDOW = 100_000


@dataclass
class Config:
    """Typed configuration for calendar_recurrence.

    Fields:
        log_level: logging level name
        max_occurrences_per_window: cap on occurrences returned by one expansion (1..100000)
        legacy_frequency_fallback: frequency used when stored rules are sub-daily
        default_window_days: window length used when a caller gives only a start
    """

    log_level: str = "INFO"
    max_occurrences_per_window: int = 1000
    legacy_frequency_fallback: str = Frequency.DAILY.value
    default_window_days: int = 42

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric-like values are coerced to int and out-of-range values are
        clamped, logging warnings when coercions occur.
        """
        if data is None:
            data = {}

        def _coerce_int(key: str, default: int) -> int:
            raw = data.get(key, default)
            try:
                return int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default

        max_occurrences = _coerce_int("max_occurrences_per_window", 1000)
        if max_occurrences < MIN_OCCURRENCES_PER_WINDOW:
            logger.warning(
                "max_occurrences_per_window %d below minimum; coercing to %d",
                max_occurrences,
                MIN_OCCURRENCES_PER_WINDOW,
            )
            max_occurrences = MIN_OCCURRENCES_PER_WINDOW
        elif max_occurrences > MAX_OCCURRENCES_PER_WINDOW:
            logger.warning(
                "max_occurrences_per_window %d above maximum; coercing to %d",
                max_occurrences,
                MAX_OCCURRENCES_PER_WINDOW,
            )
            max_occurrences = MAX_OCCURRENCES_PER_WINDOW

        fallback = str(data.get("legacy_frequency_fallback", Frequency.DAILY.value)).lower()
        if fallback not in {freq.value for freq in Frequency}:
            logger.warning(
                "legacy_frequency_fallback %r is not a supported frequency; using daily", fallback
            )
            fallback = Frequency.DAILY.value

        window_days = _coerce_int("default_window_days", 42)
        if window_days < 1:
            logger.warning("default_window_days %d below minimum; coercing to 1", window_days)
            window_days = 1

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"

        return cls(
            log_level=log_level,
            max_occurrences_per_window=max_occurrences,
            legacy_frequency_fallback=fallback,
            default_window_days=window_days,
        )


def _load_yaml_or_json(path: Path) -> Any:
    """Load a mapping from a YAML or JSON file."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text)
    loaded = yaml.safe_load(text)
    # safe_load returns None for empty files
    return {} if loaded is None else loaded


def load_config(path: str | None = None) -> Config:
    """Load configuration from a YAML/JSON file and return a Config instance.

    Args:
        path: Optional path to the config file. If not provided the default is
              ./calendar_recurrence.yaml (relative to current working dir).

    Returns:
        Config dataclass instance with values from file (or defaults).

    Behavior:
    - If file is missing: returns Config() with defaults.
    - If file exists but top-level is not a mapping: raises ValueError.
    """
    p = Path(path) if path else Path.cwd() / "calendar_recurrence.yaml"
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        return Config()

    raw = _load_yaml_or_json(p)
    if not isinstance(raw, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
        raise ValueError("Config file must contain a mapping at top level")  # noqa: TRY004
    cfg = Config.from_dict(raw)
    logger.info("Loaded configuration from %s", p)
    logger.debug("Configuration values: %s", cfg)
    return cfg
