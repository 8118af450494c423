"""V2X-CPM configuration, loaded from YAML.

Example ``config/cpm.yaml``::

    cpm:
      station_id: 1
      station_type: passenger_car
      interval_ms: 1000
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .cpm_messages import (
    DEFAULT_STATION_ID, DEFAULT_TIME_OF_MEASUREMENT_MS, PROTOCOL_VERSION, StationType,
)
from .errors import ConfigError


@dataclass
class CpmConfig:
    station_id: int = DEFAULT_STATION_ID
    station_type: StationType = StationType.PASSENGER_CAR
    interval_ms: int = 1000
    protocol_version: int = PROTOCOL_VERSION
    time_of_measurement_ms: int = DEFAULT_TIME_OF_MEASUREMENT_MS
    confidence_ellipse_m: float = 1.0
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def interval_s(self) -> float:
        return self.interval_ms / 1000.0


_TYPES = {
    "station_id": int,
    "interval_ms": int,
    "protocol_version": int,
    "time_of_measurement_ms": int,
    "confidence_ellipse_m": (int, float),
    "log_level": str,
}


def _station_type(value: Any) -> StationType:
    if isinstance(value, StationType):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            return StationType(value)
        except ValueError as exc:
            raise ConfigError(f"unknown station_type {value}") from exc
    if isinstance(value, str):
        try:
            return StationType[value.strip().upper()]
        except KeyError as exc:
            raise ConfigError(f"unknown station_type '{value}'") from exc
    raise ConfigError(f"station_type must be a name or integer, got {value!r}")


def config_from_dict(section: Dict[str, Any]) -> CpmConfig:
    """Build a CpmConfig from the ``cpm`` mapping; absent keys keep defaults."""
    if not isinstance(section, dict):
        raise ConfigError(f"'cpm' section must be a mapping, got {type(section).__name__}")

    known = {f.name for f in fields(CpmConfig)}
    unknown = set(section) - known
    if unknown:
        raise ConfigError(f"unknown config keys: {sorted(unknown)}")

    values: Dict[str, Any] = {}
    for key, value in section.items():
        if key == "station_type":
            values[key] = _station_type(value)
        elif key == "log_file":
            if value is not None and not isinstance(value, str):
                raise ConfigError(f"log_file must be a path string, got {value!r}")
            values[key] = value
        else:
            expected = _TYPES[key]
            if isinstance(value, bool) or not isinstance(value, expected):
                raise ConfigError(f"{key} has wrong type: {value!r}")
            values[key] = value

    config = CpmConfig(**values)
    if config.interval_ms <= 0:
        raise ConfigError(f"interval_ms must be positive, got {config.interval_ms}")
    if not 0 <= config.station_id <= 0xFFFFFFFF:
        raise ConfigError(f"station_id out of range: {config.station_id}")
    if not 0 <= config.protocol_version <= 0xFF:
        raise ConfigError(f"protocol_version out of range: {config.protocol_version}")
    return config


def load_config(path: Optional[str | Path] = None) -> CpmConfig:
    """Load YAML configuration; ``None`` returns the defaults."""
    if path is None:
        return CpmConfig()
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path.resolve()}")
    with config_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: top level must be a mapping")
    return config_from_dict(data.get("cpm") or {})
