"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional


class Category(str, Enum):
    """The fixed semantic categories a sensor group can report into."""

    temperature = "temperature"
    humidity = "humidity"
    water = "water"
    energy = "energy"
    feed = "feed"
    weight = "weight"


@dataclass(frozen=True, slots=True)
class Reading:
    """One timestamped numeric observation from one sensor."""

    sensor_id: Optional[int]
    value: float
    timestamp: datetime
    device_id: Any = None


@dataclass(slots=True)
class SensorGroup:
    """Readings of one sensor within one location, newest first."""

    key: str
    sensor_id: Optional[int]
    sensor_name: Optional[str]
    sensor_type: Optional[str]
    grupo_id: Optional[int]
    grupo_name: Optional[str]
    latest_value: float
    latest_timestamp: datetime
    readings: List[Reading] = field(default_factory=list)


@dataclass(slots=True)
class CategoryMetric:
    """Current/average/min/max summary for one category."""

    current: float = 0.0
    average: float = 0.0
    min: float = 0.0
    max: float = 0.0
    readings: List[Reading] = field(default_factory=list)
    sensor_key: Optional[str] = None
