"""Aggregation logic for sensor readings."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from models.records import Category, CategoryMetric, Reading, SensorGroup
from services.classifier import Classifier

logger = logging.getLogger(__name__)

MAX_METRIC_READINGS = 10


def empty_metrics() -> Dict[Category, CategoryMetric]:
    return {category: CategoryMetric() for category in Category}


@dataclass
class CategoryConflict:
    """Several sensor groups classified into one category; only ``kept`` reports."""

    category: Category
    kept: str
    discarded: List[str] = field(default_factory=list)


@dataclass
class AggregationResult:
    """Sensor groups plus the per-category summaries derived from them."""

    sensors: Dict[str, SensorGroup] = field(default_factory=dict)
    metrics: Dict[Category, CategoryMetric] = field(default_factory=empty_metrics)
    total_readings: int = 0
    skipped_rows: int = 0
    unclassified: List[str] = field(default_factory=list)
    conflicts: List[CategoryConflict] = field(default_factory=list)


def sensor_key(row: Mapping[str, Any]) -> str:
    description = row.get("sensor_descricao")
    if description is None:
        description = f"sensor:{row.get('sensor')}"
    return f"{description}_{row.get('grupo')}"


def parse_value(raw: Any) -> float:
    if raw is None or isinstance(raw, bool):
        raise ValueError("missing value")
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            raise ValueError("missing value")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError("invalid numeric value") from exc
    if not math.isfinite(value):
        raise ValueError("invalid numeric value")
    return value


def parse_timestamp(raw: Any) -> datetime:
    if raw is None:
        raise ValueError("missing timestamp")
    if isinstance(raw, datetime):
        parsed = raw
    else:
        candidate = str(raw).strip()
        if not candidate:
            raise ValueError("missing timestamp")
        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError as exc:
            raise ValueError("invalid timestamp") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation.

    Rows are expected newest first: the first reading of every group is its
    current value and the first ``max_readings`` readings are the ones kept
    for transport.
    """

    def __init__(
        self,
        classifier: Optional[Classifier] = None,
        max_readings: int = MAX_METRIC_READINGS,
    ) -> None:
        self.classifier = classifier or Classifier()
        self.max_readings = max_readings

    def aggregate(self, rows: Iterable[Mapping[str, Any]]) -> AggregationResult:
        result = AggregationResult()

        for row_number, row in enumerate(rows, start=1):
            result.total_readings += 1
            key = sensor_key(row)
            try:
                value = parse_value(row.get("valor"))
                timestamp = parse_timestamp(row.get("data_registro"))
            except ValueError as exc:
                result.skipped_rows += 1
                logger.warning(
                    "Skipping row %d: %s",
                    row_number,
                    exc,
                    extra={"row_number": row_number, "reason": str(exc), "sensor_key": key},
                )
                continue

            reading = Reading(
                sensor_id=row.get("sensor"),
                value=value,
                timestamp=timestamp,
                device_id=row.get("dispositivo"),
            )
            group = result.sensors.get(key)
            if group is None:
                group = SensorGroup(
                    key=key,
                    sensor_id=row.get("sensor"),
                    sensor_name=row.get("sensor_descricao"),
                    sensor_type=row.get("sensor_tipo"),
                    grupo_id=row.get("grupo"),
                    grupo_name=row.get("grupo_nome"),
                    latest_value=value,
                    latest_timestamp=timestamp,
                )
                result.sensors[key] = group
            group.readings.append(reading)

        winners = self._assign_categories(result)
        for category, group in winners.items():
            result.metrics[category] = self.summarize(group)

        return result

    def summarize(self, group: SensorGroup) -> CategoryMetric:
        values = [reading.value for reading in group.readings]
        if not values:
            return CategoryMetric()
        return CategoryMetric(
            current=values[0],
            average=math.fsum(values) / len(values),
            min=min(values),
            max=max(values),
            readings=list(group.readings[: self.max_readings]),
            sensor_key=group.key,
        )

    def _assign_categories(self, result: AggregationResult) -> Dict[Category, SensorGroup]:
        winners: Dict[Category, SensorGroup] = {}
        contenders: Dict[Category, List[str]] = {}

        for key, group in result.sensors.items():
            if not group.readings:
                continue
            category = self.classifier.classify(group.sensor_type, group.sensor_name)
            if category is None:
                result.unclassified.append(key)
                logger.info(
                    "Sensor group matches no category",
                    extra={"sensor_key": key, "reason": f"type={group.sensor_type!r}"},
                )
                continue

            contenders.setdefault(category, []).append(key)
            current = winners.get(category)
            if current is None or group.latest_timestamp > current.latest_timestamp:
                winners[category] = group

        for category, keys in contenders.items():
            if len(keys) < 2:
                continue
            kept = winners[category].key
            discarded = [key for key in keys if key != kept]
            result.conflicts.append(
                CategoryConflict(category=category, kept=kept, discarded=discarded)
            )
            logger.warning(
                "Several sensor groups classified as %s; reporting the most recent",
                category.value,
                extra={"category": category.value, "sensor_key": kept, "row_count": len(keys)},
            )

        return winners
