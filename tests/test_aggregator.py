"""Unit tests for the aggregation logic."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from models.records import Category, CategoryMetric
from services.aggregator import Aggregator

_BASE = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _row(
    value,
    minutes_ago: int,
    description: str = "Temperatura Galpão A",
    tipo: str = "Celsius",
    grupo: int = 1,
    sensor: int = 1,
) -> dict:
    """Helper to build deterministic joined reading rows."""

    return {
        "id": minutes_ago,
        "sensor": sensor,
        "valor": value,
        "grupo": grupo,
        "data_registro": _BASE - timedelta(minutes=minutes_ago),
        "dispositivo": "esp-01",
        "sensor_descricao": description,
        "sensor_tipo": tipo,
        "grupo_nome": f"Galpão {grupo}",
    }


def test_aggregate_empty_iterable_returns_default_summary() -> None:
    result = Aggregator().aggregate([])

    assert result.sensors == {}
    assert result.total_readings == 0
    assert set(result.metrics) == set(Category)
    assert all(metric == CategoryMetric() for metric in result.metrics.values())


def test_end_to_end_temperature_and_humidity() -> None:
    rows = [
        _row(22.5, 0),
        _row(Decimal("65"), 1, description="Umidade Ar", tipo="Percentual", sensor=2),
        _row(21.0, 5),
        _row(68, 6, description="Umidade Ar", tipo="Percentual", sensor=2),
        _row(23.0, 10),
    ]

    result = Aggregator().aggregate(rows)

    temperature = result.metrics[Category.temperature]
    assert temperature.current == 22.5
    assert temperature.average == pytest.approx(22.1667, abs=1e-3)
    assert temperature.min == 21.0
    assert temperature.max == 23.0
    assert len(temperature.readings) == 3

    humidity = result.metrics[Category.humidity]
    assert humidity.current == 65
    assert humidity.average == pytest.approx(66.5)
    assert humidity.min == 65
    assert humidity.max == 68
    assert len(humidity.readings) == 2

    for category in (Category.water, Category.energy, Category.feed, Category.weight):
        assert result.metrics[category] == CategoryMetric()


def test_groups_are_keyed_by_description_and_location() -> None:
    rows = [
        _row(20.0, 0, grupo=1),
        _row(25.0, 1, grupo=2),
        _row(21.0, 2, grupo=1),
    ]

    result = Aggregator().aggregate(rows)

    assert set(result.sensors) == {"Temperatura Galpão A_1", "Temperatura Galpão A_2"}
    group = result.sensors["Temperatura Galpão A_1"]
    assert [reading.value for reading in group.readings] == [20.0, 21.0]
    assert group.latest_value == 20.0
    assert group.latest_timestamp == _BASE
    assert group.grupo_name == "Galpão 1"


def test_current_is_first_row_not_latest_timestamp() -> None:
    rows = [_row(10.0, 30), _row(99.0, 0)]

    result = Aggregator().aggregate(rows)

    assert result.metrics[Category.temperature].current == 10.0


def test_metric_keeps_ten_most_recent_readings() -> None:
    rows = [_row(float(index), index) for index in range(50)]

    result = Aggregator().aggregate(rows)

    metric = result.metrics[Category.temperature]
    assert len(metric.readings) == 10
    assert [reading.value for reading in metric.readings] == [float(i) for i in range(10)]
    assert metric.min == 0.0
    assert metric.max == 49.0
    assert metric.average == pytest.approx(24.5)
    assert len(result.sensors["Temperatura Galpão A_1"].readings) == 50


def test_non_numeric_rows_are_skipped_and_logged(caplog) -> None:
    rows = [_row("abc", 0), _row(20.0, 1), _row(None, 2), _row(float("nan"), 3)]

    with caplog.at_level(logging.WARNING):
        result = Aggregator().aggregate(rows)

    assert result.total_readings == 4
    assert result.skipped_rows == 3
    assert result.metrics[Category.temperature].current == 20.0

    records = [record for record in caplog.records if record.name == "services.aggregator"]
    reasons = {getattr(record, "reason", None) for record in records}
    assert {"invalid numeric value", "missing value"} <= reasons
    assert any(getattr(record, "row_number", None) == 1 for record in records)


def test_rows_without_timestamp_are_skipped() -> None:
    row = _row(20.0, 0)
    row["data_registro"] = None

    result = Aggregator().aggregate([row, _row(21.0, 1)])

    assert result.skipped_rows == 1
    assert result.metrics[Category.temperature].current == 21.0


def test_string_timestamps_are_parsed_as_utc() -> None:
    row = _row("1.5", 0)
    row["data_registro"] = "2024-01-01T10:00:00"

    result = Aggregator().aggregate([row])

    group = next(iter(result.sensors.values()))
    assert group.latest_timestamp == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
    assert group.latest_value == 1.5


def test_unclassified_groups_stay_in_sensors(caplog) -> None:
    rows = [_row(300.0, 0, description="Luminosidade", tipo="Lux", sensor=9)]

    with caplog.at_level(logging.INFO):
        result = Aggregator().aggregate(rows)

    assert "Luminosidade_1" in result.sensors
    assert result.unclassified == ["Luminosidade_1"]
    assert all(metric == CategoryMetric() for metric in result.metrics.values())
    assert any(
        getattr(record, "sensor_key", None) == "Luminosidade_1" for record in caplog.records
    )


def test_category_conflict_keeps_most_recent_group() -> None:
    rows = [
        _row(30.0, 5, description="Temp Sala", sensor=2),
        _row(20.0, 0, description="Temperatura Galpão A", sensor=1),
        _row(31.0, 6, description="Temp Sala", sensor=2),
    ]

    result = Aggregator().aggregate(rows)

    metric = result.metrics[Category.temperature]
    assert metric.sensor_key == "Temperatura Galpão A_1"
    assert metric.current == 20.0
    assert len(result.conflicts) == 1
    conflict = result.conflicts[0]
    assert conflict.category is Category.temperature
    assert conflict.kept == "Temperatura Galpão A_1"
    assert conflict.discarded == ["Temp Sala_1"]


def test_conflict_tie_keeps_first_group() -> None:
    rows = [
        _row(30.0, 0, description="Temp A", sensor=1),
        _row(31.0, 0, description="Temp B", sensor=2),
    ]

    result = Aggregator().aggregate(rows)

    assert result.metrics[Category.temperature].sensor_key == "Temp A_1"
    assert result.conflicts[0].discarded == ["Temp B_1"]


def test_missing_description_uses_sensor_id_key() -> None:
    row = _row(5.0, 0, tipo="Litros", sensor=42)
    row["sensor_descricao"] = None

    result = Aggregator().aggregate([row])

    assert "sensor:42_1" in result.sensors
    assert result.metrics[Category.water].current == 5.0


def test_custom_reading_cap() -> None:
    rows = [_row(float(index), index) for index in range(5)]

    result = Aggregator(max_readings=2).aggregate(rows)

    assert len(result.metrics[Category.temperature].readings) == 2
