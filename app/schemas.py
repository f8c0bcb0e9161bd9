"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.records import CategoryMetric, Reading, SensorGroup
from services.aggregator import AggregationResult, CategoryConflict
from services.catalog import ConnectionReport
from services.raw_data import PageMeta, RawDataPage


class ReadingOut(BaseModel):
    """A single reading as shipped to dashboard clients."""

    sensor_id: Optional[int] = None
    value: float
    timestamp: datetime
    dispositivo: Any = None

    @classmethod
    def from_reading(cls, reading: Reading) -> "ReadingOut":
        return cls(
            sensor_id=reading.sensor_id,
            value=reading.value,
            timestamp=reading.timestamp,
            dispositivo=reading.device_id,
        )


class SensorGroupOut(BaseModel):
    sensor_id: Optional[int] = None
    sensor_name: Optional[str] = None
    sensor_type: Optional[str] = None
    grupo_id: Optional[int] = None
    grupo_name: Optional[str] = None
    latest_value: float
    latest_timestamp: datetime
    readings: List[ReadingOut] = Field(default_factory=list)

    @classmethod
    def from_group(cls, group: SensorGroup) -> "SensorGroupOut":
        return cls(
            sensor_id=group.sensor_id,
            sensor_name=group.sensor_name,
            sensor_type=group.sensor_type,
            grupo_id=group.grupo_id,
            grupo_name=group.grupo_name,
            latest_value=group.latest_value,
            latest_timestamp=group.latest_timestamp,
            readings=[ReadingOut.from_reading(reading) for reading in group.readings],
        )


class CategoryMetricOut(BaseModel):
    current: float = 0.0
    average: float = 0.0
    min: float = 0.0
    max: float = 0.0
    readings: List[ReadingOut] = Field(default_factory=list)
    sensor_key: Optional[str] = Field(
        default=None, description="Sensor group that populated this category."
    )

    @classmethod
    def from_metric(cls, metric: CategoryMetric) -> "CategoryMetricOut":
        return cls(
            current=metric.current,
            average=metric.average,
            min=metric.min,
            max=metric.max,
            readings=[ReadingOut.from_reading(reading) for reading in metric.readings],
            sensor_key=metric.sensor_key,
        )


class CategoryConflictOut(BaseModel):
    category: str
    kept: str
    discarded: List[str] = Field(default_factory=list)

    @classmethod
    def from_conflict(cls, conflict: CategoryConflict) -> "CategoryConflictOut":
        return cls(
            category=conflict.category.value,
            kept=conflict.kept,
            discarded=list(conflict.discarded),
        )


class SensorDataPayload(BaseModel):
    sensors: Dict[str, SensorGroupOut] = Field(default_factory=dict)
    metrics: Dict[str, CategoryMetricOut] = Field(default_factory=dict)
    total_readings: int = Field(..., ge=0)
    skipped_rows: int = Field(default=0, ge=0)
    unclassified: List[str] = Field(
        default_factory=list, description="Sensor groups that match no category."
    )
    conflicts: List[CategoryConflictOut] = Field(default_factory=list)
    last_updated: datetime

    @classmethod
    def from_result(cls, result: AggregationResult, last_updated: datetime) -> "SensorDataPayload":
        return cls(
            sensors={key: SensorGroupOut.from_group(group) for key, group in result.sensors.items()},
            metrics={
                category.value: CategoryMetricOut.from_metric(metric)
                for category, metric in result.metrics.items()
            },
            total_readings=result.total_readings,
            skipped_rows=result.skipped_rows,
            unclassified=list(result.unclassified),
            conflicts=[CategoryConflictOut.from_conflict(c) for c in result.conflicts],
            last_updated=last_updated,
        )


class SensorDataResponse(BaseModel):
    success: bool = True
    data: SensorDataPayload


class PageMetaOut(BaseModel):
    """Pagination metadata; serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_rows: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)
    current_page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    table_name: str
    filter: str = ""
    sort_by: Optional[str] = None
    sort_order: str = "ASC"

    @classmethod
    def from_meta(cls, meta: PageMeta) -> "PageMetaOut":
        return cls(
            total_rows=meta.total_rows,
            total_pages=meta.total_pages,
            current_page=meta.current_page,
            page_size=meta.page_size,
            table_name=meta.table_name,
            filter=meta.filter,
            sort_by=meta.sort_by,
            sort_order=meta.sort_order,
        )


class RawDataResponse(BaseModel):
    success: bool = True
    data: List[Dict[str, Any]] = Field(default_factory=list)
    meta: PageMetaOut

    @classmethod
    def from_page(cls, page: RawDataPage) -> "RawDataResponse":
        assert page.meta is not None
        return cls(data=page.rows, meta=PageMetaOut.from_meta(page.meta))


class GrupoOut(BaseModel):
    id: int
    nome: Optional[str] = None
    localizacao: Optional[str] = None


class GruposPayload(BaseModel):
    grupos: List[GrupoOut] = Field(default_factory=list)
    total: int = Field(..., ge=0)
    last_updated: datetime


class GruposResponse(BaseModel):
    success: bool = True
    data: GruposPayload


class ConnectionDetails(BaseModel):
    host: Optional[str] = None
    port: int
    database: Optional[str] = None
    user: Optional[str] = None
    connection_time: int = Field(..., ge=0, description="Milliseconds to connect.")
    server_version: Optional[str] = None
    tables_found: List[str] = Field(default_factory=list)
    missing_tables: List[str] = Field(default_factory=list)


class ConnectionCheckResponse(BaseModel):
    success: bool = True
    message: str
    details: ConnectionDetails

    @classmethod
    def from_report(cls, report: ConnectionReport) -> "ConnectionCheckResponse":
        return cls(
            message=report.message,
            details=ConnectionDetails(
                host=report.host,
                port=report.port,
                database=report.database,
                user=report.user,
                connection_time=report.connection_ms,
                server_version=report.server_version,
                tables_found=list(report.tables_found),
                missing_tables=list(report.missing_tables),
            ),
        )
