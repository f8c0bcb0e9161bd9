"""HTTP route definitions for the service."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import (
    ConnectionCheckResponse,
    GrupoOut,
    GruposPayload,
    GruposResponse,
    RawDataResponse,
    SensorDataPayload,
    SensorDataResponse,
)
from services.catalog import CatalogService, build_default_catalog_service
from services.errors import DashboardError
from services.raw_data import RawDataService, build_default_raw_data_service
from services.sensor_data import SensorDataService, build_default_sensor_data_service
from settings import Settings, get_settings

router = APIRouter()


def get_sensor_data_service() -> SensorDataService:
    return build_default_sensor_data_service()


def get_raw_data_service() -> RawDataService:
    return build_default_raw_data_service()


def get_catalog_service() -> CatalogService:
    return build_default_catalog_service()


def get_app_settings() -> Settings:
    return get_settings()


def _raise_http(exc: DashboardError) -> NoReturn:
    raise HTTPException(status_code=exc.status_code, detail=exc.to_detail()) from exc


@router.get(
    "/sensor-data",
    response_model=SensorDataResponse,
    summary="Aggregate the recent readings of one location, or of all locations.",
)
async def get_sensor_data(
    grupo_id: Optional[int] = Query(None, description="Restrict readings to one location."),
    window_hours: Optional[int] = Query(None, ge=1, description="Override the reading window."),
    service: SensorDataService = Depends(get_sensor_data_service),
    settings: Settings = Depends(get_app_settings),
) -> SensorDataResponse:
    try:
        result = await service.fetch(
            grupo_id=grupo_id,
            window_hours=window_hours,
            deadline=settings.request_deadline,
        )
    except DashboardError as exc:
        _raise_http(exc)
    payload = SensorDataPayload.from_result(result, last_updated=datetime.now(timezone.utc))
    return SensorDataResponse(data=payload)


@router.get(
    "/raw-data",
    response_model=RawDataResponse,
    summary="Filter, sort and paginate one of the whitelisted tables.",
)
async def get_raw_data(
    table_name: Optional[str] = Query(None, alias="tableName"),
    page: Optional[str] = Query(None),
    page_size: Optional[str] = Query(None, alias="pageSize"),
    filter: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    service: RawDataService = Depends(get_raw_data_service),
    settings: Settings = Depends(get_app_settings),
) -> RawDataResponse:
    try:
        request = service.parse_request(
            table_name=table_name,
            page=page,
            page_size=page_size,
            filter=filter,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        result = await service.build_and_run(request, deadline=settings.request_deadline)
    except DashboardError as exc:
        _raise_http(exc)
    return RawDataResponse.from_page(result)


@router.get(
    "/grupos",
    response_model=GruposResponse,
    summary="List the locations available for filtering.",
)
async def list_grupos(
    service: CatalogService = Depends(get_catalog_service),
) -> GruposResponse:
    try:
        grupos = await service.list_grupos()
    except DashboardError as exc:
        _raise_http(exc)
    return GruposResponse(
        data=GruposPayload(
            grupos=[GrupoOut(**grupo) for grupo in grupos],
            total=len(grupos),
            last_updated=datetime.now(timezone.utc),
        )
    )


@router.get(
    "/db-health",
    response_model=ConnectionCheckResponse,
    summary="Check connectivity to the relational source and the expected tables.",
)
async def check_database(
    service: CatalogService = Depends(get_catalog_service),
) -> ConnectionCheckResponse:
    try:
        report = await service.check_connection()
    except DashboardError as exc:
        _raise_http(exc)
    return ConnectionCheckResponse.from_report(report)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
