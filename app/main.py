from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from datastore.postgres import build_default_source
from logging_config import configure_logging
from services.catalog import build_default_catalog_service
from services.raw_data import build_default_raw_data_service
from services.sensor_data import build_default_sensor_data_service
from settings import get_settings

_FACTORIES = (
    build_default_sensor_data_service,
    build_default_raw_data_service,
    build_default_catalog_service,
    build_default_source,
    get_settings,
)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    try:
        yield
    finally:
        # services hold no connections, only cached settings
        for factory in _FACTORIES:
            factory.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Agro Monitor",
        description="Sensor aggregation and raw table access for the agro monitoring dashboard.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app


app = create_app()
