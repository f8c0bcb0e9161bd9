"""Pull-based access to the recent readings of one or all locations."""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

from datastore.postgres import PostgresSource, Query, build_default_source
from services.aggregator import AggregationResult, Aggregator
from services.errors import DeadlineExceeded, ValidationError
from services.sql_builder import PG_BIGINT_MAX, PG_INT_MAX, recent_readings_statement
from settings import get_settings

logger = logging.getLogger(__name__)


class SensorDataService:
    """Fetches a bounded window of readings and aggregates it.

    The caller owns polling cadence; every call is a fresh read.
    """

    def __init__(
        self,
        source: PostgresSource,
        aggregator: Aggregator,
        window_hours: int = 24,
        reading_limit: int = 100,
    ) -> None:
        self.source = source
        self.aggregator = aggregator
        self.window_hours = window_hours
        self.reading_limit = reading_limit

    async def fetch(
        self,
        grupo_id: Optional[int] = None,
        window_hours: Optional[int] = None,
        deadline: Optional[float] = None,
    ) -> AggregationResult:
        window = window_hours or self.window_hours
        if not 1 <= window <= PG_INT_MAX:
            raise ValidationError("window_hours is out of range")
        if grupo_id is not None and not -PG_BIGINT_MAX <= grupo_id <= PG_BIGINT_MAX:
            raise ValidationError("grupo_id is out of range")
        statement, params = recent_readings_statement(
            window_hours=window, limit=self.reading_limit, grupo_id=grupo_id
        )
        try:
            rows = await asyncio.wait_for(self._fetch_rows(statement, params), timeout=deadline)
        except asyncio.TimeoutError as exc:
            raise DeadlineExceeded(
                "Database query failed",
                reason=f"deadline of {deadline}s exceeded",
            ) from exc

        logger.info(
            "Fetched recent readings",
            extra={"grupo_id": grupo_id, "row_count": len(rows)},
        )
        return self.aggregator.aggregate(rows)

    async def _fetch_rows(self, statement: Query, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        async with self.source.session() as session:
            return await session.fetch_all(statement, params)


@lru_cache
def build_default_sensor_data_service() -> SensorDataService:
    settings = get_settings()
    return SensorDataService(
        source=build_default_source(),
        aggregator=Aggregator(),
        window_hours=settings.reading_window_hours,
        reading_limit=settings.reading_limit,
    )
