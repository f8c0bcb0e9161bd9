"""Filtered, sorted and paginated access to the whitelisted tables."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Optional

from datastore.postgres import PostgresSource, build_default_source
from services.errors import DeadlineExceeded, SchemaIntrospectionError, ValidationError
from services.sql_builder import (
    ALLOWED_TABLES,
    PG_BIGINT_MAX,
    TableQuery,
    TrustedColumns,
    columns_statement,
    normalize_sort_order,
    resolve_table,
)
from settings import get_settings

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10


def _parse_positive_int(raw: Any, name: str, default: int) -> int:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return default
    try:
        value = int(str(raw).strip())
    except ValueError as exc:
        raise ValidationError(
            f"{name} must be an integer", allowed_tables=ALLOWED_TABLES
        ) from exc
    if value < 1:
        raise ValidationError(
            f"{name} must be greater than or equal to 1", allowed_tables=ALLOWED_TABLES
        )
    return value


@dataclass(frozen=True)
class RawDataRequest:
    """A validated raw data request; build it with :meth:`from_params`."""

    table_name: str
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    filter: str = ""
    sort_by: Optional[str] = None
    sort_order: str = "ASC"

    @classmethod
    def from_params(
        cls,
        table_name: Optional[str],
        page: Any = None,
        page_size: Any = None,
        filter: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
        max_page_size: Optional[int] = None,
    ) -> "RawDataRequest":
        table = resolve_table(table_name)
        parsed_page = _parse_positive_int(page, "page", 1)
        parsed_size = _parse_positive_int(page_size, "pageSize", DEFAULT_PAGE_SIZE)
        if max_page_size is not None and parsed_size > max_page_size:
            raise ValidationError(
                f"pageSize must not exceed {max_page_size}", allowed_tables=ALLOWED_TABLES
            )
        if (parsed_page - 1) * parsed_size > PG_BIGINT_MAX - parsed_size:
            raise ValidationError(
                "page is out of range for pageSize", allowed_tables=ALLOWED_TABLES
            )
        return cls(
            table_name=table.name,
            page=parsed_page,
            page_size=parsed_size,
            filter=(filter or "").strip(),
            sort_by=(sort_by or "").strip() or None,
            sort_order=normalize_sort_order(sort_order),
        )


@dataclass
class PageMeta:
    total_rows: int
    total_pages: int
    current_page: int
    page_size: int
    table_name: str
    filter: str
    sort_by: Optional[str]
    sort_order: str


@dataclass
class RawDataPage:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    meta: Optional[PageMeta] = None


class RawDataService:
    """Runs the data page and its total row count on one snapshot."""

    def __init__(self, source: PostgresSource, max_page_size: int = 500) -> None:
        self.source = source
        self.max_page_size = max_page_size

    def parse_request(self, **params: Any) -> RawDataRequest:
        return RawDataRequest.from_params(max_page_size=self.max_page_size, **params)

    async def build_and_run(
        self, request: RawDataRequest, deadline: Optional[float] = None
    ) -> RawDataPage:
        if request.table_name not in ALLOWED_TABLES:
            raise ValidationError("Invalid or missing table name", allowed_tables=ALLOWED_TABLES)
        try:
            return await asyncio.wait_for(self._run(request), timeout=deadline)
        except asyncio.TimeoutError as exc:
            raise DeadlineExceeded(
                "Database query failed",
                reason=f"deadline of {deadline}s exceeded",
            ) from exc

    async def _run(self, request: RawDataRequest) -> RawDataPage:
        started = time.perf_counter()
        table = resolve_table(request.table_name)

        async with self.source.session() as session:
            statement, params = columns_statement(table)
            column_rows = await session.fetch_all(statement, params)
            columns = TrustedColumns.from_introspection(
                table, (row["column_name"] for row in column_rows)
            )
            if not len(columns):
                raise SchemaIntrospectionError(
                    "Database query failed",
                    reason=f"no columns visible for table {table.name!r}",
                )

            query = TableQuery(columns).where_text(request.filter).paginate(
                request.page, request.page_size
            )
            query.order_by(request.sort_by, request.sort_order)
            if request.sort_by and query.sort_column is None:
                logger.warning(
                    "Ignoring unknown sort column %r",
                    request.sort_by,
                    extra={"table_name": table.name},
                )

            data_statement, data_params = query.data_statement()
            count_statement, count_params = query.count_statement()
            # both statements settle before the session is released
            results = await asyncio.gather(
                session.fetch_all(data_statement, data_params),
                session.fetch_one(count_statement, count_params),
                return_exceptions=True,
            )
            for outcome in results:
                if isinstance(outcome, BaseException):
                    raise outcome
            rows, count_row = results

        total_rows = int(count_row["total_rows"]) if count_row else 0
        meta = PageMeta(
            total_rows=total_rows,
            total_pages=math.ceil(total_rows / request.page_size),
            current_page=request.page,
            page_size=request.page_size,
            table_name=table.name,
            filter=request.filter,
            sort_by=request.sort_by,
            sort_order=request.sort_order,
        )
        logger.info(
            "Served raw data page",
            extra={
                "table_name": table.name,
                "page": request.page,
                "row_count": len(rows),
                "total_rows": total_rows,
                "elapsed_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return RawDataPage(rows=rows, meta=meta)


@lru_cache
def build_default_raw_data_service() -> RawDataService:
    settings = get_settings()
    return RawDataService(source=build_default_source(), max_page_size=settings.max_page_size)
