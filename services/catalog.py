"""Location listing and connection diagnostics."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Optional

from datastore.postgres import PostgresSource, build_default_source
from services.sql_builder import ALLOWED_TABLES, SERVER_INFO, grupos_statement, tables_statement


@dataclass
class ConnectionReport:
    host: Optional[str]
    port: int
    database: Optional[str]
    user: Optional[str]
    connection_ms: int
    server_version: Optional[str] = None
    tables_found: List[str] = field(default_factory=list)
    missing_tables: List[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.missing_tables:
            return (
                "Connection established, but some expected tables were not found: "
                + ", ".join(self.missing_tables)
            )
        return "Connection established"


class CatalogService:

    def __init__(self, source: PostgresSource) -> None:
        self.source = source

    async def list_grupos(self) -> List[Dict[str, Any]]:
        statement, params = grupos_statement()
        async with self.source.session() as session:
            rows = await session.fetch_all(statement, params)
        return [
            {"id": row.get("id"), "nome": row.get("nome"), "localizacao": row.get("localizacao")}
            for row in rows
        ]

    async def check_connection(self) -> ConnectionReport:
        settings = self.source.settings
        started = time.perf_counter()
        async with self.source.session() as session:
            connection_ms = int((time.perf_counter() - started) * 1000)
            info = await session.fetch_one(SERVER_INFO) or {}
            statement, params = tables_statement()
            table_rows = await session.fetch_all(statement, params)

        tables = [row["table_name"] for row in table_rows]
        return ConnectionReport(
            host=settings.pg_host,
            port=settings.pg_port,
            database=info.get("database") or settings.pg_database,
            user=info.get("user") or settings.pg_user,
            connection_ms=connection_ms,
            server_version=info.get("version"),
            tables_found=tables,
            missing_tables=[name for name in ALLOWED_TABLES if name not in tables],
        )


@lru_cache
def build_default_catalog_service() -> CatalogService:
    return CatalogService(source=build_default_source())
