"""Relational source: scoped async psycopg sessions with error mapping."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Mapping, Optional, Union

import psycopg
from psycopg import IsolationLevel, sql
from psycopg.rows import dict_row

from services.errors import ConfigurationError, DatabaseConnectionError, QueryError
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

Query = Union[str, sql.Composable]
Connect = Callable[..., Awaitable[Any]]


class PostgresSession:
    """One read-only transaction on one connection."""

    def __init__(self, conn: Any, expose_query_text: bool = False) -> None:
        self._conn = conn
        self._expose_query_text = expose_query_text

    async def fetch_all(
        self, statement: Query, params: Optional[Mapping[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        try:
            cursor = await self._conn.execute(statement, params)
            return list(await cursor.fetchall())
        except psycopg.Error as exc:
            raise self._query_error(statement, exc) from exc

    async def fetch_one(
        self, statement: Query, params: Optional[Mapping[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        try:
            cursor = await self._conn.execute(statement, params)
            return await cursor.fetchone()
        except psycopg.Error as exc:
            raise self._query_error(statement, exc) from exc

    def _query_error(self, statement: Query, exc: psycopg.Error) -> QueryError:
        logger.error("Query execution failed: %s", exc, extra={"reason": type(exc).__name__})
        query_text = None
        if self._expose_query_text:
            query_text = statement if isinstance(statement, str) else statement.as_string()
        return QueryError("Database query failed", reason=str(exc).strip(), query=query_text)


class PostgresSource:
    """Opens a fresh connection per session and always closes it."""

    def __init__(
        self,
        settings: Settings,
        connect: Optional[Connect] = None,
    ) -> None:
        self.settings = settings
        self._connect = connect or psycopg.AsyncConnection.connect

    @asynccontextmanager
    async def session(self) -> AsyncIterator[PostgresSession]:
        conn = await self._open()
        try:
            await conn.set_read_only(True)
            await conn.set_isolation_level(IsolationLevel.REPEATABLE_READ)
            async with conn.transaction():
                yield PostgresSession(conn, expose_query_text=self.settings.expose_query_text)
        finally:
            await conn.close()

    async def _open(self) -> Any:
        settings = self.settings
        missing = settings.missing_connection_parameters()
        if missing:
            logger.error("Missing database configuration", extra={"missing": missing})
            raise ConfigurationError(missing)

        try:
            return await self._connect(
                host=settings.pg_host,
                port=settings.pg_port,
                dbname=settings.pg_database,
                user=settings.pg_user,
                password=settings.pg_password,
                connect_timeout=settings.connect_timeout,
                options=f"-c statement_timeout={settings.statement_timeout_ms}",
                row_factory=dict_row,
            )
        except psycopg.Error as exc:
            logger.error(
                "PostgreSQL connection failed: %s",
                exc,
                extra={"reason": type(exc).__name__},
            )
            raise DatabaseConnectionError(
                reason=str(exc).strip(),
                host=settings.pg_host,
                port=settings.pg_port,
                database=settings.pg_database,
                user=settings.pg_user,
            ) from exc


@lru_cache
def build_default_source() -> PostgresSource:
    return PostgresSource(settings=get_settings())
