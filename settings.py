from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_PG_HOST_ENV = "PGHOST"
_PG_PORT_ENV = "PGPORT"
_PG_DATABASE_ENV = "PGDB"
_PG_USER_ENV = "PGUSER"
_PG_PASSWORD_ENV = "PGPASSWORD"
_CONNECT_TIMEOUT_ENV = "PG_CONNECT_TIMEOUT"
_STATEMENT_TIMEOUT_ENV = "PG_STATEMENT_TIMEOUT_MS"
_DEADLINE_ENV = "REQUEST_DEADLINE_SECONDS"
_WINDOW_HOURS_ENV = "READING_WINDOW_HOURS"
_READING_LIMIT_ENV = "READING_LIMIT"
_MAX_PAGE_SIZE_ENV = "MAX_PAGE_SIZE"
_EXPOSE_QUERY_ENV = "EXPOSE_QUERY_TEXT"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    pg_host: Optional[str]
    pg_port: int
    pg_database: Optional[str]
    pg_user: Optional[str]
    pg_password: Optional[str]
    connect_timeout: int
    statement_timeout_ms: int
    request_deadline: float
    reading_window_hours: int
    reading_limit: int
    max_page_size: int
    expose_query_text: bool
    log_level: str

    def missing_connection_parameters(self) -> list[str]:
        """Names of the required connection variables that are unset."""
        required = (
            (_PG_HOST_ENV, self.pg_host),
            (_PG_DATABASE_ENV, self.pg_database),
            (_PG_USER_ENV, self.pg_user),
            (_PG_PASSWORD_ENV, self.pg_password),
        )
        return [name for name, value in required if not value]


def _read_optional_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUE_VALUES


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        pg_host=_read_optional_env(_PG_HOST_ENV),
        pg_port=_read_positive_int(_PG_PORT_ENV, 5432),
        pg_database=_read_optional_env(_PG_DATABASE_ENV),
        pg_user=_read_optional_env(_PG_USER_ENV),
        pg_password=_read_optional_env(_PG_PASSWORD_ENV),
        connect_timeout=_read_positive_int(_CONNECT_TIMEOUT_ENV, 10),
        statement_timeout_ms=_read_positive_int(_STATEMENT_TIMEOUT_ENV, 15000),
        request_deadline=_read_positive_float(_DEADLINE_ENV, 30.0),
        reading_window_hours=_read_positive_int(_WINDOW_HOURS_ENV, 24),
        reading_limit=_read_positive_int(_READING_LIMIT_ENV, 100),
        max_page_size=_read_positive_int(_MAX_PAGE_SIZE_ENV, 500),
        expose_query_text=_read_flag(_EXPOSE_QUERY_ENV, False),
        log_level=_read_log_level("INFO"),
    )
