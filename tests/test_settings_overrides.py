from __future__ import annotations

from typing import Iterable

from datastore.postgres import build_default_source
from services.raw_data import build_default_raw_data_service
from services.sensor_data import build_default_sensor_data_service
from settings import get_settings


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


_CACHES = (
    get_settings,
    build_default_source,
    build_default_raw_data_service,
    build_default_sensor_data_service,
)


def test_environment_overrides_apply(monkeypatch) -> None:
    monkeypatch.setenv("PGHOST", "db.internal")
    monkeypatch.setenv("PGPORT", "6543")
    monkeypatch.setenv("PGDB", "iot")
    monkeypatch.setenv("PGUSER", "dashboard")
    monkeypatch.setenv("PGPASSWORD", "secret")
    monkeypatch.setenv("READING_WINDOW_HOURS", "6")
    monkeypatch.setenv("READING_LIMIT", "250")
    monkeypatch.setenv("MAX_PAGE_SIZE", "50")
    monkeypatch.setenv("EXPOSE_QUERY_TEXT", "yes")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    _clear_caches(_CACHES)

    try:
        settings = get_settings()
        source = build_default_source()
        raw_data = build_default_raw_data_service()
        sensor_data = build_default_sensor_data_service()

        assert settings.pg_host == "db.internal"
        assert settings.pg_port == 6543
        assert settings.expose_query_text is True
        assert settings.log_level == "DEBUG"
        assert settings.missing_connection_parameters() == []
        assert source.settings is settings
        assert raw_data.max_page_size == 50
        assert raw_data.source is source
        assert sensor_data.window_hours == 6
        assert sensor_data.reading_limit == 250
    finally:
        _clear_caches(_CACHES)


def test_invalid_numbers_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("PGPORT", "not-a-port")
    monkeypatch.setenv("REQUEST_DEADLINE_SECONDS", "-3")
    monkeypatch.setenv("MAX_PAGE_SIZE", "  ")
    get_settings.cache_clear()

    try:
        settings = get_settings()
        assert settings.pg_port == 5432
        assert settings.request_deadline == 30.0
        assert settings.max_page_size == 500
    finally:
        get_settings.cache_clear()


def test_missing_connection_parameters_are_listed_by_name(monkeypatch) -> None:
    for name in ("PGHOST", "PGDB", "PGUSER", "PGPASSWORD"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PGDB", "iot")
    monkeypatch.setenv("PGUSER", "   ")
    get_settings.cache_clear()

    try:
        assert get_settings().missing_connection_parameters() == ["PGHOST", "PGUSER", "PGPASSWORD"]
    finally:
        get_settings.cache_clear()
