from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import pytest
import typer
from typer.testing import CliRunner

from cli.app import app
from cli.client import ApiClient
from cli.config import CLIConfig


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.calls: List[tuple[str, Dict[str, Any]]] = []
        self.connection_payload: Dict[str, Any] = {
            "success": True,
            "message": "Connection established",
            "details": {
                "host": "db.example",
                "port": 5432,
                "database": "iot",
                "user": "reader",
                "connection_time": 12,
                "server_version": "PostgreSQL 16.2",
                "tables_found": ["grupo", "informacoes", "sensor"],
                "missing_tables": [],
            },
        }
        self.closed = False

    def get_sensor_data(
        self, grupo_id: Optional[int] = None, window_hours: Optional[int] = None
    ) -> Dict[str, Any]:
        self.calls.append(("sensor-data", {"grupo_id": grupo_id, "window_hours": window_hours}))
        return {
            "success": True,
            "data": {
                "total_readings": 3,
                "skipped_rows": 0,
                "last_updated": "2024-01-01T00:00:00Z",
                "metrics": {
                    "temperature": {
                        "current": 22.5,
                        "average": 22.0,
                        "min": 21.5,
                        "max": 22.5,
                        "readings": [{}, {}],
                        "sensor_key": "Temperatura_1",
                    }
                },
                "unclassified": ["Luminosidade_1"],
                "conflicts": [],
            },
        }

    def get_raw_data(self, table_name: str, **params: Any) -> Dict[str, Any]:
        self.calls.append(("raw-data", {"table_name": table_name, **params}))
        return {
            "success": True,
            "data": [{"id": 1, "nome": "Aviário 1"}],
            "meta": {
                "totalRows": 1,
                "totalPages": 1,
                "currentPage": 1,
                "pageSize": 10,
                "tableName": table_name,
                "filter": params.get("filter_text") or "",
                "sortBy": params.get("sort_by"),
                "sortOrder": "ASC",
            },
        }

    def get_grupos(self) -> Dict[str, Any]:
        self.calls.append(("grupos", {}))
        return {
            "success": True,
            "data": {
                "grupos": [{"id": 1, "nome": "Aviário 1", "localizacao": "Norte"}],
                "total": 1,
            },
        }

    def check_database(self) -> Dict[str, Any]:
        self.calls.append(("db-health", {}))
        return self.connection_payload

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _install_stub(monkeypatch, stub: StubClient) -> None:
    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)


def test_metrics_command(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["metrics", "--grupo", "1", "--window-hours", "6"])

    assert result.exit_code == 0
    assert "Sensor Metrics" in result.stdout
    assert "current=22.50" in result.stdout
    assert "source=Temperatura_1" in result.stdout
    assert "Luminosidade_1" in result.stdout
    assert stub.calls == [("sensor-data", {"grupo_id": 1, "window_hours": 6})]
    assert stub.closed is True


def test_raw_command_passes_options(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(
        app,
        ["raw", "grupo", "--page", "2", "--filter", "Avi", "--sort-by", "nome", "--sort-order", "desc"],
    )

    assert result.exit_code == 0
    assert "Table grupo" in result.stdout
    assert "id | nome" in result.stdout
    _, params = stub.calls[0]
    assert params == {
        "table_name": "grupo",
        "page": 2,
        "page_size": None,
        "filter_text": "Avi",
        "sort_by": "nome",
        "sort_order": "desc",
    }


def test_grupos_command(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["--base-url", "http://api.test", "grupos"])

    assert result.exit_code == 0
    assert "Locations (1)" in result.stdout
    assert "1: Aviário 1 (Norte)" in result.stdout
    assert stub.config.base_url == "http://api.test"


def test_check_db_reports_missing_tables(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    stub.connection_payload["details"]["missing_tables"] = ["sensor"]
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["check-db"])

    assert result.exit_code == 0
    assert "Database Connection" in result.stdout
    assert "missing_tables: sensor" in result.stdout


def test_check_db_exits_non_zero_on_failure(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    stub.connection_payload = {"success": False, "message": "Connection failed", "details": {}}
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["check-db"])

    assert result.exit_code == 1
    assert stub.closed is True


def _client_with(handler) -> ApiClient:
    client = ApiClient(CLIConfig(base_url="http://api.test", timeout=1.0, page_size=25))
    client._client.close()
    client._client = httpx.Client(base_url="http://api.test", transport=httpx.MockTransport(handler))
    return client


def test_client_sends_camel_case_raw_params() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "data": [], "meta": {}})

    client = _client_with(handler)
    client.get_raw_data("sensor", filter_text="abc", sort_by="tipo")

    params = seen[0].url.params
    assert seen[0].url.path == "/raw-data"
    assert params["tableName"] == "sensor"
    assert params["pageSize"] == "25"
    assert params["filter"] == "abc"
    assert params["sortBy"] == "tipo"
    assert "sortOrder" not in params


def test_client_surfaces_api_error_detail(capsys) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={
                "detail": {
                    "error": "Invalid or missing table name",
                    "allowedTables": ["informacoes", "sensor", "grupo"],
                }
            },
        )

    client = _client_with(handler)

    with pytest.raises(typer.Exit):
        client.get_raw_data("users")

    captured = capsys.readouterr()
    assert "status 400" in captured.err
    assert "allowed tables: informacoes, sensor, grupo" in captured.err
