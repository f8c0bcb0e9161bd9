from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the monitoring API."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def get_sensor_data(
        self, grupo_id: Optional[int] = None, window_hours: Optional[int] = None
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if grupo_id is not None:
            params["grupo_id"] = grupo_id
        if window_hours is not None:
            params["window_hours"] = window_hours
        return self._get("/sensor-data", params)

    def get_raw_data(
        self,
        table_name: str,
        page: int = 1,
        page_size: Optional[int] = None,
        filter_text: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "tableName": table_name,
            "page": page,
            "pageSize": page_size or self._config.page_size,
        }
        if filter_text:
            params["filter"] = filter_text
        if sort_by:
            params["sortBy"] = sort_by
        if sort_order:
            params["sortOrder"] = sort_order
        return self._get("/raw-data", params)

    def get_grupos(self) -> Dict[str, Any]:
        return self._get("/grupos")

    def check_database(self) -> Dict[str, Any]:
        return self._get("/db-health")

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = self._client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1)
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: Any = None
        try:
            detail = exc.response.json().get("detail")
        except (ValueError, AttributeError):
            detail = exc.response.text.strip()
        if isinstance(detail, dict):
            parts = [str(detail.get("error") or "request failed")]
            if detail.get("details"):
                parts.append(str(detail["details"]))
            if detail.get("allowedTables"):
                parts.append(f"allowed tables: {', '.join(detail['allowedTables'])}")
            detail = " - ".join(parts)
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
