from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer

CATEGORY_ORDER = ("temperature", "humidity", "water", "energy", "feed", "weight")


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _fmt(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def render_sensor_data(payload: Dict[str, Any]) -> None:
    data = payload.get("data") or {}
    echo_heading("Sensor Metrics")
    echo_key_values(
        [
            ("total_readings", data.get("total_readings")),
            ("skipped_rows", data.get("skipped_rows")),
            ("last_updated", data.get("last_updated")),
        ]
    )

    metrics = data.get("metrics") or {}
    typer.echo()
    for category in CATEGORY_ORDER:
        metric = metrics.get(category) or {}
        source = metric.get("sensor_key") or "-"
        typer.echo(
            f"  {category:<12} current={_fmt(metric.get('current', 0.0))} "
            f"avg={_fmt(metric.get('average', 0.0))} "
            f"min={_fmt(metric.get('min', 0.0))} "
            f"max={_fmt(metric.get('max', 0.0))} "
            f"readings={len(metric.get('readings') or [])} source={source}"
        )

    unclassified: List[str] = data.get("unclassified") or []
    if unclassified:
        typer.echo()
        echo_heading("Unclassified sensors")
        for key in unclassified:
            typer.echo(f"  - {key}")

    conflicts = data.get("conflicts") or []
    if conflicts:
        typer.echo()
        echo_heading("Category conflicts")
        for conflict in conflicts:
            typer.echo(
                f"  - {conflict.get('category')}: kept {conflict.get('kept')}, "
                f"discarded {', '.join(conflict.get('discarded') or [])}"
            )


def render_page(payload: Dict[str, Any]) -> None:
    meta = payload.get("meta") or {}
    rows = payload.get("data") or []
    echo_heading(f"Table {meta.get('tableName')}")
    echo_key_values(
        [
            ("page", f"{meta.get('currentPage')}/{meta.get('totalPages')}"),
            ("total_rows", meta.get("totalRows")),
            ("filter", meta.get("filter") or "-"),
            ("sort", f"{meta.get('sortBy') or '-'} {meta.get('sortOrder')}"),
        ]
    )
    typer.echo()
    if not rows:
        typer.echo("No rows.")
        return
    columns = list(rows[0].keys())
    typer.echo(" | ".join(columns))
    for row in rows:
        typer.echo(" | ".join(_fmt(row.get(column)) for column in columns))


def render_grupos(payload: Dict[str, Any]) -> None:
    data = payload.get("data") or {}
    grupos = data.get("grupos") or []
    echo_heading(f"Locations ({data.get('total', len(grupos))})")
    if not grupos:
        typer.echo("No locations found.")
        return
    for grupo in grupos:
        location = grupo.get("localizacao") or "-"
        typer.echo(f"  {grupo.get('id')}: {grupo.get('nome')} ({location})")


def render_connection(payload: Dict[str, Any]) -> None:
    details = payload.get("details") or {}
    echo_heading("Database Connection")
    typer.echo(payload.get("message", ""))
    echo_key_values(
        [
            ("host", details.get("host")),
            ("port", details.get("port")),
            ("database", details.get("database")),
            ("user", details.get("user")),
            ("connection_time_ms", details.get("connection_time")),
            ("tables_found", ", ".join(details.get("tables_found") or []) or "-"),
        ]
    )
    missing = details.get("missing_tables") or []
    if missing:
        typer.secho(f"missing_tables: {', '.join(missing)}", fg=typer.colors.YELLOW)
