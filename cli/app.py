from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_connection, render_grupos, render_page, render_sensor_data


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for querying the agro monitoring API.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("metrics")
def metrics_command(
    ctx: typer.Context,
    grupo: Optional[int] = typer.Option(None, "--grupo", "-g", help="Location id to restrict to."),
    window_hours: Optional[int] = typer.Option(
        None, "--window-hours", min=1, help="Hours of readings to aggregate."
    ),
) -> None:
    """Show current/average/min/max per sensor category."""
    state = _get_state(ctx)
    payload = state.client.get_sensor_data(grupo_id=grupo, window_hours=window_hours)
    render_sensor_data(payload)


@app.command("raw")
def raw_command(
    ctx: typer.Context,
    table: str = typer.Argument(..., help="One of informacoes, sensor, grupo."),
    page: int = typer.Option(1, "--page", "-p", min=1),
    page_size: Optional[int] = typer.Option(None, "--page-size", min=1),
    filter_text: Optional[str] = typer.Option(None, "--filter", "-f", help="Text matched in any column."),
    sort_by: Optional[str] = typer.Option(None, "--sort-by"),
    sort_order: Optional[str] = typer.Option(None, "--sort-order", help="ASC or DESC."),
) -> None:
    """Browse a table page by page."""
    state = _get_state(ctx)
    payload = state.client.get_raw_data(
        table,
        page=page,
        page_size=page_size,
        filter_text=filter_text,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    render_page(payload)


@app.command("grupos")
def grupos_command(ctx: typer.Context) -> None:
    """List the available locations."""
    state = _get_state(ctx)
    render_grupos(state.client.get_grupos())


@app.command("check-db")
def check_db_command(ctx: typer.Context) -> None:
    """Check that the API can reach its database."""
    state = _get_state(ctx)
    payload = state.client.check_database()
    render_connection(payload)
    if not payload.get("success", False):
        raise typer.Exit(code=1)
