from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import (
    render_availability,
    render_dashboard,
    render_next_alert,
    render_reservation,
)
from services.ticker import RefreshTicker


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for the kitchen dashboard and the reservation service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


def _parse_date(value: Optional[str], param: str) -> Optional[date]:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise typer.BadParameter(f"Expected YYYY-MM-DD, got {value!r}.", param_hint=param) from exc


def _without_timestamp(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in payload.items() if key != "generated_at"}


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    refresh_interval: Optional[float] = typer.Option(
        None,
        "--refresh-interval",
        help="Seconds between dashboard refreshes in watch mode.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    try:
        config = load_config(
            base_url=base_url,
            refresh_interval=refresh_interval,
            timeout=timeout,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("dashboard")
def dashboard_command(
    ctx: typer.Context,
    restaurant_id: str = typer.Argument(..., help="Restaurant whose dashboard to show."),
    watch: bool = typer.Option(
        False,
        "--watch/--no-watch",
        help="Keep refreshing and print the dashboard whenever it changes.",
    ),
    duration: Optional[float] = typer.Option(
        None,
        "--duration",
        help="Stop watching after this many seconds (default: until interrupted).",
    ),
) -> None:
    """Show HACCP statistics and open alerts."""
    state = _get_state(ctx)
    payload = state.client.get_dashboard(restaurant_id)
    render_dashboard(payload)
    if not watch:
        return

    last = {"state": _without_timestamp(payload)}

    def apply(fresh: Dict[str, Any]) -> None:
        current = _without_timestamp(fresh)
        if current == last["state"]:
            return
        last["state"] = current
        typer.echo()
        render_dashboard(fresh)

    ticker: RefreshTicker[Dict[str, Any]] = RefreshTicker(
        interval=state.config.refresh_interval,
        refresh=lambda: state.client.get_dashboard(restaurant_id),
        apply=apply,
        name=f"cli-dashboard-{restaurant_id}",
    )
    typer.echo(f"Watching (every {state.config.refresh_interval}s), Ctrl+C to stop.")
    with ticker:
        try:
            threading.Event().wait(duration)
        except KeyboardInterrupt:
            typer.echo("Stopped.")


@app.command("next-alert")
def next_alert_command(
    ctx: typer.Context,
    restaurant_id: str = typer.Argument(..., help="Restaurant to walk through."),
    resolved: Optional[List[str]] = typer.Option(
        None,
        "--resolved",
        "-r",
        help="Alert key already handled; repeat for several.",
    ),
    category: Optional[str] = typer.Option(
        None,
        "--category",
        help="Only walk alerts of this category (temperature, cleaning or dlc).",
    ),
) -> None:
    """Show the next alert to handle in the guided walk-through."""
    state = _get_state(ctx)
    payload = state.client.get_next_alert(restaurant_id, resolved or [], category)
    render_next_alert(payload)


@app.command("availability")
def availability_command(
    ctx: typer.Context,
    slug: str = typer.Argument(..., help="Public booking page slug."),
    on: Optional[str] = typer.Option(None, "--date", "-d", help="Date as YYYY-MM-DD (default today)."),
) -> None:
    """List services and bookable time slots for a date."""
    state = _get_state(ctx)
    payload = state.client.get_availability(slug, _parse_date(on, "--date"))
    render_availability(payload)


@app.command("book")
def book_command(
    ctx: typer.Context,
    slug: str = typer.Argument(..., help="Public booking page slug."),
    service_id: str = typer.Option(..., "--service", help="Service identifier."),
    on: str = typer.Option(..., "--date", "-d", help="Date as YYYY-MM-DD."),
    at: str = typer.Option(..., "--time", "-t", help="Time slot as HH:MM."),
    party_size: int = typer.Option(..., "--party-size", "-p", min=1, help="Number of guests."),
    name: str = typer.Option(..., "--name", help="Customer name."),
    email: str = typer.Option(..., "--email", help="Customer e-mail address."),
    phone: Optional[str] = typer.Option(None, "--phone", help="Customer phone number."),
    notes: Optional[str] = typer.Option(None, "--notes", help="Free-text request."),
) -> None:
    """Request a reservation through the public booking endpoint."""
    state = _get_state(ctx)
    reservation_date = _parse_date(on, "--date")
    payload = state.client.create_reservation(
        slug,
        {
            "service_id": service_id,
            "reservation_date": reservation_date.isoformat(),
            "reservation_time": at,
            "party_size": party_size,
            "customer_name": name,
            "customer_email": email,
            "customer_phone": phone,
            "notes": notes,
        },
    )
    typer.secho("Reservation requested.", fg=typer.colors.GREEN)
    render_reservation(payload)


@app.command("status")
def status_command(
    ctx: typer.Context,
    restaurant_id: str = typer.Argument(..., help="Restaurant owning the reservation."),
    reservation_id: str = typer.Argument(..., help="Reservation identifier."),
    new_status: str = typer.Argument(
        ..., help="confirmed, cancelled, completed or no_show."
    ),
) -> None:
    """Move a reservation to a new status."""
    state = _get_state(ctx)
    payload = state.client.change_status(restaurant_id, reservation_id, new_status)
    render_reservation(payload)
