from __future__ import annotations

from typing import Any, Dict, Iterable

import typer

_SEVERITY_COLORS = {
    "critical": typer.colors.RED,
    "warning": typer.colors.YELLOW,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def echo_alert(alert: Dict[str, Any]) -> None:
    color = _SEVERITY_COLORS.get(str(alert.get("severity")))
    typer.secho(f"  - [{alert.get('severity')}] {alert.get('title')}", fg=color)
    typer.echo(f"    {alert.get('message')}")


def render_dashboard(payload: Dict[str, Any]) -> None:
    echo_heading(f"Dashboard {payload.get('restaurant_id')}")
    stats = payload.get("stats") or {}
    echo_key_values(
        [
            ("generated_at", payload.get("generated_at")),
            ("temperature_conformity", f"{stats.get('temperature_conformity')}%"),
            (
                "temperature_readings",
                f"{stats.get('temperature_conforming')}/{stats.get('temperature_total')}",
            ),
            ("cleaning_pending", f"{stats.get('cleaning_pending')}/{stats.get('cleaning_total')}"),
            ("dlc_expired", stats.get("dlc_expired")),
            ("dlc_critical", stats.get("dlc_critical")),
            ("dlc_warning", stats.get("dlc_warning")),
            ("reception_today", stats.get("reception_today", 0)),
        ]
    )

    alerts = payload.get("alerts") or {}
    for category in ("temperature", "cleaning", "dlc"):
        typer.echo()
        echo_heading(f"Alerts: {category}")
        entries = alerts.get(category) or []
        if entries:
            for alert in entries:
                echo_alert(alert)
        else:
            typer.echo("  none")

    activity = payload.get("activity") or []
    if activity:
        typer.echo()
        echo_heading("Recent activity")
        for item in activity:
            mark = "OK" if item.get("status") == "ok" else "WARN"
            detail = f" ({item.get('detail')})" if item.get("detail") else ""
            typer.echo(f"  {mark:<4} {item.get('label')}{detail}")


def render_next_alert(payload: Dict[str, Any]) -> None:
    alert = payload.get("alert")
    if not alert:
        typer.secho("All alerts handled.", fg=typer.colors.GREEN)
        return
    echo_heading(f"Next alert ({payload.get('remaining')} open)")
    echo_key_values([("key", alert.get("key")), ("category", alert.get("category"))])
    echo_alert(alert)


def render_availability(payload: Dict[str, Any]) -> None:
    echo_heading(f"Availability for {payload.get('day')}")
    services = payload.get("services") or []
    if not services:
        typer.echo("No services on this date.")
        return
    for service in services:
        typer.echo(
            f"{service.get('name')} ({service.get('start_time')}-{service.get('end_time')}) "
            f"[{service.get('status')}] id={service.get('service_id')}"
        )
        covers = service.get("remaining_covers")
        if covers is not None:
            typer.echo(f"  covers left: {covers}")
        slots = service.get("slots") or []
        typer.echo(f"  slots: {', '.join(slots) if slots else 'none'}")


def render_reservation(payload: Dict[str, Any]) -> None:
    echo_heading("Reservation")
    echo_key_values(
        [
            ("id", payload.get("id")),
            ("status", payload.get("status")),
            ("date", payload.get("reservation_date")),
            ("time", payload.get("reservation_time")),
            ("party_size", payload.get("party_size")),
            ("customer_name", payload.get("customer_name")),
            ("table_id", payload.get("table_id")),
        ]
    )
