from __future__ import annotations

from datetime import date
from typing import Any, Dict, Iterable, NoReturn, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the restaurant service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def get_dashboard(self, restaurant_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/restaurants/{restaurant_id}/dashboard")

    def get_next_alert(
        self,
        restaurant_id: str,
        resolved: Iterable[str] = (),
        category: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"resolved": list(resolved)}
        if category:
            params["category"] = category
        return self._request("GET", f"/restaurants/{restaurant_id}/alerts/next", params=params)

    def get_availability(self, slug: str, on: Optional[date] = None) -> Dict[str, Any]:
        params = {"date": on.isoformat()} if on else None
        return self._request("GET", f"/book/{slug}/availability", params=params)

    def create_reservation(self, slug: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", f"/book/{slug}/reservations", json=payload)

    def change_status(
        self, restaurant_id: str, reservation_id: str, status: str
    ) -> Dict[str, Any]:
        return self._request(
            "PATCH",
            f"/restaurants/{restaurant_id}/reservations/{reservation_id}/status",
            json={"status": status},
        )

    def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}", fg=typer.colors.RED, err=True
            )
            raise typer.Exit(code=1) from exc
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> NoReturn:
        detail: Any = None
        try:
            data = exc.response.json()
        except ValueError:
            detail = exc.response.text.strip()
        else:
            detail = data.get("detail") if isinstance(data, dict) else data
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
