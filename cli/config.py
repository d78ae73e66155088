"""Connection settings for the kitchen CLI.

Explicit command-line options win over environment variables, which win
over the defaults below.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_REFRESH_INTERVAL = 15.0
DEFAULT_TIMEOUT = 30.0

ENV_BASE_URL = "API_BASE_URL"
ENV_REFRESH_INTERVAL = "CLI_REFRESH_INTERVAL"
ENV_TIMEOUT = "CLI_TIMEOUT"


@dataclass(frozen=True)
class CLIConfig:
    base_url: str = DEFAULT_BASE_URL
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        parts = urlsplit(self.base_url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"API base URL must be an http(s) URL, got {self.base_url!r}.")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        if self.refresh_interval <= 0:
            raise ValueError("Refresh interval must be a positive number of seconds.")
        if self.timeout <= 0:
            raise ValueError("Timeout must be a positive number of seconds.")


def _seconds_from_env(name: str, default: float) -> float:
    # Unset, blank, non-numeric or non-positive values all mean "use the default".
    try:
        seconds = float(os.environ[name])
    except (KeyError, ValueError):
        return default
    return seconds if seconds > 0 else default


def load_config(
    base_url: Optional[str] = None,
    refresh_interval: Optional[float] = None,
    timeout: Optional[float] = None,
) -> CLIConfig:
    env_url = os.environ.get(ENV_BASE_URL, "").strip()
    return CLIConfig(
        base_url=base_url or env_url or DEFAULT_BASE_URL,
        refresh_interval=(
            refresh_interval
            if refresh_interval is not None
            else _seconds_from_env(ENV_REFRESH_INTERVAL, DEFAULT_REFRESH_INTERVAL)
        ),
        timeout=timeout if timeout is not None else _seconds_from_env(ENV_TIMEOUT, DEFAULT_TIMEOUT),
    )
