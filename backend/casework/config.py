"""
Casework configuration parsing and validation.

Intent:
    Provide a single place to read the environment variables that select the
    store adapter (DI), its endpoint/DSN and timeout, and the dashboard poll
    interval.

Why:
    Centralising configuration keeps validation and defaults explicit and lets
    tests exercise config behaviour without booting the web app.
"""
from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Optional
from urllib.parse import urlparse

from backend.casework.errors import ConfigError

STORE_BACKENDS = ("memory", "http", "db")


@dataclass(frozen=True)
class CaseworkConfig:
    store: str  # "memory" | "http" | "db"
    api_base_url: Optional[str]
    http_timeout_seconds: int
    database_url: Optional[str]
    poll_seconds: int
    environment: str


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError("invalid_config", f"{name} must be an integer, got: {raw!r}")
    if value <= 0 or value > 300:
        raise ConfigError("invalid_config", f"{name} out of range (1..300), got: {value}")
    return value


def _validate_base_url(url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise ConfigError("invalid_config", "CASEWORK_API_BASE_URL must start with http:// or https://")


def _environment() -> str:
    return (os.getenv("CASEWORK_ENV") or os.getenv("GUSTAV_ENV") or "dev").strip().lower()


def is_prod_like(environment: Optional[str] = None) -> bool:
    env = environment if environment is not None else _environment()
    return env in {"prod", "production", "stage", "staging"}


def load_casework_config() -> CaseworkConfig:
    """
    Parse and validate casework configuration from environment variables.

    Behavior:
        - `CASEWORK_STORE` selects the adapter: "memory", "http" or "db"
          (default: memory). Memory is rejected in production/staging.
        - `http` requires `CASEWORK_API_BASE_URL`; `db` requires
          `CASEWORK_DATABASE_URL` (or `DATABASE_URL`).
        - Validates timeouts and poll interval (1..300 seconds).

    Raises:
        ConfigError: on any invalid or missing value.
    """
    environment = _environment()
    store = (os.getenv("CASEWORK_STORE") or "memory").strip().lower()
    if store not in STORE_BACKENDS:
        raise ConfigError("invalid_config", "CASEWORK_STORE must be 'memory', 'http' or 'db'")
    if store == "memory" and is_prod_like(environment):
        raise ConfigError("invalid_config", "CASEWORK_STORE=memory is not allowed in production/staging environments.")

    base_url = (os.getenv("CASEWORK_API_BASE_URL") or "").strip() or None
    if base_url is not None:
        _validate_base_url(base_url)
    elif store == "http":
        raise ConfigError("invalid_config", "CASEWORK_API_BASE_URL is required for CASEWORK_STORE=http")

    database_url = (os.getenv("CASEWORK_DATABASE_URL") or os.getenv("DATABASE_URL") or "").strip() or None
    if store == "db" and database_url is None:
        raise ConfigError("invalid_config", "CASEWORK_DATABASE_URL is required for CASEWORK_STORE=db")

    return CaseworkConfig(
        store=store,
        api_base_url=base_url,
        http_timeout_seconds=_int_env("CASEWORK_HTTP_TIMEOUT", 10),
        database_url=database_url,
        poll_seconds=_int_env("CASEWORK_POLL_SECONDS", 30),
        environment=environment,
    )


__all__ = ["CaseworkConfig", "STORE_BACKENDS", "is_prod_like", "load_casework_config"]
