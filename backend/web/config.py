"""
Configuration and startup security checks for the casework service.

Why: Rosters and evaluations are student data. This module provides a single
guard that enforces minimal production safety constraints without burdening
local development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os
from urllib.parse import urlparse


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Intent: Abort process startup when obviously insecure settings are detected
    in production/staging. Development remains permissive for convenience.

    Checks:
    - The in-memory store must not serve production traffic.
    - DATABASE_URL / CASEWORK_DATABASE_URL must not explicitly disable TLS.
    - The REST backend must be reached over https.
    """

    env = os.getenv("CASEWORK_ENV") or os.getenv("GUSTAV_ENV") or "dev"
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    # 1) No in-memory store in production
    store = (os.getenv("CASEWORK_STORE") or "memory").strip().lower()
    if store == "memory":
        raise SystemExit(
            "Refusing to start: CASEWORK_STORE=memory in production. Configure the http or db store."
        )

    # 2) Postgres TLS: basic guard to avoid explicit disable
    for key in ("CASEWORK_DATABASE_URL", "DATABASE_URL"):
        dsn = os.getenv(key, "")
        if "sslmode=disable" in dsn:
            raise SystemExit(
                f"Refusing to start: {key} contains sslmode=disable in production. Use sslmode=require or verify TLS."
            )

    # 3) REST backend must use TLS
    base_url = (os.getenv("CASEWORK_API_BASE_URL") or "").strip()
    if store == "http" and urlparse(base_url).scheme != "https":
        raise SystemExit("Refusing to start: CASEWORK_API_BASE_URL must use https in production.")
