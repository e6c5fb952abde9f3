"""
Store wiring: turn a `CaseworkConfig` into a concrete store adapter.

Behavior:
    - memory: an empty `InMemoryStore`.
    - http: `HttpStore` against the configured base URL.
    - db: `DBStore`; when psycopg is missing or the DSN is rejected outside
      production, log a warning and fall back to memory. In production the
      error propagates so a misconfigured deployment fails loudly.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

from backend.casework.config import CaseworkConfig, is_prod_like, load_casework_config
from backend.casework.ports import CaseworkStoreProtocol
from backend.casework.store_memory import InMemoryStore

logger = logging.getLogger("casework.wiring")


def build_store(config: Optional[CaseworkConfig] = None) -> CaseworkStoreProtocol:
    cfg = config or load_casework_config()
    if cfg.store == "http":
        from backend.casework.store_http import HttpStore

        logger.info("Casework store: http (%s)", cfg.api_base_url)
        return HttpStore(
            cfg.api_base_url or "",
            timeout=float(cfg.http_timeout_seconds),
            token=os.getenv("CASEWORK_API_TOKEN") or None,
        )
    if cfg.store == "db":
        from backend.casework.store_db import DBStore

        try:
            store = DBStore(cfg.database_url or "")
        except Exception as exc:
            if is_prod_like(cfg.environment):
                raise
            logger.warning("Casework DB store unavailable (%s); using in-memory fallback", exc)
            return InMemoryStore()
        logger.info("Casework store: db")
        return store
    logger.info("Casework store: memory")
    return InMemoryStore()


__all__ = ["build_store"]
