"""
HTTP-backed casework store.

Why:
    The instructor panel's REST backend already exposes every table as a
    `{data, error}` resource (`GET /api/<table>?col=value`, `POST`, `PATCH`,
    `DELETE`). This adapter speaks that protocol so the engine can run next
    to the existing backend without a direct database connection.

Behavior:
    - Equality predicates travel as query parameters; composite keys as path
      segments for `get`.
    - A 404 on `get` means the key is absent (`data=None`), even when the
      backend attaches an error envelope.
    - Transport errors, non-2xx responses and malformed envelopes are
      reported as `StoreResult(error=...)`; nothing is raised and nothing is
      retried.

Security:
    The bearer token is sent as an Authorization header and never logged.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional
from urllib.parse import quote

import httpx

from backend.casework.ports import TABLE_KEYS, StoreResult

logger = logging.getLogger("casework.store.http")


def _param(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class HttpStore:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        token: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._token = token
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json_body: Optional[Mapping[str, Any]] = None,
        absent_on_404: bool = False,
    ) -> StoreResult:
        query = {k: _param(v) for k, v in (params or {}).items()}
        try:
            with httpx.Client(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=False,
            ) as client:
                resp = client.request(method, path, params=query or None, json=json_body, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.warning("Store request failed: %s %s (%s)", method, path, exc.__class__.__name__)
            return StoreResult(error=f"transport_error: {exc.__class__.__name__}")
        if absent_on_404 and resp.status_code == 404:
            # The backend answers unknown keys with 404 plus an error envelope.
            return StoreResult(data=None)
        try:
            envelope = resp.json()
        except ValueError:
            envelope = None
        if not isinstance(envelope, dict):
            if resp.status_code >= 400:
                return StoreResult(error=f"http_{resp.status_code}")
            return StoreResult(error="malformed_response")
        error = envelope.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            return StoreResult(error=message or f"http_{resp.status_code}")
        if resp.status_code >= 400:
            return StoreResult(error=f"http_{resp.status_code}")
        return StoreResult(data=envelope.get("data"))

    def select(self, table: str, *, eq: Optional[Mapping[str, Any]] = None) -> StoreResult:
        result = self._request("GET", f"/{table}", params=eq)
        if result.ok and result.data is None:
            return StoreResult(data=[])
        return result

    def get(self, table: str, key: Mapping[str, Any]) -> StoreResult:
        parts = [quote(_param(key.get(col)), safe="") for col in TABLE_KEYS[table]]
        return self._request("GET", f"/{table}/" + "/".join(parts), absent_on_404=True)

    def insert(self, table: str, row: Mapping[str, Any]) -> StoreResult:
        return self._request("POST", f"/{table}", json_body=dict(row))

    def update(self, table: str, *, eq: Mapping[str, Any], values: Mapping[str, Any]) -> StoreResult:
        result = self._request("PATCH", f"/{table}", params=eq, json_body=dict(values))
        if result.ok and result.data is None:
            return StoreResult(data=[])
        return result

    def delete(self, table: str, *, eq: Mapping[str, Any]) -> StoreResult:
        result = self._request("DELETE", f"/{table}", params=eq)
        if not result.ok:
            return result
        data = result.data
        if isinstance(data, dict):
            data = data.get("deleted", 0)
        if isinstance(data, bool):
            data = int(data)
        return StoreResult(data=int(data or 0))


__all__ = ["HttpStore"]
