"""
Postgres-backed casework store.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- Table and column names are composed with `psycopg.sql.Identifier` and only
  accepted when the table is one of the known casework tables.
- Returns plain dicts (via `dict_row`) so the engine stays independent of an ORM.

Errors:
    Database exceptions are caught at the adapter boundary and reported as
    `StoreResult(error=...)` with secrets scrubbed and the message truncated.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Optional

try:  # pragma: no cover -- optional dependency in some environments
    import psycopg
    from psycopg import sql
    from psycopg.rows import dict_row
    from psycopg.types.json import Json

    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover
    psycopg = None  # type: ignore
    sql = None  # type: ignore
    dict_row = None  # type: ignore
    Json = None  # type: ignore
    HAVE_PSYCOPG = False

from backend.casework.ports import JSON_COLUMNS, TABLE_KEYS, StoreResult

logger = logging.getLogger("casework.store.db")

_ERROR_MAX_LENGTH = 256
_SENSITIVE_TOKEN_PATTERN = re.compile(r"(?i)(secret|token|password|key)[-_a-z0-9]*\s*=\s*\S+")
_DSN_PASSWORD_PATTERN = re.compile(r"(://[^:/@\s]+:)[^@\s]+@")
_COLUMN_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")


def _sanitize_error_message(value: Optional[str]) -> Optional[str]:
    """Strip secrets and truncate lengthy adapter errors for safe exposure."""
    if not value:
        return None
    collapsed = " ".join(str(value).split())
    if not collapsed:
        return None
    scrubbed = _DSN_PASSWORD_PATTERN.sub(r"\1[redacted]@", collapsed)
    scrubbed = _SENSITIVE_TOKEN_PATTERN.sub("[redacted]", scrubbed)
    if len(scrubbed) > _ERROR_MAX_LENGTH:
        scrubbed = scrubbed[: _ERROR_MAX_LENGTH - 3].rstrip() + "..."
    return scrubbed


def _adapt(column: str, value: Any) -> Any:
    if column in JSON_COLUMNS and value is not None and not isinstance(value, str):
        return Json(value)
    return value


class DBStore:
    def __init__(self, dsn: str) -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBStore")
        if not dsn:
            raise RuntimeError("DBStore requires a DSN")
        self._dsn = dsn

    @staticmethod
    def _check(table: str, columns) -> Optional[str]:
        if table not in TABLE_KEYS:
            return f"unknown table {table}"
        for col in columns:
            if not _COLUMN_PATTERN.match(col):
                return f"invalid column {col!r}"
        return None

    @staticmethod
    def _where(eq: Optional[Mapping[str, Any]]):
        if not eq:
            return sql.SQL(""), []
        parts = []
        params: list[Any] = []
        for col, value in eq.items():
            if value is None:
                parts.append(sql.SQL("{} is null").format(sql.Identifier(col)))
            else:
                parts.append(sql.SQL("{} = %s").format(sql.Identifier(col)))
                params.append(value)
        return sql.SQL(" where ") + sql.SQL(" and ").join(parts), params

    def _run(self, query, params, *, fetch: str) -> StoreResult:
        try:
            with psycopg.connect(self._dsn, row_factory=dict_row) as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    if fetch == "all":
                        data: Any = [dict(r) for r in cur.fetchall()]
                    elif fetch == "one":
                        row = cur.fetchone()
                        data = dict(row) if row is not None else None
                    else:
                        data = cur.rowcount
                conn.commit()
        except Exception as exc:
            message = _sanitize_error_message(str(exc)) or exc.__class__.__name__
            logger.warning("Store query failed: %s", message)
            return StoreResult(error=message)
        return StoreResult(data=data)

    def select(self, table: str, *, eq: Optional[Mapping[str, Any]] = None) -> StoreResult:
        problem = self._check(table, (eq or {}).keys())
        if problem:
            return StoreResult(error=problem)
        where, params = self._where(eq)
        order = sql.SQL(", ").join(sql.Identifier(c) for c in TABLE_KEYS[table])
        query = sql.SQL("select * from {}{} order by {}").format(sql.Identifier(table), where, order)
        return self._run(query, params, fetch="all")

    def get(self, table: str, key: Mapping[str, Any]) -> StoreResult:
        problem = self._check(table, ())
        if problem:
            return StoreResult(error=problem)
        eq = {col: key.get(col) for col in TABLE_KEYS[table]}
        where, params = self._where(eq)
        query = sql.SQL("select * from {}{} limit 1").format(sql.Identifier(table), where)
        return self._run(query, params, fetch="one")

    def insert(self, table: str, row: Mapping[str, Any]) -> StoreResult:
        problem = self._check(table, row.keys())
        if problem:
            return StoreResult(error=problem)
        columns = list(row.keys())
        query = sql.SQL("insert into {} ({}) values ({}) returning *").format(
            sql.Identifier(table),
            sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            sql.SQL(", ").join(sql.Placeholder() for _ in columns),
        )
        return self._run(query, [_adapt(c, row[c]) for c in columns], fetch="one")

    def update(self, table: str, *, eq: Mapping[str, Any], values: Mapping[str, Any]) -> StoreResult:
        problem = self._check(table, list(eq.keys()) + list(values.keys()))
        if problem:
            return StoreResult(error=problem)
        if not values:
            return self.select(table, eq=eq)
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(c)) for c in values.keys()
        )
        where, params = self._where(eq)
        query = sql.SQL("update {} set {}{} returning *").format(sql.Identifier(table), assignments, where)
        return self._run(query, [_adapt(c, v) for c, v in values.items()] + params, fetch="all")

    def delete(self, table: str, *, eq: Mapping[str, Any]) -> StoreResult:
        problem = self._check(table, eq.keys())
        if problem:
            return StoreResult(error=problem)
        where, params = self._where(eq)
        query = sql.SQL("delete from {}{}").format(sql.Identifier(table), where)
        return self._run(query, params, fetch="count")


__all__ = ["DBStore", "HAVE_PSYCOPG"]
