"""
In-memory casework store for tests and local offline work.

Rows are plain dicts kept in insertion order per table. Every read and write
deep-copies, so callers can never mutate stored state by holding on to a
returned row (the same guarantee a real database gives).
"""
from __future__ import annotations

import copy
from typing import Any, Dict, Iterable, List, Mapping, Optional

from backend.casework.ports import TABLE_KEYS, StoreResult, key_for


def _matches(row: Mapping[str, Any], eq: Optional[Mapping[str, Any]]) -> bool:
    if not eq:
        return True
    return all(row.get(col) == value for col, value in eq.items())


class InMemoryStore:
    def __init__(self, seed: Optional[Mapping[str, Iterable[Mapping[str, Any]]]] = None) -> None:
        self.tables: Dict[str, List[dict]] = {name: [] for name in TABLE_KEYS}
        for table, rows in (seed or {}).items():
            for row in rows:
                result = self.insert(table, row)
                if result.error:
                    raise ValueError(f"invalid seed for {table}: {result.error}")

    def _rows(self, table: str) -> Optional[List[dict]]:
        return self.tables.get(table)

    def select(self, table: str, *, eq: Optional[Mapping[str, Any]] = None) -> StoreResult:
        rows = self._rows(table)
        if rows is None:
            return StoreResult(error=f"unknown table {table}")
        return StoreResult(data=[copy.deepcopy(r) for r in rows if _matches(r, eq)])

    def get(self, table: str, key: Mapping[str, Any]) -> StoreResult:
        rows = self._rows(table)
        if rows is None:
            return StoreResult(error=f"unknown table {table}")
        wanted = key_for(table, key)
        for row in rows:
            if key_for(table, row) == wanted:
                return StoreResult(data=copy.deepcopy(row))
        return StoreResult(data=None)

    def insert(self, table: str, row: Mapping[str, Any]) -> StoreResult:
        rows = self._rows(table)
        if rows is None:
            return StoreResult(error=f"unknown table {table}")
        key = key_for(table, row)
        if any(part is None for part in key):
            return StoreResult(error=f"missing key columns for {table}")
        if any(key_for(table, existing) == key for existing in rows):
            return StoreResult(error=f"duplicate key for {table}")
        stored = copy.deepcopy(dict(row))
        rows.append(stored)
        return StoreResult(data=copy.deepcopy(stored))

    def update(self, table: str, *, eq: Mapping[str, Any], values: Mapping[str, Any]) -> StoreResult:
        rows = self._rows(table)
        if rows is None:
            return StoreResult(error=f"unknown table {table}")
        updated: List[dict] = []
        for row in rows:
            if _matches(row, eq):
                row.update(copy.deepcopy(dict(values)))
                updated.append(copy.deepcopy(row))
        return StoreResult(data=updated)

    def delete(self, table: str, *, eq: Mapping[str, Any]) -> StoreResult:
        rows = self._rows(table)
        if rows is None:
            return StoreResult(error=f"unknown table {table}")
        kept = [r for r in rows if not _matches(r, eq)]
        removed = len(rows) - len(kept)
        self.tables[table] = kept
        return StoreResult(data=removed)


__all__ = ["InMemoryStore"]
