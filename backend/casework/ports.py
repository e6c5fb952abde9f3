"""
Store port for the casework engine.

Keep this small and framework-agnostic so tests can supply simple fakes.

Intent:
    The engine reads and writes through five equality-only operations that
    return `(data, error)` pairs, the same envelope the instructor REST backend
    uses (`{data, error: {message}}`). Adapters never raise for store-side
    failures; they report them in `StoreResult.error` and the engine turns
    that into `UpstreamStoreError` via `unwrap`.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

from backend.casework.errors import UpstreamStoreError

SECTIONS = "sections"
CASES = "cases"
ASSIGNMENTS = "section_cases"
CHAT_DEFAULTS = "chat_options_defaults"
SCENARIOS = "case_scenarios"
SCENARIO_ASSIGNMENTS = "section_case_scenarios"
STUDENTS = "students"
EVALUATIONS = "evaluations"

# Primary key columns per table; composite keys are ordered.
TABLE_KEYS: dict[str, tuple[str, ...]] = {
    SECTIONS: ("section_id",),
    CASES: ("case_id",),
    ASSIGNMENTS: ("section_id", "case_id"),
    CHAT_DEFAULTS: ("scope",),
    SCENARIOS: ("scenario_id",),
    SCENARIO_ASSIGNMENTS: ("section_id", "case_id", "scenario_id"),
    STUDENTS: ("id",),
    EVALUATIONS: ("id",),
}

# Columns stored as JSON documents.
JSON_COLUMNS = frozenset({"chat_options", "criteria"})


@dataclass(frozen=True)
class StoreResult:
    data: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CaseworkStoreProtocol(Protocol):
    """Minimal persistence interface used by every casework use case.

    Behavior expected from implementations:
        - `select` returns a list of row dicts (all rows when `eq` is empty).
        - `get` returns one row dict or None for an unknown key.
        - `insert` returns the stored row; duplicate keys are an error.
        - `update` returns the list of updated rows (possibly empty).
        - `delete` returns the number of deleted rows.
    """

    def select(self, table: str, *, eq: Optional[Mapping[str, Any]] = None) -> StoreResult: ...

    def get(self, table: str, key: Mapping[str, Any]) -> StoreResult: ...

    def insert(self, table: str, row: Mapping[str, Any]) -> StoreResult: ...

    def update(self, table: str, *, eq: Mapping[str, Any], values: Mapping[str, Any]) -> StoreResult: ...

    def delete(self, table: str, *, eq: Mapping[str, Any]) -> StoreResult: ...


def unwrap(result: StoreResult) -> Any:
    """Return `result.data` or raise `UpstreamStoreError` with the store message."""
    if result.error is not None:
        raise UpstreamStoreError("store_error", result.error)
    return result.data


def key_for(table: str, row: Mapping[str, Any]) -> tuple:
    return tuple(row.get(col) for col in TABLE_KEYS[table])


__all__ = [
    "ASSIGNMENTS",
    "CASES",
    "CHAT_DEFAULTS",
    "CaseworkStoreProtocol",
    "EVALUATIONS",
    "JSON_COLUMNS",
    "SCENARIOS",
    "SCENARIO_ASSIGNMENTS",
    "SECTIONS",
    "STUDENTS",
    "StoreResult",
    "TABLE_KEYS",
    "key_for",
    "unwrap",
]
