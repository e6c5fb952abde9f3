"""
Typed read helpers over the casework store.

Every helper performs one store call, unwraps the `(data, error)` pair and
parses rows into domain records. Missing keys raise `NotFoundError`; failed
store calls raise `UpstreamStoreError` (via `unwrap`).
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from backend.casework.domain import (
    Case,
    Evaluation,
    Scenario,
    ScenarioAssignment,
    Section,
    SectionCaseAssignment,
    Student,
)
from backend.casework.errors import NotFoundError
from backend.casework.ports import (
    ASSIGNMENTS,
    CASES,
    EVALUATIONS,
    SCENARIO_ASSIGNMENTS,
    SCENARIOS,
    SECTIONS,
    STUDENTS,
    CaseworkStoreProtocol,
    unwrap,
)


def _rows(store: CaseworkStoreProtocol, table: str, eq: Optional[Mapping[str, Any]] = None) -> list[dict]:
    return list(unwrap(store.select(table, eq=eq)) or [])


def load_sections(store: CaseworkStoreProtocol) -> list[Section]:
    return [Section.from_row(r) for r in _rows(store, SECTIONS)]


def load_students(store: CaseworkStoreProtocol) -> list[Student]:
    return [Student.from_row(r) for r in _rows(store, STUDENTS)]


def load_evaluations(store: CaseworkStoreProtocol, **eq: Any) -> list[Evaluation]:
    return [Evaluation.from_row(r) for r in _rows(store, EVALUATIONS, eq or None)]


def load_assignments(store: CaseworkStoreProtocol, **eq: Any) -> list[SectionCaseAssignment]:
    return [SectionCaseAssignment.from_row(r) for r in _rows(store, ASSIGNMENTS, eq or None)]


def load_scenarios(store: CaseworkStoreProtocol, case_id: str) -> list[Scenario]:
    return [Scenario.from_row(r) for r in _rows(store, SCENARIOS, {"case_id": case_id})]


def load_scenario_assignments(store: CaseworkStoreProtocol, section_id: str, case_id: str) -> list[ScenarioAssignment]:
    rows = _rows(store, SCENARIO_ASSIGNMENTS, {"section_id": section_id, "case_id": case_id})
    return [ScenarioAssignment.from_row(r) for r in rows]


def require_section(store: CaseworkStoreProtocol, section_id: str) -> Section:
    row = unwrap(store.get(SECTIONS, {"section_id": section_id}))
    if not row:
        raise NotFoundError("section_not_found", section_id)
    return Section.from_row(row)


def require_case(store: CaseworkStoreProtocol, case_id: str) -> Case:
    row = unwrap(store.get(CASES, {"case_id": case_id}))
    if not row:
        raise NotFoundError("case_not_found", case_id)
    return Case.from_row(row)


def require_assignment(store: CaseworkStoreProtocol, section_id: str, case_id: str) -> SectionCaseAssignment:
    row = unwrap(store.get(ASSIGNMENTS, {"section_id": section_id, "case_id": case_id}))
    if not row:
        raise NotFoundError("assignment_not_found", f"{section_id}/{case_id}")
    return SectionCaseAssignment.from_row(row)


__all__ = [
    "load_assignments",
    "load_evaluations",
    "load_scenario_assignments",
    "load_scenarios",
    "load_sections",
    "load_students",
    "require_assignment",
    "require_case",
    "require_section",
]
