"""
Row builders for casework tests.

Rows use the store's column names so they can seed any adapter. Defaults are
minimal; tests override only what they assert on.
"""
from __future__ import annotations

from typing import Any, Optional

from backend.casework.chat_options import BUILTIN_CHAT_OPTIONS
from backend.casework.store_memory import InMemoryStore


def section(section_id: str, title: str = "", *, enabled: bool = True, **extra: Any) -> dict:
    return {"section_id": section_id, "section_title": title or section_id, "enabled": enabled, **extra}


def case(case_id: str, title: str = "", *, enabled: bool = True, **extra: Any) -> dict:
    return {
        "case_id": case_id,
        "case_title": title or case_id,
        "protagonist": "Pat Jones",
        "chat_question": "Should the company expand?",
        "enabled": enabled,
        **extra,
    }


def assignment(section_id: str, case_id: str, **extra: Any) -> dict:
    row = {
        "section_id": section_id,
        "case_id": case_id,
        "active": False,
        "chat_options": None,
        "open_date": None,
        "close_date": None,
        "manual_status": "auto",
        "use_scenarios": False,
        "selection_mode": "student_choice",
        "require_order": False,
        "created_at": "2025-01-01T00:00:00+00:00",
    }
    row.update(extra)
    return row


def options(**overrides: Any) -> dict:
    data = BUILTIN_CHAT_OPTIONS.to_dict()
    data.update(overrides)
    return data


def default(scope: str, **overrides: Any) -> dict:
    return {"scope": scope, "chat_options": options(**overrides)}


def scenario(scenario_id: str, case_id: str, *, name: str = "", enabled: bool = True, limit: Optional[int] = None) -> dict:
    return {
        "scenario_id": scenario_id,
        "case_id": case_id,
        "scenario_name": name or scenario_id,
        "protagonist": "Alex",
        "chat_time_limit": limit,
        "enabled": enabled,
    }


def scenario_row(section_id: str, case_id: str, scenario_id: str, sort_order: int, *, enabled: bool = True) -> dict:
    return {
        "section_id": section_id,
        "case_id": case_id,
        "scenario_id": scenario_id,
        "sort_order": sort_order,
        "enabled": enabled,
    }


def student(student_id: str, section_id: Optional[str], *, finished_at: Optional[str] = None, name: str = "") -> dict:
    return {
        "id": student_id,
        "full_name": name or f"Student {student_id}",
        "persona": "moderate",
        "section_id": section_id,
        "finished_at": finished_at,
    }


def evaluation(
    evaluation_id: str,
    student_id: str,
    *,
    case_id: Optional[str] = "c1",
    score: Optional[float] = None,
    created_at: str = "2025-01-15T10:00:00+00:00",
    scenario_id: Optional[str] = None,
    hints: Optional[float] = None,
    helpful: Optional[float] = None,
    allow_rechat: bool = False,
) -> dict:
    return {
        "id": evaluation_id,
        "student_id": student_id,
        "case_id": case_id,
        "scenario_id": scenario_id,
        "score": score,
        "hints": hints,
        "helpful": helpful,
        "criteria": None,
        "transcript": "",
        "created_at": created_at,
        "allow_rechat": allow_rechat,
    }


def baseline_store() -> InMemoryStore:
    """Two sections, three cases and a few assignments; no students."""
    return InMemoryStore(
        {
            "sections": [section("s1", "Strategy A"), section("s2", "Strategy B")],
            "cases": [case("c1", "Expansion"), case("c2", "Pricing"), case("c3", "Retired", enabled=False)],
            "section_cases": [
                assignment("s1", "c1", active=True),
                assignment("s1", "c2", created_at="2025-01-02T00:00:00+00:00"),
                assignment("s2", "c1"),
            ],
        }
    )
