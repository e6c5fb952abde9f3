"""
Evaluation rollup: one row per attempt plus one status row per idle student.

Why:
    The instructor dashboard lists every evaluation (students may re-chat, so
    a student can appear several times) and still needs to show who has not
    produced anything yet. Keeping the join pure makes it trivial to test
    against fixed records.

Behavior:
    - Completed rows first, newest `created_at` first. Equal timestamps keep
      their input order (store order is only the tie-break).
    - Then one synthetic row per student without evaluations, in roster
      order: `in_progress` when `finished_at` is set, else `not_started`.
    - Row count = evaluations in scope + students without evaluations.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

from backend.casework.domain import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_NOT_STARTED,
    Evaluation,
    Student,
    format_instant,
)
from backend.casework.ports import CaseworkStoreProtocol
from backend.casework.usecases.records import load_evaluations, load_sections, load_students
from backend.casework.usecases.roster import classify_roster, roster_for_scope


@dataclass(frozen=True)
class RollupRow:
    status: str
    student_id: str
    full_name: str
    persona: Optional[str] = None
    section_id: Optional[str] = None
    finished_at: Optional[datetime] = None
    evaluation_id: Optional[str] = None
    case_id: Optional[str] = None
    scenario_id: Optional[str] = None
    score: Optional[float] = None
    hints: Optional[float] = None
    helpful: Optional[float] = None
    criteria: Any = None
    transcript: Optional[str] = None
    created_at: Optional[datetime] = None
    allow_rechat: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "student_id": self.student_id,
            "full_name": self.full_name,
            "persona": self.persona,
            "section_id": self.section_id,
            "finished_at": format_instant(self.finished_at),
            "evaluation_id": self.evaluation_id,
            "case_id": self.case_id,
            "scenario_id": self.scenario_id,
            "score": self.score,
            "hints": self.hints,
            "helpful": self.helpful,
            "criteria": self.criteria,
            "transcript": self.transcript,
            "created_at": format_instant(self.created_at),
            "allow_rechat": self.allow_rechat,
        }


def _completed_row(student: Student, ev: Evaluation) -> RollupRow:
    return RollupRow(
        status=STATUS_COMPLETED,
        student_id=student.id,
        full_name=student.full_name,
        persona=student.persona,
        section_id=student.section_id,
        finished_at=student.finished_at,
        evaluation_id=ev.id,
        case_id=ev.case_id,
        scenario_id=ev.scenario_id,
        score=ev.score,
        hints=ev.hints,
        helpful=ev.helpful,
        criteria=ev.criteria,
        transcript=ev.transcript,
        created_at=ev.created_at,
        allow_rechat=ev.allow_rechat,
    )


def build_rollup(
    students: Sequence[Student],
    evaluations: Iterable[Evaluation],
    case_id: Optional[str] = None,
) -> list[RollupRow]:
    """Join a roster subset with its evaluations.

    Evaluations of students outside `students` are ignored; `case_id`
    narrows the evaluations before the join.
    """
    by_id = {s.id: s for s in students}
    scoped = [
        ev for ev in evaluations
        if ev.student_id in by_id and (case_id is None or ev.case_id == case_id)
    ]
    # sorted() is stable, so equal timestamps keep input order.
    scoped = sorted(scoped, key=lambda ev: ev.created_at, reverse=True)
    rows = [_completed_row(by_id[ev.student_id], ev) for ev in scoped]
    seen = {ev.student_id for ev in scoped}
    for student in students:
        if student.id in seen:
            continue
        status = STATUS_IN_PROGRESS if student.finished_at is not None else STATUS_NOT_STARTED
        rows.append(
            RollupRow(
                status=status,
                student_id=student.id,
                full_name=student.full_name,
                persona=student.persona,
                section_id=student.section_id,
                finished_at=student.finished_at,
            )
        )
    return rows


class RollupService:
    def __init__(self, store: CaseworkStoreProtocol) -> None:
        self._store = store

    def rollup_students(self, scope: str, case_id: Optional[str] = None) -> list[RollupRow]:
        """Return the rollup for a section id or a synthetic bucket.

        Raises:
            NotFoundError: unknown scope.
            UpstreamStoreError: a store read failed.
        """
        sections = load_sections(self._store)
        students = load_students(self._store)
        subset = roster_for_scope(classify_roster(students, sections), sections, scope)
        evaluations = load_evaluations(self._store, case_id=case_id) if case_id else load_evaluations(self._store)
        return build_rollup(subset, evaluations, case_id)


__all__ = ["RollupRow", "RollupService", "build_rollup"]
