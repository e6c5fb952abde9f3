from __future__ import annotations

from dataclasses import dataclass, field
import math
from typing import Any, Iterable, Optional, Sequence

from backend.casework.domain import (
    SCOPE_OTHER_COURSES,
    SCOPE_UNASSIGNED,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    Evaluation,
    Section,
    Student,
)
from backend.casework.usecases.rollup import RollupRow, build_rollup
from backend.casework.usecases.roster import classify_roster

SCORE_SLOTS = 16


@dataclass(frozen=True)
class SectionStats:
    total_rows: int
    completed_rows: int
    completion_rate: float
    avg_score: Optional[float]
    avg_hints: Optional[float]
    avg_helpful: Optional[float]
    score_distribution: tuple[int, ...] = field(default=(0,) * SCORE_SLOTS)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_rows": self.total_rows,
            "completed_rows": self.completed_rows,
            "completion_rate": self.completion_rate,
            "avg_score": self.avg_score,
            "avg_hints": self.avg_hints,
            "avg_helpful": self.avg_helpful,
            "score_distribution": list(self.score_distribution),
        }


def _mean(values: list[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


def compute_stats(rows: Sequence[RollupRow]) -> SectionStats:
    """Reduce rollup rows to completion rate, averages and a score histogram.

    Behavior:
        - No rows: completion rate 0 and every average None (never 0 or NaN).
        - Averages only consider completed rows that define the field.
        - Histogram slots cover integral scores 0..15; anything else is dropped.
    """
    total = len(rows)
    completed = [r for r in rows if r.status == STATUS_COMPLETED]
    distribution = [0] * SCORE_SLOTS
    for row in completed:
        score = row.score
        if score is None or not math.isfinite(score) or score != int(score):
            continue
        slot = int(score)
        if 0 <= slot < SCORE_SLOTS:
            distribution[slot] += 1
    return SectionStats(
        total_rows=total,
        completed_rows=len(completed),
        completion_rate=(100.0 * len(completed) / total) if total else 0.0,
        avg_score=_mean([r.score for r in completed if r.score is not None]),
        avg_hints=_mean([r.hints for r in completed if r.hints is not None]),
        avg_helpful=_mean([r.helpful for r in completed if r.helpful is not None]),
        score_distribution=tuple(distribution),
    )


@dataclass(frozen=True)
class SectionSummary:
    scope: str
    title: str
    students: int
    completed_students: int
    in_progress_students: int
    not_started_students: int
    avg_score: Optional[float]

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope": self.scope,
            "title": self.title,
            "students": self.students,
            "completed_students": self.completed_students,
            "in_progress_students": self.in_progress_students,
            "not_started_students": self.not_started_students,
            "avg_score": self.avg_score,
        }


def _summarize(scope: str, title: str, students: Sequence[Student], evaluations: Sequence[Evaluation]) -> SectionSummary:
    rows = build_rollup(students, evaluations)
    done = {r.student_id for r in rows if r.status == STATUS_COMPLETED}
    in_progress = sum(1 for r in rows if r.status == STATUS_IN_PROGRESS)
    return SectionSummary(
        scope=scope,
        title=title,
        students=len(students),
        completed_students=len(done),
        in_progress_students=in_progress,
        not_started_students=len(students) - len(done) - in_progress,
        avg_score=compute_stats(rows).avg_score,
    )


def summarize_sections(
    students: Iterable[Student],
    sections: Sequence[Section],
    evaluations: Iterable[Evaluation],
) -> list[SectionSummary]:
    """Per-section overview counts for the dashboard landing page.

    Every section gets an entry (even with zero students); the synthetic
    `other_courses` and `unassigned` buckets only when non-empty.
    """
    partition = classify_roster(list(students), sections)
    evaluations = list(evaluations)
    out = []
    for section in sections:
        members = [s for s in partition.assigned if s.section_id == section.section_id]
        out.append(_summarize(section.section_id, section.title, members, evaluations))
    if partition.other_courses:
        out.append(_summarize(SCOPE_OTHER_COURSES, "Other courses", partition.other_courses, evaluations))
    if partition.unassigned:
        out.append(_summarize(SCOPE_UNASSIGNED, "Unassigned", partition.unassigned, evaluations))
    return out


__all__ = ["SCORE_SLOTS", "SectionStats", "SectionSummary", "compute_stats", "summarize_sections"]
