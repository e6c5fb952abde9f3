from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from backend.casework.domain import (
    OTHER_COURSES_PREFIX,
    SCOPE_OTHER_COURSES,
    SCOPE_UNASSIGNED,
    Section,
    Student,
)
from backend.casework.errors import NotFoundError

BUCKET_ASSIGNED = "assigned"


@dataclass(frozen=True)
class RosterPartition:
    assigned: tuple[Student, ...]
    other_courses: tuple[Student, ...]
    unassigned: tuple[Student, ...]

    def __len__(self) -> int:
        return len(self.assigned) + len(self.other_courses) + len(self.unassigned)


def classify_student(student: Student, section_ids: frozenset[str] | set[str]) -> str:
    """Return the roster bucket for one student.

    A section id that exists (enabled or not) wins over the `other:` prefix;
    everything else, including ids of deleted sections, is unassigned.
    """
    sid = student.section_id
    if sid is None:
        return SCOPE_UNASSIGNED
    if sid in section_ids:
        return BUCKET_ASSIGNED
    if sid.startswith(OTHER_COURSES_PREFIX):
        return SCOPE_OTHER_COURSES
    return SCOPE_UNASSIGNED


def classify_roster(students: Iterable[Student], sections: Iterable[Section]) -> RosterPartition:
    """Partition students into assigned / other_courses / unassigned.

    Why:
        The dashboard and the rollup both need to know which bucket a student
        belongs to, and the answer must follow section edits immediately. The
        partition is therefore recomputed on every call and never cached.

    Behavior:
        - The three buckets are disjoint and their union is the input.
        - Input order is preserved within each bucket.
    """
    section_ids = frozenset(s.section_id for s in sections)
    buckets: dict[str, list[Student]] = {
        BUCKET_ASSIGNED: [],
        SCOPE_OTHER_COURSES: [],
        SCOPE_UNASSIGNED: [],
    }
    for student in students:
        buckets[classify_student(student, section_ids)].append(student)
    return RosterPartition(
        assigned=tuple(buckets[BUCKET_ASSIGNED]),
        other_courses=tuple(buckets[SCOPE_OTHER_COURSES]),
        unassigned=tuple(buckets[SCOPE_UNASSIGNED]),
    )


def roster_for_scope(partition: RosterPartition, sections: Sequence[Section], scope: str) -> list[Student]:
    """Return the students attributable to a query scope.

    Raises:
        NotFoundError: `scope` is neither a known section id nor a synthetic bucket.
    """
    if any(s.section_id == scope for s in sections):
        return [st for st in partition.assigned if st.section_id == scope]
    if scope == SCOPE_OTHER_COURSES:
        return list(partition.other_courses)
    if scope == SCOPE_UNASSIGNED:
        return list(partition.unassigned)
    raise NotFoundError("section_not_found", scope)


__all__ = ["BUCKET_ASSIGNED", "RosterPartition", "classify_roster", "classify_student", "roster_for_scope"]
