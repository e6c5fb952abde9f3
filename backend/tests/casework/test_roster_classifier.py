"""
Roster classification: every student lands in exactly one bucket.
"""
from __future__ import annotations

import pytest

from backend.casework.domain import Section, Student
from backend.casework.errors import NotFoundError
from backend.casework.usecases.roster import classify_roster, classify_student, roster_for_scope


SECTIONS = [
    Section(section_id="s1", title="Strategy A"),
    Section(section_id="s2", title="Strategy B", enabled=False),
]


def _student(sid: str, section_id):
    return Student(id=sid, full_name=f"Student {sid}", section_id=section_id)


def test_partition_is_disjoint_and_complete():
    students = [
        _student("1", "s1"),
        _student("2", "other:MBA-201"),
        _student("3", None),
        _student("4", "s-deleted"),
        _student("5", "s2"),
        _student("6", ""),
    ]
    part = classify_roster(students, SECTIONS)

    ids = [s.id for s in part.assigned] + [s.id for s in part.other_courses] + [s.id for s in part.unassigned]
    assert sorted(ids) == sorted(s.id for s in students)
    assert len(ids) == len(set(ids))
    assert [s.id for s in part.assigned] == ["1", "5"]
    assert [s.id for s in part.other_courses] == ["2"]
    assert [s.id for s in part.unassigned] == ["3", "4", "6"]
    assert len(part) == 6


def test_disabled_section_still_counts_as_assigned():
    assert classify_student(_student("x", "s2"), {"s1", "s2"}) == "assigned"


def test_existing_section_id_wins_over_other_prefix():
    sections = SECTIONS + [Section(section_id="other:weird", title="Odd id")]
    part = classify_roster([_student("1", "other:weird")], sections)
    assert [s.id for s in part.assigned] == ["1"]
    assert part.other_courses == ()


def test_prefix_must_match_literally():
    part = classify_roster([_student("1", "Other:MBA"), _student("2", "other")], SECTIONS)
    assert [s.id for s in part.unassigned] == ["1", "2"]


def test_empty_inputs_give_empty_partition():
    part = classify_roster([], [])
    assert part.assigned == part.other_courses == part.unassigned == ()


def test_reclassifies_after_section_removal():
    students = [_student("1", "s1")]
    assert classify_roster(students, SECTIONS).assigned
    assert classify_roster(students, SECTIONS[1:]).unassigned


def test_roster_for_scope_selects_subset():
    students = [_student("1", "s1"), _student("2", "s2"), _student("3", "other:x"), _student("4", None)]
    part = classify_roster(students, SECTIONS)
    assert [s.id for s in roster_for_scope(part, SECTIONS, "s1")] == ["1"]
    assert [s.id for s in roster_for_scope(part, SECTIONS, "other_courses")] == ["3"]
    assert [s.id for s in roster_for_scope(part, SECTIONS, "unassigned")] == ["4"]


def test_roster_for_scope_rejects_unknown_scope():
    part = classify_roster([], SECTIONS)
    with pytest.raises(NotFoundError):
        roster_for_scope(part, SECTIONS, "s-missing")
