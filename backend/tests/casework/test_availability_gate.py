"""
Availability gate: manual overrides and the [open, close) scheduling window.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from backend.casework.domain import SectionCaseAssignment
from backend.casework.usecases.availability import check_availability, is_assignment_available

T1 = datetime(2025, 1, 10, tzinfo=timezone.utc)
T2 = datetime(2025, 1, 20, tzinfo=timezone.utc)


def _assignment(manual_status="auto", open_date=T1, close_date=T2):
    return SectionCaseAssignment(
        section_id="s1",
        case_id="c1",
        open_date=open_date,
        close_date=close_date,
        manual_status=manual_status,
    )


def test_close_boundary_is_exclusive():
    assert is_assignment_available(_assignment(), T2) is False


def test_open_boundary_is_inclusive():
    assert is_assignment_available(_assignment(), T1) is True


@pytest.mark.parametrize(
    "now,expected",
    [
        (T1 - timedelta(seconds=1), False),
        (T1 + timedelta(days=5), True),
        (T2 - timedelta(microseconds=1), True),
        (T2 + timedelta(days=30), False),
    ],
)
def test_window_inside_and_outside(now, expected):
    assert is_assignment_available(_assignment(), now) is expected


@pytest.mark.parametrize("now", [T1 - timedelta(days=400), T1, T2, T2 + timedelta(days=400)])
def test_manual_status_ignores_dates(now):
    assert is_assignment_available(_assignment("manually_opened"), now) is True
    assert is_assignment_available(_assignment("manually_closed"), now) is False
    assert is_assignment_available(_assignment("manually_opened", None, None), now) is True
    assert is_assignment_available(_assignment("manually_closed", None, None), now) is False


def test_open_ended_windows():
    assert is_assignment_available(_assignment(open_date=None, close_date=None), T1) is True
    assert is_assignment_available(_assignment(open_date=None), T1 - timedelta(days=100)) is True
    assert is_assignment_available(_assignment(close_date=None), T2 + timedelta(days=100)) is True


def test_naive_now_is_treated_as_utc():
    assert is_assignment_available(_assignment(), datetime(2025, 1, 20)) is False
    assert is_assignment_available(_assignment(), datetime(2025, 1, 10)) is True


def test_reasons_explain_unavailability():
    closed = check_availability(_assignment("manually_closed"), T1)
    assert closed.reason == "This case has been manually closed by the instructor."

    early = check_availability(_assignment(), T1 - timedelta(days=1))
    assert early.available is False
    assert early.reason.startswith("This case will open on 2025-01-10")

    late = check_availability(_assignment(), T2)
    assert late.reason.startswith("This case closed on 2025-01-20")

    assert check_availability(_assignment(), T1).reason is None


def test_offset_timestamps_compare_as_instants():
    cet = timezone(timedelta(hours=1))
    # 2025-01-20T00:30+01:00 is 2025-01-19T23:30Z, still inside the window
    assert is_assignment_available(_assignment(), datetime(2025, 1, 20, 0, 30, tzinfo=cet)) is True
