from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from backend.casework.domain import MANUAL_CLOSED, MANUAL_OPENED, SectionCaseAssignment

_DATE_FORMAT = "%Y-%m-%d %H:%M UTC"


@dataclass(frozen=True)
class Availability:
    available: bool
    reason: Optional[str] = None


def _aware(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def check_availability(assignment: SectionCaseAssignment, now: datetime) -> Availability:
    """Decide whether a new chat attempt may begin at `now`.

    Behavior:
        - Manual status wins over the schedule in both directions.
        - `auto`: open date inclusive, close date exclusive.
        - Only the start of an attempt is gated; continuing an attempt that
          began before the close date is up to the chat runtime.
        - Pure in `(assignment, now)`; callers pass `now` on every call.
    """
    if assignment.manual_status == MANUAL_OPENED:
        return Availability(True)
    if assignment.manual_status == MANUAL_CLOSED:
        return Availability(False, "This case has been manually closed by the instructor.")
    instant = _aware(now)
    if assignment.open_date is not None and instant < assignment.open_date:
        return Availability(False, f"This case will open on {assignment.open_date.strftime(_DATE_FORMAT)}.")
    if assignment.close_date is not None and instant >= assignment.close_date:
        return Availability(False, f"This case closed on {assignment.close_date.strftime(_DATE_FORMAT)}.")
    return Availability(True)


def is_assignment_available(assignment: SectionCaseAssignment, now: datetime) -> bool:
    return check_availability(assignment, now).available


__all__ = ["Availability", "check_availability", "is_assignment_available"]
