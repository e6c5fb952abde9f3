"""
Section-case assignment management.

Why:
    Instructors assign cases to sections, pick the section's active case,
    schedule windows and copy whole setups between sections. The chat runtime
    needs a single call that answers "which case, open or not, with which
    options and scenarios".

Behavior:
    - At most one active assignment per section; activating one deactivates
      the others first.
    - Unassigning deletes the assignment and its scenario rows. Evaluations
      stay untouched.
    - Copies between sections are inactive and skip pairs already assigned.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Any, Optional

from backend.casework.chat_options import INHERIT, Custom
from backend.casework.domain import (
    MANUAL_AUTO,
    MANUAL_STATUSES,
    SELECTION_STUDENT_CHOICE,
    Case,
    SectionCaseAssignment,
    format_instant,
    parse_instant,
)
from backend.casework.errors import NotFoundError, ValidationError
from backend.casework.ports import ASSIGNMENTS, SCENARIO_ASSIGNMENTS, CaseworkStoreProtocol, unwrap
from backend.casework.usecases.availability import Availability, check_availability
from backend.casework.usecases.options import AssignmentConfigResolver, OptionsInput, ResolvedOptions, coerce_options
from backend.casework.usecases.records import (
    load_assignments,
    load_scenario_assignments,
    require_assignment,
    require_case,
    require_section,
)
from backend.casework.usecases.scenarios import ScenarioPlan, ScenarioService

logger = logging.getLogger("casework.assignments")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Marks a keyword argument the caller did not pass (None means "clear").
UNSET: Any = object()


@dataclass(frozen=True)
class ActiveCase:
    assignment: SectionCaseAssignment
    case: Case
    availability: Availability
    options: ResolvedOptions
    scenario_plan: Optional[ScenarioPlan] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "section_id": self.assignment.section_id,
            "case_id": self.case.case_id,
            "case_title": self.case.title,
            "protagonist": self.case.protagonist,
            "available": self.availability.available,
            "reason": self.availability.reason,
            "options_source": self.options.source,
            "options": self.options.options.to_dict(),
            "scenario_plan": self.scenario_plan.to_dict() if self.scenario_plan else None,
        }


@dataclass(frozen=True)
class CopyReport:
    copied: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()
    scenarios_copied: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "copied": list(self.copied),
            "skipped": list(self.skipped),
            "scenarios_copied": self.scenarios_copied,
        }


def _instant(value: object, code: str) -> Optional[datetime]:
    try:
        return parse_instant(value)
    except ValueError as exc:
        raise ValidationError(code, repr(value)) from exc


def _check_schedule(open_date: Optional[datetime], close_date: Optional[datetime], manual_status: str) -> None:
    if manual_status not in MANUAL_STATUSES:
        raise ValidationError("invalid_manual_status", manual_status)
    if open_date is not None and close_date is not None and close_date <= open_date:
        raise ValidationError("invalid_schedule", "close_date must be after open_date")


class AssignmentService:
    def __init__(self, store: CaseworkStoreProtocol) -> None:
        self._store = store
        self._options = AssignmentConfigResolver(store)
        self._scenarios = ScenarioService(store)

    def list_assignments(self, section_id: str) -> list[SectionCaseAssignment]:
        """Active assignment first, then newest first."""
        require_section(self._store, section_id)
        items = load_assignments(self._store, section_id=section_id)
        return sorted(items, key=lambda a: (not a.active, -(a.created_at or _EPOCH).timestamp()))

    def _deactivate_all(self, section_id: str) -> None:
        unwrap(self._store.update(ASSIGNMENTS, eq={"section_id": section_id, "active": True}, values={"active": False}))

    def assign_case(
        self,
        section_id: str,
        case_id: str,
        *,
        active: bool = False,
        chat_options: Optional[OptionsInput] = None,
        open_date: object = None,
        close_date: object = None,
        manual_status: str = MANUAL_AUTO,
        now: Optional[datetime] = None,
    ) -> SectionCaseAssignment:
        """Create a section-case assignment.

        Raises:
            NotFoundError: unknown section or case.
            ValidationError: pair already assigned, invalid options or schedule.
        """
        override = INHERIT if chat_options is None else Custom(coerce_options(chat_options))
        opens = _instant(open_date, "invalid_open_date")
        closes = _instant(close_date, "invalid_close_date")
        _check_schedule(opens, closes, manual_status)
        require_section(self._store, section_id)
        require_case(self._store, case_id)
        if unwrap(self._store.get(ASSIGNMENTS, {"section_id": section_id, "case_id": case_id})):
            raise ValidationError("already_assigned", f"{section_id}/{case_id}")
        if active:
            self._deactivate_all(section_id)
        assignment = SectionCaseAssignment(
            section_id=section_id,
            case_id=case_id,
            active=bool(active),
            chat_options=override,
            open_date=opens,
            close_date=closes,
            manual_status=manual_status,
            created_at=now or datetime.now(timezone.utc),
        )
        unwrap(self._store.insert(ASSIGNMENTS, assignment.to_row()))
        return assignment

    def unassign_case(self, section_id: str, case_id: str) -> None:
        require_assignment(self._store, section_id, case_id)
        unwrap(self._store.delete(SCENARIO_ASSIGNMENTS, eq={"section_id": section_id, "case_id": case_id}))
        unwrap(self._store.delete(ASSIGNMENTS, eq={"section_id": section_id, "case_id": case_id}))

    def activate(self, section_id: str, case_id: str) -> SectionCaseAssignment:
        require_assignment(self._store, section_id, case_id)
        self._deactivate_all(section_id)
        unwrap(self._store.update(ASSIGNMENTS, eq={"section_id": section_id, "case_id": case_id}, values={"active": True}))
        return require_assignment(self._store, section_id, case_id)

    def deactivate(self, section_id: str, case_id: str) -> SectionCaseAssignment:
        require_assignment(self._store, section_id, case_id)
        unwrap(self._store.update(ASSIGNMENTS, eq={"section_id": section_id, "case_id": case_id}, values={"active": False}))
        return require_assignment(self._store, section_id, case_id)

    def update_scheduling(
        self,
        section_id: str,
        case_id: str,
        *,
        open_date: object = UNSET,
        close_date: object = UNSET,
        manual_status: object = UNSET,
    ) -> SectionCaseAssignment:
        """Update the schedule window and/or manual status of one assignment.

        Behavior:
            - Only fields passed explicitly are written; `None` clears a date.
            - The merged window (stored values plus changes) is validated.

        Raises:
            ValidationError: no field given, invalid status, date or window.
            NotFoundError: unknown assignment.
        """
        values: dict[str, Any] = {}
        if open_date is not UNSET:
            values["open_date"] = _instant(open_date, "invalid_open_date")
        if close_date is not UNSET:
            values["close_date"] = _instant(close_date, "invalid_close_date")
        if manual_status is not UNSET:
            values["manual_status"] = manual_status
        if not values:
            raise ValidationError("no_scheduling_fields", "expected open_date, close_date or manual_status")
        current = require_assignment(self._store, section_id, case_id)
        _check_schedule(
            values.get("open_date", current.open_date),
            values.get("close_date", current.close_date),
            values.get("manual_status", current.manual_status),
        )
        row = dict(values)
        for col in ("open_date", "close_date"):
            if col in row:
                row[col] = format_instant(row[col])
        unwrap(self._store.update(ASSIGNMENTS, eq={"section_id": section_id, "case_id": case_id}, values=row))
        return require_assignment(self._store, section_id, case_id)

    def get_active_case(self, section_id: str, *, now: datetime, student_id: Optional[str] = None) -> ActiveCase:
        """Return everything the chat runtime needs before admitting a student.

        Raises:
            NotFoundError: unknown section, or no active enabled case.
        """
        require_section(self._store, section_id)
        active = [a for a in load_assignments(self._store, section_id=section_id) if a.active]
        for assignment in active:
            case = require_case(self._store, assignment.case_id)
            if not case.enabled:
                continue
            plan = self._scenarios.plan_for_assignment(assignment, student_id) if student_id else None
            return ActiveCase(
                assignment=assignment,
                case=case,
                availability=check_availability(assignment, now),
                options=self._options.resolve_for(assignment),
                scenario_plan=plan,
            )
        raise NotFoundError("active_case_not_found", section_id)

    def copy_assignments(
        self,
        source_section_id: str,
        target_section_id: str,
        *,
        copy_options: bool = True,
        copy_scheduling: bool = True,
        copy_scenarios: bool = True,
        now: Optional[datetime] = None,
    ) -> CopyReport:
        """Copy every source assignment that the target section lacks.

        Copies are inactive. Without `copy_options` the copy inherits; without
        `copy_scheduling` it has no window and `auto` status; without
        `copy_scenarios` scenarios are off, selection falls back to
        `student_choice` without ordering, and no scenario rows are copied.
        """
        if source_section_id == target_section_id:
            raise ValidationError("same_section", source_section_id)
        require_section(self._store, source_section_id)
        require_section(self._store, target_section_id)
        present = {a.case_id for a in load_assignments(self._store, section_id=target_section_id)}
        created_at = now or datetime.now(timezone.utc)
        copied: list[str] = []
        skipped: list[str] = []
        scenario_rows = 0
        for source in load_assignments(self._store, section_id=source_section_id):
            if source.case_id in present:
                skipped.append(source.case_id)
                continue
            clone = SectionCaseAssignment(
                section_id=target_section_id,
                case_id=source.case_id,
                active=False,
                chat_options=source.chat_options if copy_options else INHERIT,
                open_date=source.open_date if copy_scheduling else None,
                close_date=source.close_date if copy_scheduling else None,
                manual_status=source.manual_status if copy_scheduling else MANUAL_AUTO,
                use_scenarios=source.use_scenarios if copy_scenarios else False,
                selection_mode=source.selection_mode if copy_scenarios else SELECTION_STUDENT_CHOICE,
                require_order=source.require_order if copy_scenarios else False,
                created_at=created_at,
            )
            unwrap(self._store.insert(ASSIGNMENTS, clone.to_row()))
            if copy_scenarios:
                for row in load_scenario_assignments(self._store, source_section_id, source.case_id):
                    data = row.to_row()
                    data["section_id"] = target_section_id
                    unwrap(self._store.insert(SCENARIO_ASSIGNMENTS, data))
                    scenario_rows += 1
            copied.append(source.case_id)
        logger.info(
            "Copied %d assignments from %s to %s (%d skipped)",
            len(copied),
            source_section_id,
            target_section_id,
            len(skipped),
        )
        return CopyReport(copied=tuple(copied), skipped=tuple(skipped), scenarios_copied=scenario_rows)


__all__ = ["ActiveCase", "AssignmentService", "CopyReport", "UNSET"]
