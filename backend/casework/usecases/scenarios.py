"""
Scenario eligibility and scenario assignment management.

Why:
    A case can be run in several persona/time-limit variants. Instructors
    either let students pick one (`student_choice`) or require all of them
    (`all_required`), optionally in a fixed order. The chat runtime asks the
    planner which scenarios a student may start right now.

Behavior:
    - `use_scenarios = False` makes the planner inert; stored rows are kept.
    - Items follow `sort_order`, then scenario id. Disabled rows and disabled
      scenarios are skipped.
    - Ordered mode: item k is eligible once every earlier item has a
      completed evaluation for the same student, case and scenario.
    - Unassigning a scenario never touches evaluations.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

from backend.casework.domain import (
    SELECTION_ALL_REQUIRED,
    SELECTION_MODES,
    SELECTION_STUDENT_CHOICE,
    Evaluation,
    Scenario,
    ScenarioAssignment,
    SectionCaseAssignment,
)
from backend.casework.errors import NotFoundError, ValidationError
from backend.casework.ports import ASSIGNMENTS, SCENARIO_ASSIGNMENTS, CaseworkStoreProtocol, unwrap
from backend.casework.usecases.records import (
    load_evaluations,
    load_scenario_assignments,
    load_scenarios,
    require_assignment,
)


@dataclass(frozen=True)
class ScenarioPlanItem:
    scenario_id: str
    name: str
    protagonist: str
    time_limit_minutes: Optional[int]
    sort_order: int
    eligible: bool
    completed: bool
    completed_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario_id": self.scenario_id,
            "name": self.name,
            "protagonist": self.protagonist,
            "time_limit_minutes": self.time_limit_minutes,
            "sort_order": self.sort_order,
            "eligible": self.eligible,
            "completed": self.completed,
            "completed_count": self.completed_count,
        }


@dataclass(frozen=True)
class ScenarioPlan:
    active: bool
    selection_mode: str
    require_order: bool
    items: tuple[ScenarioPlanItem, ...] = ()
    next_required: Optional[str] = None

    @property
    def completed_count(self) -> int:
        return sum(1 for item in self.items if item.completed)

    @property
    def all_completed(self) -> bool:
        return bool(self.items) and all(item.completed for item in self.items)

    @property
    def eligible_ids(self) -> list[str]:
        return [item.scenario_id for item in self.items if item.eligible]

    def to_dict(self) -> dict[str, Any]:
        return {
            "active": self.active,
            "selection_mode": self.selection_mode,
            "require_order": self.require_order,
            "items": [item.to_dict() for item in self.items],
            "next_required": self.next_required,
            "completed_count": self.completed_count,
            "all_completed": self.all_completed,
        }


def plan_scenarios(
    assignment: SectionCaseAssignment,
    scenario_assignments: Iterable[ScenarioAssignment],
    scenarios: Iterable[Scenario],
    evaluations: Iterable[Evaluation],
    student_id: str,
) -> ScenarioPlan:
    """Compute which assigned scenarios the student may start."""
    if not assignment.use_scenarios:
        return ScenarioPlan(
            active=False,
            selection_mode=assignment.selection_mode,
            require_order=assignment.require_order,
        )
    catalog = {s.scenario_id: s for s in scenarios if s.case_id == assignment.case_id and s.enabled}
    rows = sorted(
        (
            r for r in scenario_assignments
            if r.enabled
            and r.section_id == assignment.section_id
            and r.case_id == assignment.case_id
            and r.scenario_id in catalog
        ),
        key=lambda r: (r.sort_order, r.scenario_id),
    )
    done: dict[str, int] = {}
    for ev in evaluations:
        if ev.student_id == student_id and ev.case_id == assignment.case_id and ev.scenario_id:
            done[ev.scenario_id] = done.get(ev.scenario_id, 0) + 1

    ordered = assignment.selection_mode == SELECTION_ALL_REQUIRED and assignment.require_order
    items = []
    next_required = None
    prefix_done = True
    for row in rows:
        scenario = catalog[row.scenario_id]
        count = done.get(row.scenario_id, 0)
        eligible = prefix_done if ordered else True
        if ordered and next_required is None and count == 0:
            next_required = row.scenario_id
        items.append(
            ScenarioPlanItem(
                scenario_id=row.scenario_id,
                name=scenario.name,
                protagonist=scenario.protagonist,
                time_limit_minutes=scenario.time_limit_minutes,
                sort_order=row.sort_order,
                eligible=eligible,
                completed=count > 0,
                completed_count=count,
            )
        )
        prefix_done = prefix_done and count > 0
    return ScenarioPlan(
        active=True,
        selection_mode=assignment.selection_mode,
        require_order=assignment.require_order,
        items=tuple(items),
        next_required=next_required,
    )


def _validate_mode(selection_mode: str, require_order: bool) -> None:
    if selection_mode not in SELECTION_MODES:
        raise ValidationError("invalid_selection_mode", selection_mode)
    if require_order and selection_mode == SELECTION_STUDENT_CHOICE:
        raise ValidationError("invalid_selection_mode", "require_order needs all_required")


class ScenarioService:
    def __init__(self, store: CaseworkStoreProtocol) -> None:
        self._store = store

    def _set_assignment(self, section_id: str, case_id: str, values: dict) -> None:
        unwrap(self._store.update(ASSIGNMENTS, eq={"section_id": section_id, "case_id": case_id}, values=values))

    def plan_for_student(self, section_id: str, case_id: str, student_id: str) -> ScenarioPlan:
        assignment = require_assignment(self._store, section_id, case_id)
        return self.plan_for_assignment(assignment, student_id)

    def plan_for_assignment(self, assignment: SectionCaseAssignment, student_id: str) -> ScenarioPlan:
        if not assignment.use_scenarios:
            return plan_scenarios(assignment, (), (), (), student_id)
        return plan_scenarios(
            assignment,
            load_scenario_assignments(self._store, assignment.section_id, assignment.case_id),
            load_scenarios(self._store, assignment.case_id),
            load_evaluations(self._store, student_id=student_id, case_id=assignment.case_id),
            student_id,
        )

    def check_selection(self, section_id: str, case_id: str, student_id: str, scenario_id: str) -> ScenarioPlanItem:
        """Return the plan item when the student may start `scenario_id`.

        Raises:
            ValidationError: scenarios are off or the scenario is not eligible.
        """
        plan = self.plan_for_student(section_id, case_id, student_id)
        if not plan.active:
            raise ValidationError("scenarios_disabled", f"{section_id}/{case_id}")
        for item in plan.items:
            if item.scenario_id == scenario_id and item.eligible:
                return item
        raise ValidationError("scenario_not_eligible", scenario_id)

    def assign_scenarios(self, section_id: str, case_id: str, scenario_ids: Sequence[str]) -> list[str]:
        """Append scenarios to the assignment and switch scenarios on.

        Returns:
            The ids actually added (already assigned ids are skipped).
        """
        require_assignment(self._store, section_id, case_id)
        known = {s.scenario_id for s in load_scenarios(self._store, case_id)}
        foreign = [sid for sid in scenario_ids if sid not in known]
        if foreign:
            raise ValidationError("scenario_not_in_case", ",".join(foreign))
        rows = load_scenario_assignments(self._store, section_id, case_id)
        present = {r.scenario_id for r in rows}
        next_order = max((r.sort_order for r in rows), default=0) + 1
        added = []
        for sid in scenario_ids:
            if sid in present:
                continue
            row = ScenarioAssignment(section_id, case_id, sid, sort_order=next_order)
            unwrap(self._store.insert(SCENARIO_ASSIGNMENTS, row.to_row()))
            present.add(sid)
            added.append(sid)
            next_order += 1
        self._set_assignment(section_id, case_id, {"use_scenarios": True})
        return added

    def unassign_scenario(self, section_id: str, case_id: str, scenario_id: str) -> None:
        removed = unwrap(
            self._store.delete(
                SCENARIO_ASSIGNMENTS,
                eq={"section_id": section_id, "case_id": case_id, "scenario_id": scenario_id},
            )
        )
        if not removed:
            raise NotFoundError("scenario_assignment_not_found", scenario_id)
        if not load_scenario_assignments(self._store, section_id, case_id):
            self._set_assignment(section_id, case_id, {"use_scenarios": False})

    def reorder_scenarios(self, section_id: str, case_id: str, scenario_ids: Sequence[str]) -> None:
        rows = load_scenario_assignments(self._store, section_id, case_id)
        if sorted(scenario_ids) != sorted(r.scenario_id for r in rows) or len(set(scenario_ids)) != len(scenario_ids):
            raise ValidationError("invalid_scenario_order", "expected a permutation of the assigned scenarios")
        for position, sid in enumerate(scenario_ids, start=1):
            unwrap(
                self._store.update(
                    SCENARIO_ASSIGNMENTS,
                    eq={"section_id": section_id, "case_id": case_id, "scenario_id": sid},
                    values={"sort_order": position},
                )
            )

    def set_scenario_enabled(self, section_id: str, case_id: str, scenario_id: str, enabled: bool) -> None:
        if not isinstance(enabled, bool):
            raise ValidationError("invalid_enabled", repr(enabled))
        updated = unwrap(
            self._store.update(
                SCENARIO_ASSIGNMENTS,
                eq={"section_id": section_id, "case_id": case_id, "scenario_id": scenario_id},
                values={"enabled": enabled},
            )
        )
        if not updated:
            raise NotFoundError("scenario_assignment_not_found", scenario_id)

    def update_selection_mode(
        self,
        section_id: str,
        case_id: str,
        *,
        selection_mode: Optional[str] = None,
        require_order: Optional[bool] = None,
    ) -> SectionCaseAssignment:
        """Change selection mode and/or order flag, validating the merged state."""
        current = require_assignment(self._store, section_id, case_id)
        mode = current.selection_mode if selection_mode is None else selection_mode
        ordered = current.require_order if require_order is None else require_order
        _validate_mode(mode, ordered)
        self._set_assignment(section_id, case_id, {"selection_mode": mode, "require_order": ordered})
        return require_assignment(self._store, section_id, case_id)

    def set_use_scenarios(self, section_id: str, case_id: str, enabled: bool) -> None:
        require_assignment(self._store, section_id, case_id)
        self._set_assignment(section_id, case_id, {"use_scenarios": bool(enabled)})


__all__ = ["ScenarioPlan", "ScenarioPlanItem", "ScenarioService", "plan_scenarios"]
