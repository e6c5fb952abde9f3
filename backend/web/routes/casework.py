"""
Casework API routes: roster, rollup, statistics and assignment management.

Why:
    The instructor dashboard and the chat runtime both consume the casework
    engine over JSON. This adapter stays thin: it parses payloads, calls the
    use cases and maps the error taxonomy onto HTTP status codes.

Behavior:
    - `NotFoundError` -> 404, `ValidationError` -> 400,
      `UpstreamStoreError` -> 502.
    - Every response carries `Cache-Control: private, no-store`; rosters and
      evaluations are student-scoped data.
    - The store is built lazily from the environment; tests swap it via
      `set_store`.
"""
from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, StrictBool, field_validator

from backend.casework.config import load_casework_config
from backend.casework.domain import Student, SectionCaseAssignment, format_instant, parse_instant
from backend.casework.errors import CaseworkError, NotFoundError, UpstreamStoreError, ValidationError
from backend.casework.ports import CaseworkStoreProtocol
from backend.casework.usecases.assignments import AssignmentService
from backend.casework.usecases.availability import check_availability
from backend.casework.usecases.evaluations import EvaluationService
from backend.casework.usecases.options import COPY_TARGETS, AssignmentConfigResolver
from backend.casework.usecases.records import load_evaluations, load_sections, load_students, require_assignment
from backend.casework.usecases.rollup import RollupService
from backend.casework.usecases.roster import classify_roster
from backend.casework.usecases.scenarios import ScenarioService
from backend.casework.usecases.stats import compute_stats, summarize_sections
from backend.casework.wiring import build_store

logger = logging.getLogger("casework.web")

casework_router = APIRouter(tags=["Casework"])

_STORE: Optional[CaseworkStoreProtocol] = None


def _get_store() -> CaseworkStoreProtocol:  # pragma: no cover - simple accessor
    global _STORE
    if _STORE is None:
        _STORE = build_store()
    return _STORE


def set_store(store: Optional[CaseworkStoreProtocol]) -> None:
    """Allow tests to swap the casework store (None rebuilds from env)."""
    global _STORE
    _STORE = store


# --- Responses -------------------------------------------------------------------

def _json_private(payload, *, status_code: int = 200) -> JSONResponse:
    """Return a JSONResponse with cache disabled for shared caches and browsers."""
    return JSONResponse(content=payload, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def _error_response(exc: CaseworkError) -> JSONResponse:
    if isinstance(exc, NotFoundError):
        return _json_private({"error": "not_found", "detail": exc.code}, status_code=404)
    if isinstance(exc, ValidationError):
        return _json_private({"error": "bad_request", "detail": exc.code, "message": exc.detail}, status_code=400)
    if isinstance(exc, UpstreamStoreError):
        logger.warning("Casework store failure: %s", exc)
        return _json_private({"error": "bad_gateway", "detail": "store_unavailable"}, status_code=502)
    logger.warning("Unhandled casework error: %s", exc)
    return _json_private({"error": "server_error", "detail": exc.code}, status_code=500)


def _now(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        return parse_instant(value)  # type: ignore[return-value]
    except ValueError as exc:
        raise ValidationError("invalid_now", value) from exc


def _serialize_student(student: Student) -> dict:
    return {
        "id": student.id,
        "full_name": student.full_name,
        "persona": student.persona,
        "section_id": student.section_id,
        "finished_at": format_instant(student.finished_at),
    }


def _serialize_assignment(assignment: SectionCaseAssignment) -> dict:
    row = assignment.to_row()
    row["options_mode"] = "default" if row["chat_options"] is None else "custom"
    return row


# --- Request models --------------------------------------------------------------

class AssignCasePayload(BaseModel):
    case_id: str = Field(..., min_length=1, max_length=100)
    active: bool = False
    chat_options: Optional[dict[str, Any]] = None
    open_date: Optional[datetime] = None
    close_date: Optional[datetime] = None
    manual_status: str = "auto"


class SchedulingPayload(BaseModel):
    """Partial update: only fields present in the body are applied."""

    open_date: Optional[datetime] = None
    close_date: Optional[datetime] = None
    manual_status: Optional[str] = None


class OptionsPayload(BaseModel):
    options: dict[str, Any]


class CopyOptionsPayload(BaseModel):
    target: str = "section"

    @field_validator("target")
    @classmethod
    def _known_target(cls, v: str) -> str:
        if v not in COPY_TARGETS:
            raise ValueError("invalid_copy_target")
        return v


class CopyAssignmentsPayload(BaseModel):
    copy_options: bool = True
    copy_scheduling: bool = True
    copy_scenarios: bool = True


class ScenarioIdsPayload(BaseModel):
    scenario_ids: list[str] = Field(..., min_length=1)

    @field_validator("scenario_ids")
    @classmethod
    def _strip_ids(cls, v: list[str]) -> list[str]:
        ids = [s.strip() for s in v]
        if any(not s for s in ids):
            raise ValueError("invalid_scenario_id")
        return ids


class ScenarioOrderPayload(BaseModel):
    scenario_ids: list[str]


class ScenarioEnabledPayload(BaseModel):
    enabled: StrictBool


class SelectionPayload(BaseModel):
    selection_mode: Optional[str] = None
    require_order: Optional[StrictBool] = None
    use_scenarios: Optional[StrictBool] = None


class AllowRechatPayload(BaseModel):
    allow_rechat: StrictBool


# --- Roster, rollup & statistics -------------------------------------------------

@casework_router.get("/api/casework/config")
async def get_config():
    """Expose the dashboard poll interval (seconds)."""
    try:
        cfg = load_casework_config()
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private({"poll_seconds": cfg.poll_seconds})


@casework_router.get("/api/casework/roster")
async def get_roster():
    """Return all students partitioned into assigned / other_courses / unassigned."""
    try:
        store = _get_store()
        partition = classify_roster(load_students(store), load_sections(store))
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private(
        {
            "assigned": [_serialize_student(s) for s in partition.assigned],
            "other_courses": [_serialize_student(s) for s in partition.other_courses],
            "unassigned": [_serialize_student(s) for s in partition.unassigned],
        }
    )


@casework_router.get("/api/casework/rollup")
async def get_rollup(scope: str, case_id: Optional[str] = None):
    """
    Per-attempt rollup for a section id or the `other_courses`/`unassigned` bucket.

    Behavior:
        - 200 with rows (completed first, newest first, then idle students)
        - 404 for an unknown scope
    """
    try:
        rows = RollupService(_get_store()).rollup_students(scope, case_id or None)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private([r.to_dict() for r in rows])


@casework_router.get("/api/casework/stats")
async def get_stats(scope: str, case_id: Optional[str] = None):
    try:
        rows = RollupService(_get_store()).rollup_students(scope, case_id or None)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private(compute_stats(rows).to_dict())


@casework_router.get("/api/casework/overview")
async def get_overview():
    """Per-section student counts including the synthetic buckets."""
    try:
        store = _get_store()
        summaries = summarize_sections(load_students(store), load_sections(store), load_evaluations(store))
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private([s.to_dict() for s in summaries])


# --- Assignments -----------------------------------------------------------------

@casework_router.get("/api/casework/sections/{section_id}/assignments")
async def list_assignments(section_id: str):
    try:
        items = AssignmentService(_get_store()).list_assignments(section_id)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private([_serialize_assignment(a) for a in items])


@casework_router.post("/api/casework/sections/{section_id}/assignments")
async def assign_case(section_id: str, payload: AssignCasePayload):
    """
    Assign a case to a section.

    Behavior:
        - 201 with the new assignment
        - 400 when already assigned or the schedule/options are invalid
        - 404 for an unknown section or case
    """
    try:
        assignment = AssignmentService(_get_store()).assign_case(
            section_id,
            payload.case_id.strip(),
            active=payload.active,
            chat_options=payload.chat_options,
            open_date=payload.open_date,
            close_date=payload.close_date,
            manual_status=payload.manual_status,
        )
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private(_serialize_assignment(assignment), status_code=201)


@casework_router.delete("/api/casework/sections/{section_id}/assignments/{case_id}")
async def unassign_case(section_id: str, case_id: str):
    try:
        AssignmentService(_get_store()).unassign_case(section_id, case_id)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private({"deleted": True})


@casework_router.post("/api/casework/sections/{section_id}/assignments/{case_id}/activate")
async def activate_assignment(section_id: str, case_id: str):
    try:
        assignment = AssignmentService(_get_store()).activate(section_id, case_id)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private(_serialize_assignment(assignment))


@casework_router.post("/api/casework/sections/{section_id}/assignments/{case_id}/deactivate")
async def deactivate_assignment(section_id: str, case_id: str):
    try:
        assignment = AssignmentService(_get_store()).deactivate(section_id, case_id)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private(_serialize_assignment(assignment))


@casework_router.patch("/api/casework/sections/{section_id}/assignments/{case_id}/scheduling")
async def update_scheduling(section_id: str, case_id: str, payload: SchedulingPayload):
    try:
        changes = {name: getattr(payload, name) for name in payload.model_fields_set}
        assignment = AssignmentService(_get_store()).update_scheduling(section_id, case_id, **changes)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private(_serialize_assignment(assignment))


@casework_router.get("/api/casework/sections/{section_id}/assignments/{case_id}/availability")
async def get_availability(section_id: str, case_id: str, now: Optional[str] = None):
    """Answer "may a new attempt begin now?" (optionally at an explicit `now`)."""
    try:
        instant = _now(now)
        assignment = require_assignment(_get_store(), section_id, case_id)
    except CaseworkError as exc:
        return _error_response(exc)
    result = check_availability(assignment, instant)
    return _json_private({"available": result.available, "reason": result.reason})


@casework_router.get("/api/casework/sections/{section_id}/active-case")
async def get_active_case(section_id: str, student_id: Optional[str] = None, now: Optional[str] = None):
    """
    Active case of a section with availability, options and scenario plan.

    Why:
        The chat runtime calls this once before admitting a student.
    """
    try:
        active = AssignmentService(_get_store()).get_active_case(section_id, now=_now(now), student_id=student_id)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private(active.to_dict())


@casework_router.post("/api/casework/sections/{target_section_id}/copy-from/{source_section_id}")
async def copy_assignments(target_section_id: str, source_section_id: str, payload: CopyAssignmentsPayload):
    try:
        report = AssignmentService(_get_store()).copy_assignments(
            source_section_id,
            target_section_id,
            copy_options=payload.copy_options,
            copy_scheduling=payload.copy_scheduling,
            copy_scenarios=payload.copy_scenarios,
        )
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private(report.to_dict())


# --- Chat options ----------------------------------------------------------------

@casework_router.get("/api/casework/sections/{section_id}/assignments/{case_id}/options")
async def describe_options(section_id: str, case_id: str):
    try:
        view = AssignmentConfigResolver(_get_store()).describe_options(section_id, case_id)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private(view.to_dict())


@casework_router.post("/api/casework/sections/{section_id}/assignments/{case_id}/options/customize")
async def customize_options(section_id: str, case_id: str):
    try:
        view = AssignmentConfigResolver(_get_store()).customize(section_id, case_id)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private(view.to_dict())


@casework_router.put("/api/casework/sections/{section_id}/assignments/{case_id}/options")
async def update_options(section_id: str, case_id: str, payload: OptionsPayload):
    try:
        view = AssignmentConfigResolver(_get_store()).update_custom(section_id, case_id, payload.options)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private(view.to_dict())


@casework_router.delete("/api/casework/sections/{section_id}/assignments/{case_id}/options")
async def revert_options(section_id: str, case_id: str):
    try:
        view = AssignmentConfigResolver(_get_store()).revert_to_default(section_id, case_id)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private(view.to_dict())


@casework_router.post("/api/casework/sections/{section_id}/assignments/{case_id}/options/copy")
async def copy_options(section_id: str, case_id: str, payload: CopyOptionsPayload):
    try:
        written = AssignmentConfigResolver(_get_store()).copy_options(section_id, case_id, payload.target)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private({"updated": written})


@casework_router.get("/api/casework/defaults/{scope}")
async def get_default(scope: str):
    try:
        options = AssignmentConfigResolver(_get_store()).get_default(scope)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private({"scope": scope, "options": options.to_dict() if options else None})


@casework_router.put("/api/casework/defaults/{scope}")
async def save_default(scope: str, payload: OptionsPayload):
    try:
        options = AssignmentConfigResolver(_get_store()).save_as_default(scope, payload.options)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private({"scope": scope, "options": options.to_dict()})


# --- Scenarios -------------------------------------------------------------------

@casework_router.get("/api/casework/sections/{section_id}/assignments/{case_id}/scenarios")
async def plan_scenarios(section_id: str, case_id: str, student_id: str):
    try:
        plan = ScenarioService(_get_store()).plan_for_student(section_id, case_id, student_id)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private(plan.to_dict())


@casework_router.post("/api/casework/sections/{section_id}/assignments/{case_id}/scenarios")
async def assign_scenarios(section_id: str, case_id: str, payload: ScenarioIdsPayload):
    try:
        added = ScenarioService(_get_store()).assign_scenarios(section_id, case_id, payload.scenario_ids)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private({"added": added}, status_code=201)


@casework_router.put("/api/casework/sections/{section_id}/assignments/{case_id}/scenarios/order")
async def reorder_scenarios(section_id: str, case_id: str, payload: ScenarioOrderPayload):
    try:
        ScenarioService(_get_store()).reorder_scenarios(section_id, case_id, payload.scenario_ids)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private({"scenario_ids": payload.scenario_ids})


@casework_router.delete("/api/casework/sections/{section_id}/assignments/{case_id}/scenarios/{scenario_id}")
async def unassign_scenario(section_id: str, case_id: str, scenario_id: str):
    try:
        ScenarioService(_get_store()).unassign_scenario(section_id, case_id, scenario_id)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private({"deleted": True})


@casework_router.patch("/api/casework/sections/{section_id}/assignments/{case_id}/scenarios/{scenario_id}")
async def set_scenario_enabled(section_id: str, case_id: str, scenario_id: str, payload: ScenarioEnabledPayload):
    try:
        ScenarioService(_get_store()).set_scenario_enabled(section_id, case_id, scenario_id, payload.enabled)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private({"scenario_id": scenario_id, "enabled": payload.enabled})


@casework_router.post("/api/casework/sections/{section_id}/assignments/{case_id}/scenarios/{scenario_id}/check")
async def check_scenario_selection(section_id: str, case_id: str, scenario_id: str, student_id: str):
    """400 `scenario_not_eligible` when the student may not start this scenario yet."""
    try:
        item = ScenarioService(_get_store()).check_selection(section_id, case_id, student_id, scenario_id)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private(item.to_dict())


@casework_router.patch("/api/casework/sections/{section_id}/assignments/{case_id}/selection")
async def update_selection(section_id: str, case_id: str, payload: SelectionPayload):
    """
    Update selection mode, order flag and/or the scenario switch.

    Behavior:
        - The merged mode/order state is validated before anything is written.
    """
    try:
        service = ScenarioService(_get_store())
        if payload.selection_mode is not None or payload.require_order is not None:
            service.update_selection_mode(
                section_id,
                case_id,
                selection_mode=payload.selection_mode,
                require_order=payload.require_order,
            )
        if payload.use_scenarios is not None:
            service.set_use_scenarios(section_id, case_id, payload.use_scenarios)
        assignment = require_assignment(_get_store(), section_id, case_id)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private(_serialize_assignment(assignment))


# --- Evaluations -----------------------------------------------------------------

@casework_router.patch("/api/casework/evaluations/{evaluation_id}")
async def set_allow_rechat(evaluation_id: str, payload: AllowRechatPayload):
    try:
        ev = EvaluationService(_get_store()).set_allow_rechat(evaluation_id, payload.allow_rechat)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private({"id": ev.id, "allow_rechat": ev.allow_rechat})


@casework_router.get("/api/casework/students/{student_id}/completion")
async def check_completion(student_id: str, case_id: str):
    try:
        status = EvaluationService(_get_store()).check_completion(student_id, case_id)
    except CaseworkError as exc:
        return _error_response(exc)
    return _json_private(status.to_dict())


__all__ = ["casework_router", "set_store"]
