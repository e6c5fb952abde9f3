"""
Casework domain records and constants.

Why:
    The store hands us plain rows (dicts with the column names of the existing
    tables). Parsing them once into small dataclasses keeps the use cases free
    of `row.get(...)` noise and puts every coercion rule (timestamps, tinyint
    flags, JSON columns) in one place.

Notes:
    - Naive timestamps are read as UTC; the store's DATETIME columns carry no
      zone.
    - A corrupt `chat_options` column does not make the assignment unreadable.
      It parses as `INHERIT` and keeps the parser's message in
      `options_error`, so the resolver can log it and move down the chain.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
import math
from typing import Any, Mapping, Optional

from backend.casework.chat_options import INHERIT, OptionsOverride, parse_override
from backend.casework.errors import ConfigError, UpstreamStoreError

OTHER_COURSES_PREFIX = "other:"

SCOPE_OTHER_COURSES = "other_courses"
SCOPE_UNASSIGNED = "unassigned"
GLOBAL_SCOPE = "global"

MANUAL_AUTO = "auto"
MANUAL_OPENED = "manually_opened"
MANUAL_CLOSED = "manually_closed"
MANUAL_STATUSES = frozenset({MANUAL_AUTO, MANUAL_OPENED, MANUAL_CLOSED})

SELECTION_STUDENT_CHOICE = "student_choice"
SELECTION_ALL_REQUIRED = "all_required"
SELECTION_MODES = frozenset({SELECTION_STUDENT_CHOICE, SELECTION_ALL_REQUIRED})

STATUS_COMPLETED = "completed"
STATUS_IN_PROGRESS = "in_progress"
STATUS_NOT_STARTED = "not_started"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_instant(value: object) -> Optional[datetime]:
    """Return an aware UTC datetime for a store value (None stays None)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError("invalid_timestamp") from exc
    else:
        raise ValueError("invalid_timestamp")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_instant(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def _flag(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    return bool(value)


def _opt_str(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def _stored_instant(row: Mapping[str, Any], column: str) -> Optional[datetime]:
    """Parse a timestamp column read back from the store.

    A malformed value is a store-side fault, not caller input.
    """
    try:
        return parse_instant(row.get(column))
    except ValueError as exc:
        raise UpstreamStoreError("malformed_row", f"{column}={row.get(column)!r}") from exc


def _opt_number(value: object) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = value
    else:
        try:
            number = float(str(value))
        except ValueError:
            return None
    # nan/inf would poison every average
    if not math.isfinite(number):
        return None
    return number


@dataclass(frozen=True)
class Section:
    section_id: str
    title: str
    year_term: Optional[str] = None
    enabled: bool = True
    accept_new_students: bool = True
    chat_model: Optional[str] = None
    super_model: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Section":
        return cls(
            section_id=str(row["section_id"]),
            title=str(row.get("section_title") or ""),
            year_term=_opt_str(row.get("year_term")),
            enabled=_flag(row.get("enabled"), True),
            accept_new_students=_flag(row.get("accept_new_students"), True),
            chat_model=_opt_str(row.get("chat_model")),
            super_model=_opt_str(row.get("super_model")),
        )


@dataclass(frozen=True)
class Case:
    case_id: str
    title: str
    protagonist: str = ""
    prompt: str = ""
    enabled: bool = True

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Case":
        return cls(
            case_id=str(row["case_id"]),
            title=str(row.get("case_title") or ""),
            protagonist=str(row.get("protagonist") or ""),
            prompt=str(row.get("chat_question") or ""),
            enabled=_flag(row.get("enabled"), True),
        )


@dataclass(frozen=True)
class SectionCaseAssignment:
    section_id: str
    case_id: str
    active: bool = False
    chat_options: OptionsOverride = INHERIT
    open_date: Optional[datetime] = None
    close_date: Optional[datetime] = None
    manual_status: str = MANUAL_AUTO
    use_scenarios: bool = False
    selection_mode: str = SELECTION_STUDENT_CHOICE
    require_order: bool = False
    created_at: Optional[datetime] = None
    options_error: Optional[str] = field(default=None, compare=False)

    @property
    def key(self) -> dict[str, str]:
        return {"section_id": self.section_id, "case_id": self.case_id}

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SectionCaseAssignment":
        options_error = None
        try:
            override = parse_override(row.get("chat_options"))
        except ConfigError as exc:
            override = INHERIT
            options_error = str(exc)
        manual = row.get("manual_status") or MANUAL_AUTO
        mode = row.get("selection_mode") or SELECTION_STUDENT_CHOICE
        return cls(
            section_id=str(row["section_id"]),
            case_id=str(row["case_id"]),
            active=_flag(row.get("active")),
            chat_options=override,
            open_date=_stored_instant(row, "open_date"),
            close_date=_stored_instant(row, "close_date"),
            manual_status=str(manual),
            use_scenarios=_flag(row.get("use_scenarios")),
            selection_mode=str(mode),
            require_order=_flag(row.get("require_order")),
            created_at=_stored_instant(row, "created_at"),
            options_error=options_error,
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "section_id": self.section_id,
            "case_id": self.case_id,
            "active": self.active,
            "chat_options": self.chat_options.to_store(),
            "open_date": format_instant(self.open_date),
            "close_date": format_instant(self.close_date),
            "manual_status": self.manual_status,
            "use_scenarios": self.use_scenarios,
            "selection_mode": self.selection_mode,
            "require_order": self.require_order,
            "created_at": format_instant(self.created_at),
        }


@dataclass(frozen=True)
class Scenario:
    scenario_id: str
    case_id: str
    name: str
    protagonist: str = ""
    time_limit_minutes: Optional[int] = None
    enabled: bool = True

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Scenario":
        limit = row.get("chat_time_limit")
        return cls(
            scenario_id=str(row["scenario_id"]),
            case_id=str(row["case_id"]),
            name=str(row.get("scenario_name") or ""),
            protagonist=str(row.get("protagonist") or ""),
            time_limit_minutes=int(limit) if limit else None,
            enabled=_flag(row.get("enabled"), True),
        )


@dataclass(frozen=True)
class ScenarioAssignment:
    section_id: str
    case_id: str
    scenario_id: str
    sort_order: int = 0
    enabled: bool = True

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ScenarioAssignment":
        return cls(
            section_id=str(row["section_id"]),
            case_id=str(row["case_id"]),
            scenario_id=str(row["scenario_id"]),
            sort_order=int(row.get("sort_order") or 0),
            enabled=_flag(row.get("enabled"), True),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "section_id": self.section_id,
            "case_id": self.case_id,
            "scenario_id": self.scenario_id,
            "sort_order": self.sort_order,
            "enabled": self.enabled,
        }


@dataclass(frozen=True)
class Student:
    id: str
    full_name: str = ""
    persona: Optional[str] = None
    section_id: Optional[str] = None
    finished_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Student":
        return cls(
            id=str(row["id"]),
            full_name=str(row.get("full_name") or ""),
            persona=_opt_str(row.get("persona")),
            section_id=_opt_str(row.get("section_id")),
            finished_at=_stored_instant(row, "finished_at"),
        )


@dataclass(frozen=True)
class Evaluation:
    id: str
    student_id: str
    created_at: datetime = _EPOCH
    case_id: Optional[str] = None
    scenario_id: Optional[str] = None
    score: Optional[float] = None
    hints: Optional[float] = None
    helpful: Optional[float] = None
    criteria: Any = None
    transcript: Optional[str] = None
    chat_model: Optional[str] = None
    super_model: Optional[str] = None
    allow_rechat: bool = False

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Evaluation":
        criteria = row.get("criteria")
        if isinstance(criteria, str):
            try:
                criteria = json.loads(criteria)
            except ValueError:
                pass
        scenario = row.get("scenario_id")
        return cls(
            id=str(row["id"]),
            student_id=str(row["student_id"]),
            created_at=_stored_instant(row, "created_at") or _EPOCH,
            case_id=_opt_str(row.get("case_id")),
            scenario_id=str(scenario) if scenario is not None else None,
            score=_opt_number(row.get("score")),
            hints=_opt_number(row.get("hints")),
            helpful=_opt_number(row.get("helpful")),
            criteria=criteria,
            transcript=row.get("transcript"),
            chat_model=_opt_str(row.get("chat_model")),
            super_model=_opt_str(row.get("super_model")),
            allow_rechat=_flag(row.get("allow_rechat")),
        )


__all__ = [
    "Case",
    "Evaluation",
    "GLOBAL_SCOPE",
    "MANUAL_AUTO",
    "MANUAL_CLOSED",
    "MANUAL_OPENED",
    "MANUAL_STATUSES",
    "OTHER_COURSES_PREFIX",
    "SCOPE_OTHER_COURSES",
    "SCOPE_UNASSIGNED",
    "SELECTION_ALL_REQUIRED",
    "SELECTION_MODES",
    "SELECTION_STUDENT_CHOICE",
    "STATUS_COMPLETED",
    "STATUS_IN_PROGRESS",
    "STATUS_NOT_STARTED",
    "Scenario",
    "ScenarioAssignment",
    "Section",
    "SectionCaseAssignment",
    "Student",
    "format_instant",
    "parse_instant",
]
