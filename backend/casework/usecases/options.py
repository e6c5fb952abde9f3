"""
Effective chat options for a section-case assignment.

Why:
    Instructors configure chat behaviour at three levels (global default,
    section default, per-assignment override). The chat runtime needs one
    complete record and must never be blocked by a broken configuration.

Behavior:
    - Resolution chain: assignment Custom -> section default -> global
      default -> `BUILTIN_CHAT_OPTIONS`. The result is never absent.
    - A corrupt record at any level is logged (`ConfigError`, WARNING) and
      skipped; the chain continues.
    - Reverting clears the override (Inherit) rather than copying values,
      so later edits of the defaults propagate.
    - Copies and "customize" snapshots store a complete, independent record.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Mapping, Optional, Union

from backend.casework.chat_options import (
    BUILTIN_CHAT_OPTIONS,
    ChatOptions,
    Custom,
    parse_chat_options,
)
from backend.casework.domain import GLOBAL_SCOPE, SectionCaseAssignment
from backend.casework.errors import ConfigError, ValidationError
from backend.casework.ports import ASSIGNMENTS, CHAT_DEFAULTS, CaseworkStoreProtocol, unwrap
from backend.casework.usecases.records import load_assignments, require_assignment, require_section

logger = logging.getLogger("casework.options")

SOURCE_ASSIGNMENT = "assignment"
SOURCE_SECTION = "section"
SOURCE_GLOBAL = "global"
SOURCE_BUILTIN = "builtin"

MODE_DEFAULT = "default"
MODE_CUSTOM = "custom"

COPY_TARGETS = ("section", "all_sections")

OptionsInput = Union[ChatOptions, Mapping[str, Any]]


@dataclass(frozen=True)
class ResolvedOptions:
    options: ChatOptions
    source: str


@dataclass(frozen=True)
class OptionsView:
    """What the settings panel shows for one assignment.

    `mode == "default"` means the values are inherited and read-only.
    """

    mode: str
    source: str
    options: ChatOptions

    def to_dict(self) -> dict[str, Any]:
        return {"mode": self.mode, "source": self.source, "options": self.options.to_dict()}


def coerce_options(options: OptionsInput) -> ChatOptions:
    if isinstance(options, ChatOptions):
        return options
    try:
        return parse_chat_options(options)
    except ConfigError as exc:
        raise ValidationError("invalid_chat_options", exc.detail) from exc


class AssignmentConfigResolver:
    def __init__(self, store: CaseworkStoreProtocol) -> None:
        self._store = store

    # --- Reads -------------------------------------------------------------------
    def get_default(self, scope: str) -> Optional[ChatOptions]:
        """Return the stored default for `scope` ("global" or a section id).

        Absent and corrupt records both yield None; corrupt ones are logged.
        """
        row = unwrap(self._store.get(CHAT_DEFAULTS, {"scope": scope}))
        if not row:
            return None
        try:
            return parse_chat_options(row.get("chat_options"))
        except ConfigError as exc:
            logger.warning("Ignoring corrupt chat options default (scope=%s): %s", scope, exc)
            return None

    def resolve_for(self, assignment: SectionCaseAssignment) -> ResolvedOptions:
        if isinstance(assignment.chat_options, Custom):
            resolved = ResolvedOptions(assignment.chat_options.options, SOURCE_ASSIGNMENT)
        else:
            if assignment.options_error:
                logger.warning(
                    "Ignoring corrupt chat options override (section=%s case=%s): %s",
                    assignment.section_id,
                    assignment.case_id,
                    assignment.options_error,
                )
            section_default = self.get_default(assignment.section_id)
            if section_default is not None:
                resolved = ResolvedOptions(section_default, SOURCE_SECTION)
            else:
                global_default = self.get_default(GLOBAL_SCOPE)
                if global_default is not None:
                    resolved = ResolvedOptions(global_default, SOURCE_GLOBAL)
                else:
                    resolved = ResolvedOptions(BUILTIN_CHAT_OPTIONS, SOURCE_BUILTIN)
        logger.debug(
            "Resolved chat options (section=%s case=%s) from %s",
            assignment.section_id,
            assignment.case_id,
            resolved.source,
        )
        return resolved

    def resolve_effective_options(self, section_id: str, case_id: str) -> ChatOptions:
        """Return the complete options record the chat runtime should use.

        Raises:
            NotFoundError: the section-case pair is not assigned.
            UpstreamStoreError: a store read failed.
        """
        return self.resolve_for(require_assignment(self._store, section_id, case_id)).options

    def describe_options(self, section_id: str, case_id: str) -> OptionsView:
        assignment = require_assignment(self._store, section_id, case_id)
        resolved = self.resolve_for(assignment)
        mode = MODE_CUSTOM if resolved.source == SOURCE_ASSIGNMENT else MODE_DEFAULT
        return OptionsView(mode=mode, source=resolved.source, options=resolved.options)

    # --- Writes ------------------------------------------------------------------
    def _write_override(self, section_id: str, case_id: str, value: Optional[dict]) -> None:
        unwrap(
            self._store.update(
                ASSIGNMENTS,
                eq={"section_id": section_id, "case_id": case_id},
                values={"chat_options": value},
            )
        )

    def customize(self, section_id: str, case_id: str) -> OptionsView:
        """Switch to custom mode, starting from the currently resolved values."""
        view = self.describe_options(section_id, case_id)
        if view.mode == MODE_CUSTOM:
            return view
        self._write_override(section_id, case_id, view.options.to_dict())
        return OptionsView(mode=MODE_CUSTOM, source=SOURCE_ASSIGNMENT, options=view.options)

    def update_custom(self, section_id: str, case_id: str, options: OptionsInput) -> OptionsView:
        """Store a complete override record.

        Raises:
            ValidationError: partial or invalid payload (nothing is written).
            NotFoundError: the pair is not assigned.
        """
        record = coerce_options(options)
        require_assignment(self._store, section_id, case_id)
        self._write_override(section_id, case_id, record.to_dict())
        return OptionsView(mode=MODE_CUSTOM, source=SOURCE_ASSIGNMENT, options=record)

    def revert_to_default(self, section_id: str, case_id: str) -> OptionsView:
        require_assignment(self._store, section_id, case_id)
        self._write_override(section_id, case_id, None)
        return self.describe_options(section_id, case_id)

    def copy_options(self, section_id: str, case_id: str, target: str = "section") -> int:
        """Copy the source's resolved options into other assignments.

        Parameters:
            target: "section" (other cases of the same section) or
                    "all_sections" (every other assignment everywhere).

        Returns:
            Number of assignments written.
        """
        if target not in COPY_TARGETS:
            raise ValidationError("invalid_copy_target", target)
        source = require_assignment(self._store, section_id, case_id)
        snapshot = self.resolve_for(source).options.to_dict()
        if target == "section":
            targets = load_assignments(self._store, section_id=section_id)
        else:
            targets = load_assignments(self._store)
        written = 0
        for other in targets:
            if other.section_id == section_id and other.case_id == case_id:
                continue
            self._write_override(other.section_id, other.case_id, dict(snapshot))
            written += 1
        logger.info("Copied chat options from %s/%s to %d assignments", section_id, case_id, written)
        return written

    def save_as_default(self, scope: str, options: OptionsInput) -> ChatOptions:
        """Upsert the global or a section default. Overrides stay untouched.

        Raises:
            ValidationError: invalid payload.
            NotFoundError: `scope` is neither "global" nor a known section.
        """
        record = coerce_options(options)
        if scope != GLOBAL_SCOPE:
            require_section(self._store, scope)
        existing = unwrap(self._store.get(CHAT_DEFAULTS, {"scope": scope}))
        if existing:
            unwrap(self._store.update(CHAT_DEFAULTS, eq={"scope": scope}, values={"chat_options": record.to_dict()}))
        else:
            unwrap(self._store.insert(CHAT_DEFAULTS, {"scope": scope, "chat_options": record.to_dict()}))
        return record


__all__ = [
    "AssignmentConfigResolver",
    "coerce_options",
    "COPY_TARGETS",
    "MODE_CUSTOM",
    "MODE_DEFAULT",
    "OptionsView",
    "ResolvedOptions",
    "SOURCE_ASSIGNMENT",
    "SOURCE_BUILTIN",
    "SOURCE_GLOBAL",
    "SOURCE_SECTION",
]
