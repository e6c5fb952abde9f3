"""Use case layer for the casework engine.

Re-export the services and pure functions for convenient imports in tests.
"""

from .assignments import ActiveCase, AssignmentService, CopyReport
from .availability import Availability, check_availability, is_assignment_available
from .evaluations import CompletionStatus, EvaluationService
from .options import AssignmentConfigResolver, OptionsView, ResolvedOptions
from .rollup import RollupRow, RollupService, build_rollup
from .roster import RosterPartition, classify_roster, classify_student, roster_for_scope
from .scenarios import ScenarioPlan, ScenarioPlanItem, ScenarioService, plan_scenarios
from .stats import SectionStats, SectionSummary, compute_stats, summarize_sections

__all__ = [
    "ActiveCase",
    "AssignmentConfigResolver",
    "AssignmentService",
    "Availability",
    "CompletionStatus",
    "CopyReport",
    "EvaluationService",
    "OptionsView",
    "ResolvedOptions",
    "RollupRow",
    "RollupService",
    "RosterPartition",
    "ScenarioPlan",
    "ScenarioPlanItem",
    "ScenarioService",
    "SectionStats",
    "SectionSummary",
    "build_rollup",
    "check_availability",
    "classify_roster",
    "classify_student",
    "compute_stats",
    "is_assignment_available",
    "plan_scenarios",
    "roster_for_scope",
    "summarize_sections",
]
