from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from backend.casework.domain import Evaluation
from backend.casework.errors import NotFoundError, ValidationError
from backend.casework.ports import EVALUATIONS, CaseworkStoreProtocol, unwrap
from backend.casework.usecases.records import load_evaluations


@dataclass(frozen=True)
class CompletionStatus:
    completed: bool
    allow_rechat: bool = False
    evaluation_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "completed": self.completed,
            "allow_rechat": self.allow_rechat,
            "evaluation_id": self.evaluation_id,
        }


class EvaluationService:
    """Follow-up operations on stored evaluations.

    Evaluations are append-only; `allow_rechat` is the only field this
    service ever writes.
    """

    def __init__(self, store: CaseworkStoreProtocol) -> None:
        self._store = store

    def set_allow_rechat(self, evaluation_id: str, allow: bool) -> Evaluation:
        if not isinstance(allow, bool):
            raise ValidationError("invalid_allow_rechat", repr(allow))
        updated = unwrap(self._store.update(EVALUATIONS, eq={"id": evaluation_id}, values={"allow_rechat": allow}))
        if not updated:
            raise NotFoundError("evaluation_not_found", evaluation_id)
        return Evaluation.from_row(updated[0])

    def check_completion(self, student_id: str, case_id: str) -> CompletionStatus:
        """Report whether the student finished the case, based on the latest evaluation."""
        evaluations = load_evaluations(self._store, student_id=student_id, case_id=case_id)
        if not evaluations:
            return CompletionStatus(completed=False)
        # max() keeps the first of equal timestamps; prefer the later-stored one.
        latest = max(reversed(evaluations), key=lambda ev: ev.created_at)
        return CompletionStatus(completed=True, allow_rechat=latest.allow_rechat, evaluation_id=latest.id)


__all__ = ["CompletionStatus", "EvaluationService"]
