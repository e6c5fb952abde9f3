"""
Evaluation follow-ups: re-chat permission and completion lookup.
"""
from __future__ import annotations

import pytest

from backend.casework.errors import NotFoundError, ValidationError
from backend.casework.store_memory import InMemoryStore
from backend.casework.usecases.evaluations import EvaluationService
from utils.casework_seed import evaluation


def _store() -> InMemoryStore:
    return InMemoryStore(
        {
            "evaluations": [
                evaluation("e1", "st1", score=8, created_at="2025-01-10T10:00:00Z"),
                evaluation("e2", "st1", score=12, created_at="2025-01-12T10:00:00Z"),
                evaluation("e3", "st2", case_id="c2", score=3),
            ]
        }
    )


def test_set_allow_rechat_touches_only_that_evaluation():
    store = _store()
    updated = EvaluationService(store).set_allow_rechat("e2", True)
    assert updated.allow_rechat is True
    assert updated.score == 12
    flags = {r["id"]: r["allow_rechat"] for r in store.select("evaluations").data}
    assert flags == {"e1": False, "e2": True, "e3": False}


def test_set_allow_rechat_rejects_non_bool():
    with pytest.raises(ValidationError):
        EvaluationService(_store()).set_allow_rechat("e1", "yes")  # type: ignore[arg-type]


def test_set_allow_rechat_unknown_evaluation():
    with pytest.raises(NotFoundError) as exc:
        EvaluationService(_store()).set_allow_rechat("nope", True)
    assert exc.value.code == "evaluation_not_found"


def test_completion_uses_latest_evaluation():
    store = _store()
    svc = EvaluationService(store)
    assert svc.check_completion("st1", "c1").evaluation_id == "e2"
    assert svc.check_completion("st1", "c1").allow_rechat is False

    svc.set_allow_rechat("e2", True)
    status = svc.check_completion("st1", "c1")
    assert status.completed is True and status.allow_rechat is True


def test_completion_absent():
    status = EvaluationService(_store()).check_completion("st1", "c2")
    assert status.to_dict() == {"completed": False, "allow_rechat": False, "evaluation_id": None}


def test_completion_tie_prefers_later_stored_row():
    store = InMemoryStore(
        {
            "evaluations": [
                evaluation("a", "st1", created_at="2025-01-10T10:00:00Z"),
                evaluation("b", "st1", created_at="2025-01-10T10:00:00Z", allow_rechat=True),
            ]
        }
    )
    status = EvaluationService(store).check_completion("st1", "c1")
    assert status.evaluation_id == "b"
    assert status.allow_rechat is True
