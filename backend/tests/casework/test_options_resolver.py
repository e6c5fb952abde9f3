"""
Chat options resolution chain and the instructor editing flows.
"""
from __future__ import annotations

import logging

import pytest

from backend.casework.chat_options import BUILTIN_CHAT_OPTIONS, parse_chat_options
from backend.casework.errors import NotFoundError, ValidationError
from backend.casework.store_memory import InMemoryStore
from backend.casework.usecases.options import AssignmentConfigResolver
from backend.casework.usecases.records import require_assignment
from utils.casework_seed import assignment, baseline_store, default, options


def _resolver(store):
    return AssignmentConfigResolver(store)


def test_no_override_and_no_defaults_yields_builtin():
    store = baseline_store()
    assert _resolver(store).resolve_effective_options("s1", "c1") == BUILTIN_CHAT_OPTIONS


def test_builtin_values_match_reference_record():
    assert BUILTIN_CHAT_OPTIONS.hints_allowed == 3
    assert BUILTIN_CHAT_OPTIONS.free_hints == 1
    assert BUILTIN_CHAT_OPTIONS.allowed_personas == ("moderate", "strict", "liberal", "leading", "sycophantic")
    assert BUILTIN_CHAT_OPTIONS.default_persona == "moderate"
    assert BUILTIN_CHAT_OPTIONS.show_case is True and BUILTIN_CHAT_OPTIONS.do_evaluation is True
    assert BUILTIN_CHAT_OPTIONS.allow_repeat is False


def test_chain_precedence():
    store = baseline_store()
    store.insert("chat_options_defaults", default("global", hints_allowed=5))
    resolver = _resolver(store)
    resolved = resolver.resolve_for(require_assignment(store, "s1", "c1"))
    assert (resolved.source, resolved.options.hints_allowed) == ("global", 5)

    store.insert("chat_options_defaults", default("s1", hints_allowed=7))
    resolved = resolver.resolve_for(require_assignment(store, "s1", "c1"))
    assert (resolved.source, resolved.options.hints_allowed) == ("section", 7)

    resolver.update_custom("s1", "c1", options(hints_allowed=9))
    resolved = resolver.resolve_for(require_assignment(store, "s1", "c1"))
    assert (resolved.source, resolved.options.hints_allowed) == ("assignment", 9)


def test_unknown_pair_raises_not_found():
    with pytest.raises(NotFoundError):
        _resolver(baseline_store()).resolve_effective_options("s1", "c3")


def test_corrupt_section_default_falls_through_to_global(caplog: pytest.LogCaptureFixture):
    store = baseline_store()
    store.insert("chat_options_defaults", {"scope": "s1", "chat_options": "{not json"})
    store.insert("chat_options_defaults", default("global", free_hints=4))
    with caplog.at_level(logging.WARNING, logger="casework.options"):
        result = _resolver(store).resolve_effective_options("s1", "c1")
    assert result.free_hints == 4
    assert any("corrupt" in rec.getMessage() for rec in caplog.records)


def test_partial_global_default_falls_back_to_builtin():
    store = baseline_store()
    store.insert("chat_options_defaults", {"scope": "global", "chat_options": {"hints_allowed": 1}})
    assert _resolver(store).resolve_effective_options("s1", "c1") == BUILTIN_CHAT_OPTIONS


def test_corrupt_override_is_skipped():
    store = InMemoryStore(
        {
            "sections": [{"section_id": "s1", "section_title": "A"}],
            "cases": [{"case_id": "c1", "case_title": "X"}],
            "section_cases": [assignment("s1", "c1", chat_options={"hints_allowed": "lots"})],
            "chat_options_defaults": [default("s1", hints_allowed=2)],
        }
    )
    view = _resolver(store).describe_options("s1", "c1")
    assert view.mode == "default"
    assert view.options.hints_allowed == 2


def test_revert_propagates_later_default_edits():
    store = baseline_store()
    resolver = _resolver(store)
    resolver.save_as_default("s1", options(hints_allowed=4))
    resolver.update_custom("s1", "c1", options(hints_allowed=8))

    view = resolver.revert_to_default("s1", "c1")
    assert view.mode == "default"
    assert view.options.hints_allowed == 4

    resolver.save_as_default("s1", options(hints_allowed=6))
    assert resolver.resolve_effective_options("s1", "c1").hints_allowed == 6


def test_customize_snapshots_resolved_value():
    store = baseline_store()
    resolver = _resolver(store)
    resolver.save_as_default("global", options(chatbot_personality="terse"))

    before = resolver.describe_options("s1", "c1")
    after = resolver.customize("s1", "c1")
    assert before.mode == "default" and after.mode == "custom"
    assert after.options == before.options

    # The snapshot is independent of later default edits.
    resolver.save_as_default("global", options(chatbot_personality="chatty"))
    assert resolver.resolve_effective_options("s1", "c1").chatbot_personality == "terse"


def test_update_custom_rejects_partial_payload_without_writing():
    store = baseline_store()
    resolver = _resolver(store)
    with pytest.raises(ValidationError):
        resolver.update_custom("s1", "c1", {"hints_allowed": 2})
    assert store.get("section_cases", {"section_id": "s1", "case_id": "c1"}).data["chat_options"] is None


def test_update_custom_rejects_out_of_range_values():
    with pytest.raises(ValidationError):
        _resolver(baseline_store()).update_custom("s1", "c1", options(hints_allowed=11))


def test_copy_options_within_section_writes_deep_copies():
    store = baseline_store()
    store.insert("section_cases", assignment("s1", "c3"))
    resolver = _resolver(store)
    resolver.save_as_default("s1", options(hints_allowed=2))

    assert resolver.copy_options("s1", "c1", "section") == 2

    rows = store.select("section_cases", eq={"section_id": "s1"}).data
    copied = [r for r in rows if r["case_id"] != "c1"]
    assert all(parse_chat_options(r["chat_options"]).hints_allowed == 2 for r in copied)
    # Source keeps inheriting; s2 untouched.
    assert resolver.describe_options("s1", "c1").mode == "default"
    assert resolver.describe_options("s2", "c1").mode == "default"

    # Later default edits do not reach copied targets.
    resolver.save_as_default("s1", options(hints_allowed=9))
    assert resolver.resolve_effective_options("s1", "c2").hints_allowed == 2


def test_copy_options_all_sections():
    store = baseline_store()
    resolver = _resolver(store)
    resolver.update_custom("s1", "c1", options(free_hints=5))
    assert resolver.copy_options("s1", "c1", "all_sections") == 2
    assert resolver.resolve_effective_options("s2", "c1").free_hints == 5


def test_copy_options_rejects_unknown_target():
    with pytest.raises(ValidationError):
        _resolver(baseline_store()).copy_options("s1", "c1", "everywhere")


def test_save_as_default_never_touches_overrides():
    store = baseline_store()
    resolver = _resolver(store)
    resolver.update_custom("s1", "c2", options(hints_allowed=1))
    resolver.save_as_default("s1", options(hints_allowed=10))
    resolver.save_as_default("global", options(hints_allowed=0))
    assert resolver.resolve_effective_options("s1", "c2").hints_allowed == 1
    assert resolver.get_default("s1").hints_allowed == 10
    assert resolver.get_default("global").hints_allowed == 0


def test_save_as_default_for_unknown_section_raises():
    with pytest.raises(NotFoundError):
        _resolver(baseline_store()).save_as_default("s-missing", options())


def test_get_default_absent_is_none():
    assert _resolver(baseline_store()).get_default("global") is None
