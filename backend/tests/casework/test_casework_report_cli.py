"""
casework_report CLI: JSON output and error handling.
"""
from __future__ import annotations

import json

from click.testing import CliRunner

from backend.tools.casework_report import build_report, cli
from utils.casework_seed import baseline_store, evaluation, student


def _store():
    store = baseline_store()
    store.insert("students", student("st1", "s1"))
    store.insert("students", student("st2", "s1"))
    store.insert("evaluations", evaluation("e1", "st1", score=9))
    return store


def test_report_prints_stats_json():
    result = CliRunner().invoke(cli, ["--scope", "s1"], obj={"store": _store()})
    assert result.exit_code == 0, result.output
    report = json.loads(result.output)
    assert report["scope"] == "s1"
    assert report["stats"]["completion_rate"] == 50.0
    assert report["stats"]["avg_score"] == 9
    assert "rows" not in report


def test_report_with_rows_and_case_filter():
    result = CliRunner().invoke(cli, ["--scope", "s1", "--case-id", "c2", "--rows"], obj={"store": _store()})
    assert result.exit_code == 0, result.output
    report = json.loads(result.output)
    assert [r["status"] for r in report["rows"]] == ["not_started", "not_started"]


def test_unknown_scope_exits_non_zero():
    result = CliRunner().invoke(cli, ["--scope", "nope"], obj={"store": _store()})
    assert result.exit_code != 0
    assert "section_not_found" in result.output


def test_build_report_without_rows():
    assert set(build_report(_store(), "unassigned", None, False)) == {"scope", "case_id", "stats"}
