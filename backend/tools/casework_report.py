"""Command line report of section statistics (and optionally the rollup).

Why:
    Operators sometimes need the dashboard numbers without a browser, e.g. to
    attach them to a support ticket or to compare two sections after a bulk
    copy. The CLI reads through the same configured store as the API and
    prints JSON so the output can be piped into other tools.
"""
from __future__ import annotations

import json
from typing import Optional

import click

from backend.casework.errors import CaseworkError
from backend.casework.ports import CaseworkStoreProtocol
from backend.casework.usecases.rollup import RollupService
from backend.casework.usecases.stats import compute_stats
from backend.casework.wiring import build_store


def build_report(store: CaseworkStoreProtocol, scope: str, case_id: Optional[str], include_rows: bool) -> dict:
    rows = RollupService(store).rollup_students(scope, case_id)
    report = {"scope": scope, "case_id": case_id, "stats": compute_stats(rows).to_dict()}
    if include_rows:
        report["rows"] = [r.to_dict() for r in rows]
    return report


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--scope", required=True, help="Section id, 'other_courses' or 'unassigned'.")
@click.option("--case-id", default=None, help="Only count evaluations of this case.")
@click.option("--rows", "include_rows", is_flag=True, help="Include the per-attempt rollup rows.")
@click.pass_context
def cli(ctx: click.Context, scope: str, case_id: Optional[str], include_rows: bool) -> None:
    """Print completion rate, averages and score histogram for a scope as JSON."""
    store = (ctx.obj or {}).get("store")
    try:
        if store is None:
            store = build_store()
        report = build_report(store, scope, case_id, include_rows)
    except CaseworkError as exc:
        raise click.ClickException(str(exc))
    click.echo(json.dumps(report, indent=2, sort_keys=True, default=str))


if __name__ == "__main__":  # pragma: no cover - manual entry
    cli()
