"""Suggestion commands: pending, review, accept-all, skip-all, import-suggestions."""

import json
from pathlib import Path
from typing import Annotated

import typer

from ...core.models import new_id, now_timestamp
from ...core.pipeline import record_suggestions
from ...core.suggestions import (
    accept_all as accept_all_suggestions,
    accept_group,
    defer_group,
    group_suggestions,
    pending_suggestions,
    reject_group,
    skip_all as skip_all_suggestions,
)
from ...io.serializers import ValidationError, dict_to_suggestion, suggestion_to_dict
from .. import views
from ..app import JsonOption, StorePathOption, app, get_store, load_store, open_store, resolve_plan

PlanArg = Annotated[str, typer.Argument(help="Plan number (from 'plans') or id prefix")]


@app.command()
def pending(
    plan_ref: PlanArg,
    store_path: StorePathOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Show suggestions on a plan that still await review.
    """
    store = load_store(get_store(store_path))
    plan = resolve_plan(store, plan_ref)
    outstanding = pending_suggestions(store, plan)

    if json_out:
        print(json.dumps([suggestion_to_dict(s) for s in outstanding], indent=2))
        return

    views.console.print(f"[bold]{plan.title}[/bold]: {len(outstanding)} pending suggestion(s)")
    views.print_suggestion_sections(group_suggestions(store, outstanding))


@app.command()
def review(
    plan_ref: PlanArg,
    store_path: StorePathOption = None,
) -> None:
    """
    Review pending suggestions group by group.
    """
    with open_store(store_path) as store:
        plan = resolve_plan(store, plan_ref)
        sections = group_suggestions(store, pending_suggestions(store, plan))
        if not sections:
            views.print_success("No pending suggestions.")
            return

        groups = [(section, group) for section in sections for group in section.groups]
        accepted = rejected = deferred = 0
        for section, group in groups:
            views.console.print()
            views.console.print(f"[bold cyan]{section.exercise_name}[/bold cyan] — [bold]{group.label}[/bold]")
            for change in group.changes:
                views.console.print(f"  {views.describe_change(change)}")
                if change.reasoning:
                    views.console.print(f"    [dim]{change.reasoning}[/dim]")

            choice = ""
            while choice not in ("a", "r", "d", "s", "q"):
                choice = views.console.input(
                    "  \\[a]ccept, \\[r]eject, \\[d]efer, \\[s]kip, \\[q]uit: "
                ).strip().lower()

            if choice == "q":
                break
            if choice == "a":
                accept_group(store, group.changes)
                accepted += len(group.changes)
            elif choice == "r":
                reject_group(store, group.changes)
                rejected += len(group.changes)
            elif choice == "d":
                defer_group(store, group.changes)
                deferred += len(group.changes)

    views.print_success(f"Accepted {accepted}, rejected {rejected}, deferred {deferred}.")


@app.command("accept-all")
def accept_all(
    plan_ref: PlanArg,
    store_path: StorePathOption = None,
) -> None:
    """
    Accept and apply every pending suggestion on a plan.
    """
    with open_store(store_path) as store:
        plan = resolve_plan(store, plan_ref)
        changed = accept_all_suggestions(store, plan)
    views.print_success(f"Accepted {len(changed)} suggestion(s).")


@app.command("skip-all")
def skip_all(
    plan_ref: PlanArg,
    store_path: StorePathOption = None,
) -> None:
    """
    Reject every pending suggestion on a plan.
    """
    with open_store(store_path) as store:
        plan = resolve_plan(store, plan_ref)
        changed = skip_all_suggestions(store, plan)
    views.print_success(f"Skipped {len(changed)} suggestion(s).")


@app.command("import-suggestions")
def import_suggestions(
    source: Annotated[Path, typer.Argument(help="JSON file with a list of suggestion candidates")],
    store_path: StorePathOption = None,
) -> None:
    """
    Store suggestion candidates produced by an external rule engine.

    Conflicting candidates are resolved before storing; id and created_at are
    filled in when missing.
    """
    try:
        with open(source, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        views.print_error(f"Cannot read {source}: {e}")
        raise typer.Exit(1)

    if not isinstance(raw, list):
        views.print_error("Candidate file must contain a JSON list")
        raise typer.Exit(1)

    try:
        candidates = [
            dict_to_suggestion({"id": new_id(), "created_at": now_timestamp(), **item})
            for item in raw
        ]
    except (ValidationError, TypeError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    with open_store(store_path) as store:
        recorded = record_suggestions(store, candidates)
    views.print_success(f"Imported {len(recorded)} of {len(candidates)} candidate(s).")
