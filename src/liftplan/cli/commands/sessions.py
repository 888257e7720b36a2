"""Session commands: log-performance, sessions, delete-session, save-as-plan."""

import json
from datetime import datetime
from typing import Annotated, Optional

import typer
from rich.table import Table

from ...core.history_updater import delete_session as delete_session_records
from ...core.history_updater import update_histories_for_session
from ...core.models import ExercisePerformance, Plan, SetPerformance, SetType, new_id
from ...core.store import EntityStore
from ...io.serializers import ValidationError, exercise_performance_to_dict, parse_sets_string, validate_date
from .. import views
from ..app import JsonOption, StorePathOption, app, get_store, load_store, open_store, resolve_exercise, resolve_plan

SessionArg = Annotated[str, typer.Argument(help="Session id or id prefix (from 'sessions')")]


def _resolve_session(store: EntityStore, ref: str) -> str:
    """Full session id for a unique id prefix; exits otherwise."""
    session_ids = {p.session_id for p in store.performances.values() if p.session_id}
    matches = [sid for sid in session_ids if sid.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if matches:
        views.print_error(f"Session reference '{ref}' is ambiguous")
    else:
        views.print_error(f"No session matches '{ref}'")
    raise typer.Exit(1)


@app.command("log-performance")
def log_performance(
    plan_ref: Annotated[str, typer.Argument(help="Plan number (from 'plans') or id prefix")],
    exercise_no: Annotated[int, typer.Argument(help="Exercise number within the plan (1-based)")],
    sets: Annotated[
        str,
        typer.Option(
            "--sets", "-s",
            help="Sets performed: '5x5 @140 / 240s' or '8@100/180, 8@100, 6@100'",
        ),
    ],
    date: Annotated[
        Optional[str],
        typer.Option("--date", "-d", help="Session date (YYYY-MM-DD, default: today)"),
    ] = None,
    session_id: Annotated[
        Optional[str],
        typer.Option("--session", help="Session id, to log several exercises into one workout"),
    ] = None,
    store_path: StorePathOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Log a completed exercise against a plan and refresh its statistics.
    """
    if date is None:
        date = datetime.now().strftime("%Y-%m-%d")

    with open_store(store_path) as store:
        plan = resolve_plan(store, plan_ref)
        prescription = resolve_exercise(plan, exercise_no)

        try:
            validate_date(date)
            parsed = parse_sets_string(sets, default_rest=prescription.rest_time.default_working_seconds())
        except ValidationError as e:
            views.print_error(str(e))
            raise typer.Exit(1)

        performance = ExercisePerformance.from_prescription(prescription, date, session_id or new_id())
        prescribed = performance.sets
        performance.sets = [
            SetPerformance(
                index=i,
                set_type=prescribed[i].set_type if i < len(prescribed) else SetType.WORKING,
                weight=weight,
                reps=reps,
                rest_seconds=rest,
                complete=True,
                prescription_set_id=prescribed[i].prescription_set_id if i < len(prescribed) else None,
            )
            for i, (reps, weight, rest) in enumerate(parsed)
        ]
        performance.completed = True

        store.add_performance(performance)
        plan.last_used = date
        update_histories_for_session(store, performance.session_id)

    if json_out:
        print(json.dumps(exercise_performance_to_dict(performance), indent=2))
        return

    views.print_performance(performance)
    views.print_success(f"Logged {len(performance.sets)} set(s) in session {performance.session_id[:8]}")


@app.command("sessions")
def list_sessions(
    store_path: StorePathOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    List logged sessions, most recent first.
    """
    store = load_store(get_store(store_path))

    sessions: dict[str, list[ExercisePerformance]] = {}
    for perf in store.performances.values():
        sessions.setdefault(perf.session_id or perf.id, []).append(perf)
    ordered = sorted(sessions.items(), key=lambda item: max(p.date for p in item[1]), reverse=True)

    if json_out:
        print(json.dumps([
            {
                "session_id": sid,
                "date": max(p.date for p in perfs),
                "exercises": [p.catalog_id for p in sorted(perfs, key=lambda p: p.index)],
            }
            for sid, perfs in ordered
        ], indent=2))
        return

    if not ordered:
        views.console.print("[yellow]No sessions recorded yet.[/yellow]")
        return

    table = Table(title="Sessions", show_header=True, header_style="bold")
    table.add_column("Session", style="dim")
    table.add_column("Date", style="cyan")
    table.add_column("Exercises")
    table.add_column("Sets", justify="right")
    for sid, perfs in ordered:
        table.add_row(
            sid[:8],
            max(p.date for p in perfs),
            ", ".join(p.name or p.catalog_id for p in sorted(perfs, key=lambda p: p.index)),
            str(sum(len(p.sets) for p in perfs)),
        )
    views.console.print(table)


@app.command("delete-session")
def delete_session(
    session_ref: SessionArg,
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation")] = False,
    store_path: StorePathOption = None,
) -> None:
    """
    Delete a logged session and recompute the affected statistics.
    """
    with open_store(store_path) as store:
        session_id = _resolve_session(store, session_ref)
        if not force and not views.confirm_action(f"Delete session {session_id[:8]}?"):
            views.print_info("Cancelled.")
            return
        delete_session_records(store, session_id)

    views.print_success(f"Deleted session {session_id[:8]}")


@app.command("save-as-plan")
def save_as_plan(
    session_ref: SessionArg,
    title: Annotated[str, typer.Argument(help="Title for the new plan")],
    store_path: StorePathOption = None,
) -> None:
    """
    Create a plan that repeats a logged session's exercises and sets.
    """
    with open_store(store_path) as store:
        session_id = _resolve_session(store, session_ref)
        plan = store.insert_plan(Plan.from_performances(title, store.performances_for_session(session_id)))
    views.print_success(f"Created plan '{plan.title}' ({plan.id[:8]}) with {len(plan.exercises)} exercise(s)")
