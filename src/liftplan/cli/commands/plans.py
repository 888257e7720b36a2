"""Plan commands: init, plans, show-plan, create-plan and the draft-based edit commands."""

import json
from typing import Annotated, Optional

import typer

from ...core.editing import cancel_editing, create_editing_copy, delete_plan_entirely, finish_editing
from ...core.models import Plan, RepRangeMode, RestTimeMode, SetType
from ...core.store import EntityStore
from ...io.serializers import plan_to_dict
from .. import views
from ..app import JsonOption, StorePathOption, app, get_store, load_store, open_store, resolve_exercise, resolve_plan

PlanArg = Annotated[str, typer.Argument(help="Plan number (from 'plans') or id prefix")]
ExerciseArg = Annotated[int, typer.Argument(help="Exercise number within the plan (1-based)")]
SetArg = Annotated[int, typer.Argument(help="Set number within the exercise (1-based)")]


def _parse_enum(enum_cls, value: str, option: str):
    try:
        return enum_cls[value.strip().upper().replace("-", "_").replace(" ", "_")]
    except KeyError:
        choices = ", ".join(m.name.lower() for m in enum_cls)
        views.print_error(f"Invalid {option}: {value}. Choose one of: {choices}")
        raise typer.Exit(1)


def _commit(store: EntityStore, draft: Plan) -> None:
    """Finish a draft edit and report the change records it produced."""
    changes = finish_editing(store, draft)
    if changes:
        views.print_success(f"Saved. Recorded {len(changes)} change(s).")
        for change in changes:
            views.console.print(f"  {views.describe_change(change)}")
    else:
        views.print_success("Saved.")


@app.command()
def init(
    store_path: StorePathOption = None,
) -> None:
    """
    Create an empty liftplan store.
    """
    plan_store = get_store(store_path)
    if plan_store.exists():
        views.print_info(f"Store already exists: {plan_store.path}")
        return
    plan_store.init()
    views.print_success(f"Created store: {plan_store.path}")


@app.command("plans")
def list_plans(
    store_path: StorePathOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    List workout plans.
    """
    store = load_store(get_store(store_path))
    plans = store.live_plans()

    if json_out:
        print(json.dumps([plan_to_dict(p) for p in plans], indent=2))
        return

    views.print_plans(plans)


@app.command("show-plan")
def show_plan(
    plan_ref: PlanArg,
    store_path: StorePathOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Show a plan's exercises and sets.
    """
    store = load_store(get_store(store_path))
    plan = resolve_plan(store, plan_ref)

    if json_out:
        print(json.dumps(plan_to_dict(plan), indent=2))
        return

    views.print_plan(plan)


@app.command("create-plan")
def create_plan(
    title: Annotated[str, typer.Argument(help="Plan title")],
    notes: Annotated[str, typer.Option("--notes", help="Free-form notes")] = "",
    favorite: Annotated[bool, typer.Option("--favorite", help="Mark as favorite")] = False,
    store_path: StorePathOption = None,
) -> None:
    """
    Create an empty plan.
    """
    with open_store(store_path) as store:
        plan = store.insert_plan(Plan(title=title, notes=notes, favorite=favorite))
    views.print_success(f"Created plan '{plan.title}' ({plan.id[:8]})")


@app.command("add-exercise")
def add_exercise(
    plan_ref: PlanArg,
    catalog_id: Annotated[str, typer.Argument(help="Catalog exercise id, e.g. bench_press")],
    name: Annotated[Optional[str], typer.Option("--name", "-n", help="Display name")] = None,
    sets: Annotated[int, typer.Option("--sets", "-s", min=1, help="Number of sets")] = 3,
    weight: Annotated[float, typer.Option("--weight", "-w", min=0, help="Target weight")] = 0.0,
    reps: Annotated[int, typer.Option("--reps", "-r", min=0, help="Target reps")] = 0,
    store_path: StorePathOption = None,
) -> None:
    """
    Append an exercise to a plan.
    """
    with open_store(store_path) as store:
        plan = resolve_plan(store, plan_ref)
        draft = create_editing_copy(store, plan)
        exercise = draft.add_exercise(catalog_id, name or catalog_id)
        while len(exercise.sets) < sets:
            exercise.add_set()
        for s in exercise.sets:
            s.target_weight = weight
            s.target_reps = reps
        _commit(store, draft)


@app.command("add-set")
def add_set(
    plan_ref: PlanArg,
    exercise_no: ExerciseArg,
    store_path: StorePathOption = None,
) -> None:
    """
    Append a set to an exercise, repeating the last set's targets.
    """
    with open_store(store_path) as store:
        plan = resolve_plan(store, plan_ref)
        draft = create_editing_copy(store, plan)
        resolve_exercise(draft, exercise_no).add_set()
        _commit(store, draft)


@app.command("edit-set")
def edit_set(
    plan_ref: PlanArg,
    exercise_no: ExerciseArg,
    set_no: SetArg,
    weight: Annotated[Optional[float], typer.Option("--weight", "-w", min=0, help="Target weight")] = None,
    reps: Annotated[Optional[int], typer.Option("--reps", "-r", min=0, help="Target reps")] = None,
    rest: Annotated[Optional[int], typer.Option("--rest", min=0, help="Target rest in seconds")] = None,
    set_type: Annotated[
        Optional[str],
        typer.Option("--type", "-t", help="warmup, working, super_set, drop_set or failure"),
    ] = None,
    store_path: StorePathOption = None,
) -> None:
    """
    Change a set's targets.  Open suggestions on the edited fields are overridden.
    """
    with open_store(store_path) as store:
        plan = resolve_plan(store, plan_ref)
        draft = create_editing_copy(store, plan)
        exercise = resolve_exercise(draft, exercise_no)

        ordered = exercise.sorted_sets
        if set_no < 1 or set_no > len(ordered):
            views.print_error(f"Set number must be between 1 and {len(ordered)}")
            raise typer.Exit(1)
        target = ordered[set_no - 1]

        if weight is not None:
            target.target_weight = weight
        if reps is not None:
            target.target_reps = reps
        if rest is not None:
            target.target_rest = rest
        if set_type is not None:
            target.set_type = _parse_enum(SetType, set_type, "set type")
        _commit(store, draft)


@app.command("remove-set")
def remove_set(
    plan_ref: PlanArg,
    exercise_no: ExerciseArg,
    set_no: SetArg,
    store_path: StorePathOption = None,
) -> None:
    """
    Remove a set from an exercise.
    """
    with open_store(store_path) as store:
        plan = resolve_plan(store, plan_ref)
        draft = create_editing_copy(store, plan)
        exercise = resolve_exercise(draft, exercise_no)

        ordered = exercise.sorted_sets
        if set_no < 1 or set_no > len(ordered):
            views.print_error(f"Set number must be between 1 and {len(ordered)}")
            raise typer.Exit(1)
        exercise.delete_set(ordered[set_no - 1].id)
        _commit(store, draft)


@app.command("edit-rep-range")
def edit_rep_range(
    plan_ref: PlanArg,
    exercise_no: ExerciseArg,
    mode: Annotated[
        Optional[str],
        typer.Option("--mode", "-m", help="not_set, target, range or until_failure"),
    ] = None,
    lower: Annotated[Optional[int], typer.Option("--lower", min=0, help="Range lower bound")] = None,
    upper: Annotated[Optional[int], typer.Option("--upper", min=0, help="Range upper bound")] = None,
    target: Annotated[Optional[int], typer.Option("--target", min=0, help="Rep target")] = None,
    store_path: StorePathOption = None,
) -> None:
    """
    Change an exercise's rep range policy.
    """
    with open_store(store_path) as store:
        plan = resolve_plan(store, plan_ref)
        draft = create_editing_copy(store, plan)
        rep_range = resolve_exercise(draft, exercise_no).rep_range

        if mode is not None:
            rep_range.mode = _parse_enum(RepRangeMode, mode, "rep range mode")
        if lower is not None:
            rep_range.lower = lower
        if upper is not None:
            rep_range.upper = upper
        if target is not None:
            rep_range.target = target
        if rep_range.mode == RepRangeMode.RANGE and rep_range.lower > rep_range.upper:
            views.print_error(f"Lower bound {rep_range.lower} exceeds upper bound {rep_range.upper}")
            raise typer.Exit(1)
        _commit(store, draft)


@app.command("edit-rest")
def edit_rest(
    plan_ref: PlanArg,
    exercise_no: ExerciseArg,
    mode: Annotated[
        Optional[str],
        typer.Option("--mode", "-m", help="all_same, individual or by_type"),
    ] = None,
    seconds: Annotated[Optional[int], typer.Option("--seconds", min=0, help="Rest for all_same mode")] = None,
    store_path: StorePathOption = None,
) -> None:
    """
    Change an exercise's rest time policy.
    """
    with open_store(store_path) as store:
        plan = resolve_plan(store, plan_ref)
        draft = create_editing_copy(store, plan)
        rest_time = resolve_exercise(draft, exercise_no).rest_time

        if mode is not None:
            rest_time.mode = _parse_enum(RestTimeMode, mode, "rest mode")
        if seconds is not None:
            rest_time.all_same_seconds = seconds
        _commit(store, draft)


@app.command("move-exercise")
def move_exercise(
    plan_ref: PlanArg,
    exercise_no: ExerciseArg,
    position: Annotated[int, typer.Argument(help="New position (1-based)")],
    store_path: StorePathOption = None,
) -> None:
    """
    Move an exercise to a new position in the plan.
    """
    with open_store(store_path) as store:
        plan = resolve_plan(store, plan_ref)
        draft = create_editing_copy(store, plan)
        exercise = resolve_exercise(draft, exercise_no)
        draft.move_exercise(exercise.id, position - 1)
        _commit(store, draft)


@app.command("remove-exercise")
def remove_exercise(
    plan_ref: PlanArg,
    exercise_no: ExerciseArg,
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation")] = False,
    store_path: StorePathOption = None,
) -> None:
    """
    Remove an exercise.  Removing the last exercise deletes the plan.
    """
    with open_store(store_path) as store:
        plan = resolve_plan(store, plan_ref)
        draft = create_editing_copy(store, plan)
        exercise = resolve_exercise(draft, exercise_no)

        if len(draft.exercises) == 1 and not force:
            if not views.confirm_action(f"'{exercise.name}' is the last exercise. Delete plan '{plan.title}'?"):
                views.print_info("Cancelled.")
                cancel_editing(store, draft)
                return

        draft.delete_exercise(exercise.id)
        _commit(store, draft)


@app.command("delete-plan")
def delete_plan(
    plan_ref: PlanArg,
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation")] = False,
    store_path: StorePathOption = None,
) -> None:
    """
    Delete a plan.  Open suggestions on it are overridden and kept for history.
    """
    with open_store(store_path) as store:
        plan = resolve_plan(store, plan_ref)
        if not force and not views.confirm_action(f"Delete plan '{plan.title}'?"):
            views.print_info("Cancelled.")
            return
        delete_plan_entirely(store, create_editing_copy(store, plan))
    views.print_success(f"Deleted plan '{plan.title}'")
