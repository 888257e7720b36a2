"""Shared Typer app object, shared option types, and store utilities."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.logging import RichHandler

from ..core.models import ExercisePrescription, Plan
from ..core.store import EntityStore
from ..io.plan_store import PlanStore, get_default_store_path
from ..io.serializers import ValidationError
from . import views

# Shared --store-path option type used across all commands
StorePathOption = Annotated[
    Optional[Path],
    typer.Option("--store-path", "-p", help="Path to the liftplan JSON store"),
]

JsonOption = Annotated[
    bool,
    typer.Option("--json", "-j", help="Output as JSON for machine processing"),
]

app = typer.Typer(
    name="liftplan",
    help="Workout plan editor with reviewable prescription changes and exercise stats.",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log engine activity to the terminal"),
    ] = False,
) -> None:
    """
    Plan workouts, review suggested changes, and track exercise statistics.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(console=views.console, show_path=False)],
        )


def get_store(store_path: Path | None) -> PlanStore:
    """Get plan store from path or default location."""
    if store_path is None:
        store_path = get_default_store_path()
    return PlanStore(store_path)


def load_store(plan_store: PlanStore) -> EntityStore:
    """Load the store or exit with an error message."""
    try:
        return plan_store.load()
    except (FileNotFoundError, ValidationError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)


@contextmanager
def open_store(store_path: Path | None) -> Iterator[EntityStore]:
    """
    Load the store for a mutating command and save it on normal exit.

    Nothing is written if the command body raises or leaves the store clean.
    """
    plan_store = get_store(store_path)
    store = load_store(plan_store)
    yield store
    if store.dirty:
        plan_store.save(store)


def resolve_plan(store: EntityStore, ref: str) -> Plan:
    """
    Find a live plan by list number (as shown by ``plans``) or id prefix.

    Exits with an error if nothing (or more than one plan) matches.
    """
    plans = store.live_plans()
    if ref.isdigit() and 1 <= int(ref) <= len(plans):
        return plans[int(ref) - 1]

    matches = [p for p in plans if p.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if matches:
        views.print_error(f"Plan reference '{ref}' is ambiguous")
    else:
        views.print_error(f"No plan matches '{ref}'")
    raise typer.Exit(1)


def resolve_exercise(plan: Plan, number: int) -> ExercisePrescription:
    """Pick an exercise by its 1-based position in the plan."""
    exercises = plan.sorted_exercises
    if number < 1 or number > len(exercises):
        views.print_error(f"Exercise number must be between 1 and {len(exercises)}")
        raise typer.Exit(1)
    return exercises[number - 1]
