"""
Change detection between a plan's draft copy and its original.

Runs on commit, before anything is merged or deleted.  Draft entities share
ids with the original's, so both sides are paired through id-keyed maps.

For every tracked field that differs, one user-sourced change record is
written (already ACCEPTED, outcome PENDING) and any machine suggestions for
the same field on the same target are overridden.  Removed exercises and sets
only trigger overrides.  Added entities and untracked fields (notes, order)
produce no records.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from .models import (
    ChangeKind,
    Decision,
    ExercisePrescription,
    Outcome,
    Plan,
    SetPrescription,
    Suggestion,
    SuggestionSource,
    now_timestamp,
)
from .overrides import override_prescription, override_set
from .store import EntityStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackedField:
    """A diffed field and the change kinds used for each direction."""

    name: str
    read: Callable
    increase: ChangeKind
    decrease: ChangeKind

    def kind_for(self, old: float, new: float) -> ChangeKind:
        return self.increase if new > old else self.decrease


EXERCISE_FIELDS: tuple[TrackedField, ...] = (
    TrackedField(
        "rep_range.mode",
        lambda e: e.rep_range.mode,
        ChangeKind.CHANGE_REP_RANGE_MODE,
        ChangeKind.CHANGE_REP_RANGE_MODE,
    ),
    TrackedField(
        "rep_range.lower",
        lambda e: e.rep_range.lower,
        ChangeKind.INCREASE_REP_RANGE_LOWER,
        ChangeKind.DECREASE_REP_RANGE_LOWER,
    ),
    TrackedField(
        "rep_range.upper",
        lambda e: e.rep_range.upper,
        ChangeKind.INCREASE_REP_RANGE_UPPER,
        ChangeKind.DECREASE_REP_RANGE_UPPER,
    ),
    TrackedField(
        "rep_range.target",
        lambda e: e.rep_range.target,
        ChangeKind.INCREASE_REP_RANGE_TARGET,
        ChangeKind.DECREASE_REP_RANGE_TARGET,
    ),
    TrackedField(
        "rest_time.mode",
        lambda e: e.rest_time.mode,
        ChangeKind.CHANGE_REST_TIME_MODE,
        ChangeKind.CHANGE_REST_TIME_MODE,
    ),
    TrackedField(
        "rest_time.all_same_seconds",
        lambda e: e.rest_time.all_same_seconds,
        ChangeKind.INCREASE_REST_TIME_SECONDS,
        ChangeKind.DECREASE_REST_TIME_SECONDS,
    ),
)

SET_FIELDS: tuple[TrackedField, ...] = (
    TrackedField(
        "target_weight",
        lambda s: s.target_weight,
        ChangeKind.INCREASE_WEIGHT,
        ChangeKind.DECREASE_WEIGHT,
    ),
    TrackedField(
        "target_reps",
        lambda s: s.target_reps,
        ChangeKind.INCREASE_REPS,
        ChangeKind.DECREASE_REPS,
    ),
    TrackedField(
        "target_rest",
        lambda s: s.target_rest,
        ChangeKind.INCREASE_REST,
        ChangeKind.DECREASE_REST,
    ),
    TrackedField(
        "set_type",
        lambda s: s.set_type,
        ChangeKind.CHANGE_SET_TYPE,
        ChangeKind.CHANGE_SET_TYPE,
    ),
)


def _record_user_change(
    store: EntityStore,
    kind: ChangeKind,
    previous_value: float,
    new_value: float,
    exercise: ExercisePrescription,
    set_: SetPrescription | None,
    created_at: str,
) -> Suggestion:
    change = Suggestion(
        change_kind=kind,
        source=SuggestionSource.USER,
        decision=Decision.ACCEPTED,
        outcome=Outcome.PENDING,
        catalog_id=exercise.catalog_id,
        previous_value=float(previous_value),
        new_value=float(new_value),
        target_prescription_id=exercise.id,
        target_set_id=set_.id if set_ is not None else None,
        created_at=created_at,
    )
    return store.add_suggestion(change)


def _detect_exercise_changes(
    store: EntityStore,
    original: ExercisePrescription,
    copy: ExercisePrescription,
    created_at: str,
) -> list[Suggestion]:
    created: list[Suggestion] = []
    for tracked in EXERCISE_FIELDS:
        old, new = tracked.read(original), tracked.read(copy)
        if old == new:
            continue
        kind = tracked.kind_for(old, new)
        created.append(_record_user_change(store, kind, old, new, original, None, created_at))
        override_prescription(store, original, kind.family)
    return created


def _detect_set_changes(
    store: EntityStore,
    exercise: ExercisePrescription,
    original: SetPrescription,
    copy: SetPrescription,
    created_at: str,
) -> list[Suggestion]:
    created: list[Suggestion] = []
    for tracked in SET_FIELDS:
        old, new = tracked.read(original), tracked.read(copy)
        if old == new:
            continue
        kind = tracked.kind_for(old, new)
        created.append(_record_user_change(store, kind, old, new, exercise, original, created_at))
        override_set(store, original, kind.family)
    return created


def detect_changes(
    store: EntityStore,
    copy: Plan,
    original: Plan,
    now: str | None = None,
) -> list[Suggestion]:
    """
    Compare a draft with its original and record the user's edits.

    Args:
        store: Entity store (receives new change records)
        copy: The draft plan
        original: The live plan the draft was copied from
        now: Timestamp for new records (defaults to the current time)

    Returns:
        Newly created user change records
    """
    created_at = now or now_timestamp()
    copy_exercises = {e.id: e for e in copy.sorted_exercises}
    created: list[Suggestion] = []

    for orig_exercise in original.sorted_exercises:
        copy_exercise = copy_exercises.get(orig_exercise.id)
        if copy_exercise is None:
            override_prescription(store, orig_exercise, include_sets=True)
            continue

        created.extend(_detect_exercise_changes(store, orig_exercise, copy_exercise, created_at))

        copy_sets = {s.id: s for s in copy_exercise.sorted_sets}
        for orig_set in orig_exercise.sorted_sets:
            copy_set = copy_sets.get(orig_set.id)
            if copy_set is None:
                override_set(store, orig_set)
                continue
            created.extend(_detect_set_changes(store, orig_exercise, orig_set, copy_set, created_at))

    logger.info("Detected %d user change(s) for plan %s", len(created), original.id)
    return created
