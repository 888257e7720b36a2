"""
Merge a committed draft back onto its original plan.

Must run after change detection (core/changes.py) and before the draft is
discarded.  Added entities are moved from the draft onto the original as-is;
matched entities receive the draft's field values; removed entities are
deleted through the store so that suggestion rows pointing at them survive
with a cleared reference.
"""

import logging

from .models import ExercisePrescription, Plan
from .store import EntityStore

logger = logging.getLogger(__name__)


def _apply_exercise(store: EntityStore, original: ExercisePrescription, copy: ExercisePrescription) -> None:
    """Copy field values and set structure from a draft exercise onto the live one."""
    original.index = copy.index
    original.notes = copy.notes
    original.rep_range = copy.rep_range.copy()
    original.rest_time = copy.rest_time.copy()

    copy_sets = {s.id: s for s in copy.sorted_sets}
    original_set_ids = {s.id for s in original.sets}

    # Added sets move over unchanged
    for copy_set in copy.sorted_sets:
        if copy_set.id not in original_set_ids:
            original.sets.append(copy_set)
            store.register_set(copy_set, original.id)

    for orig_set in original.sets:
        copy_set = copy_sets.get(orig_set.id)
        if copy_set is None or copy_set is orig_set:
            continue
        orig_set.index = copy_set.index
        orig_set.set_type = copy_set.set_type
        orig_set.target_weight = copy_set.target_weight
        orig_set.target_reps = copy_set.target_reps
        orig_set.target_rest = copy_set.target_rest

    # Removed sets: overrides were already applied during change detection
    for orig_set in [s for s in original.sets if s.id not in copy_sets]:
        store.delete_set(orig_set.id)
    original.sets = [s for s in original.sets if s.id in copy_sets]


def apply_to_original(store: EntityStore, copy: Plan, original: Plan) -> None:
    """
    Apply a draft's structure and values to the original, then drop the draft.

    After this call the original's exercise and set ids equal the draft's.

    Args:
        store: Entity store holding both plans
        copy: The draft plan
        original: The live plan being edited
    """
    original.title = copy.title
    original.notes = copy.notes

    copy_exercises = {e.id: e for e in copy.sorted_exercises}
    original_ids = original.exercise_ids()

    added = 0
    for copy_exercise in copy.sorted_exercises:
        if copy_exercise.id not in original_ids:
            original.exercises.append(copy_exercise)
            store.register_prescription(copy_exercise, original.id)
            added += 1

    for orig_exercise in original.exercises:
        copy_exercise = copy_exercises.get(orig_exercise.id)
        if copy_exercise is None or copy_exercise is orig_exercise:
            continue
        _apply_exercise(store, orig_exercise, copy_exercise)

    removed = [e for e in original.exercises if e.id not in copy_exercises]
    for exercise in removed:
        store.delete_prescription(exercise.id)
    original.exercises = [e for e in original.exercises if e.id in copy_exercises]

    original.reindex_exercises()
    for exercise in original.exercises:
        exercise.reindex_sets()
    original.is_draft = False

    store.delete_plan(copy.id)
    store.mark_dirty()
    logger.info(
        "Merged draft into plan %s: %d added, %d removed exercise(s)",
        original.id, added, len(removed),
    )
