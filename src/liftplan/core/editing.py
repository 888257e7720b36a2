"""
Copy-on-write plan editing.

The user edits a draft copy of a plan; the original stays untouched until the
draft is committed with finish_editing() or thrown away with cancel_editing().

Usage:
    draft = create_editing_copy(store, plan)
    draft.exercises[0].sets[0].target_weight = 140
    finish_editing(store, draft)
"""

import logging

from .changes import detect_changes
from .merge import apply_to_original
from .models import Plan, Suggestion
from .overrides import override_prescription
from .store import EntityStore

logger = logging.getLogger(__name__)


def create_editing_copy(store: EntityStore, original: Plan) -> Plan:
    """
    Create (or reuse) the draft copy of a plan.

    Prescriptions and sets are deep-copied with their ids preserved.  If a
    draft for this plan already exists it is returned instead of opening a
    second one.

    Args:
        store: Entity store that receives the draft
        original: Live plan to edit

    Returns:
        The draft plan
    """
    existing = store.draft_for(original.id)
    if existing is not None:
        logger.debug("Reusing open draft %s for plan %s", existing.id, original.id)
        return existing

    copy = Plan(
        title=original.title,
        notes=original.notes,
        favorite=original.favorite,
        completed=False,
        is_draft=True,
        original_plan_id=original.id,
        exercises=[e.copy() for e in original.sorted_exercises],
    )
    store.insert_plan(copy)
    logger.debug("Opened draft %s for plan %s", copy.id, original.id)
    return copy


def finish_editing(store: EntityStore, draft: Plan, now: str | None = None) -> list[Suggestion]:
    """
    Commit a draft: record changes, merge onto the original, drop the draft.

    A draft with no exercises left deletes the whole plan instead.  A draft
    whose original no longer exists is left alone.

    Args:
        store: Entity store holding both plans
        draft: Draft returned by create_editing_copy()
        now: Timestamp for new change records

    Returns:
        User change records created by the commit
    """
    original = store.plan(draft.original_plan_id)
    if not draft.is_draft or original is None:
        logger.warning("Draft %s has no original plan; nothing to commit", draft.id)
        return []

    if not draft.exercises:
        delete_plan_entirely(store, draft)
        return []

    created = detect_changes(store, draft, original, now=now)
    apply_to_original(store, draft, original)
    return created


def cancel_editing(store: EntityStore, draft: Plan) -> None:
    """Discard a draft; the original is not touched."""
    if not draft.is_draft:
        return
    store.delete_plan(draft.id)


def delete_plan_entirely(store: EntityStore, draft: Plan) -> None:
    """
    Delete a draft together with its original.

    Suggestions on the original's exercises are overridden before the
    exercises are removed.
    """
    original = store.plan(draft.original_plan_id)
    if original is not None:
        for exercise in original.sorted_exercises:
            override_prescription(store, exercise, include_sets=True)
        store.delete_plan(original.id)
        logger.info("Deleted plan %s", original.id)
    store.delete_plan(draft.id)
