"""
Override resolution: invalidate machine suggestions the user has overruled.

When the user edits or removes something a rule/AI suggestion targets, the
suggestion is marked as overridden instead of being deleted:

- decision PENDING or DEFERRED → USER_OVERRIDE
- outcome PENDING → USER_MODIFIED

The two transitions are independent.  An ACCEPTED suggestion keeps its
decision but still loses its pending outcome.  User-authored suggestions are
never touched.
"""

import logging
from collections.abc import Iterable

from .models import (
    ChangeKind,
    Decision,
    ExercisePrescription,
    Outcome,
    SetPrescription,
    Suggestion,
    SuggestionSource,
)
from .store import EntityStore

logger = logging.getLogger(__name__)


def override_suggestion(suggestion: Suggestion) -> bool:
    """
    Apply the override rule to one suggestion.

    Returns:
        True if the decision or outcome changed
    """
    if suggestion.source == SuggestionSource.USER:
        return False

    changed = False
    if suggestion.decision.is_open:
        suggestion.decision = Decision.USER_OVERRIDE
        changed = True
    if suggestion.outcome == Outcome.PENDING:
        suggestion.outcome = Outcome.USER_MODIFIED
        changed = True
    return changed


def _override_all(
    suggestions: Iterable[Suggestion],
    kinds: Iterable[ChangeKind] | None,
) -> list[Suggestion]:
    allowed = frozenset(kinds) if kinds is not None else None
    changed: list[Suggestion] = []
    for s in suggestions:
        if allowed is not None and s.change_kind not in allowed:
            continue
        if override_suggestion(s):
            changed.append(s)
    return changed


def override_set(
    store: EntityStore,
    set_: SetPrescription,
    kinds: Iterable[ChangeKind] | None = None,
) -> list[Suggestion]:
    """
    Override suggestions targeting one set.

    Args:
        store: Entity store holding the suggestions
        set_: Target set (original, not the draft copy)
        kinds: Only override these change kinds; None means all

    Returns:
        Suggestions whose state changed
    """
    changed = _override_all(store.suggestions_for_set(set_.id), kinds)
    if changed:
        logger.debug("Overrode %d suggestion(s) on set %s", len(changed), set_.id)
    return changed


def override_prescription(
    store: EntityStore,
    prescription: ExercisePrescription,
    kinds: Iterable[ChangeKind] | None = None,
    include_sets: bool = False,
) -> list[Suggestion]:
    """
    Override suggestions targeting one exercise.

    With ``include_sets`` (used when the exercise is removed) every set's
    suggestions are overridden as well.

    Returns:
        Suggestions whose state changed, without duplicates
    """
    kinds = list(kinds) if kinds is not None else None
    changed = _override_all(store.suggestions_for_prescription(prescription.id), kinds)
    if include_sets:
        seen = {s.id for s in changed}
        for set_ in prescription.sets:
            for s in override_set(store, set_, kinds):
                if s.id not in seen:
                    seen.add(s.id)
                    changed.append(s)
    if changed:
        logger.debug(
            "Overrode %d suggestion(s) on exercise %s", len(changed), prescription.id
        )
    return changed
