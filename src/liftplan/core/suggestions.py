"""
Suggestion queries, review grouping, and review actions.

pending_suggestions() answers "what is still waiting for review on this
plan"; group_suggestions() arranges any list of suggestions into a fixed
review order (exercise → set / policy category → change kind) that does not
depend on the order the rows were stored in.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from .models import (
    ChangeCategory,
    ChangeKind,
    Decision,
    ExercisePrescription,
    Plan,
    RepRangeMode,
    RestTimeMode,
    SetPrescription,
    SetType,
    Suggestion,
)
from .overrides import override_suggestion
from .store import EntityStore

logger = logging.getLogger(__name__)

# Category groups sort after every set group
_CATEGORY_ORDER = {ChangeCategory.REP_RANGE: 0, ChangeCategory.SETTINGS: 1}

_REP_RANGE_KIND_ORDER = {
    ChangeKind.CHANGE_REP_RANGE_MODE: 1,
    ChangeKind.INCREASE_REP_RANGE_LOWER: 2,
    ChangeKind.DECREASE_REP_RANGE_LOWER: 2,
    ChangeKind.INCREASE_REP_RANGE_UPPER: 3,
    ChangeKind.DECREASE_REP_RANGE_UPPER: 3,
    ChangeKind.INCREASE_REP_RANGE_TARGET: 4,
    ChangeKind.DECREASE_REP_RANGE_TARGET: 4,
}

_KIND_ORDER = {
    ChangeKind.INCREASE_WEIGHT: 1,
    ChangeKind.DECREASE_WEIGHT: 1,
    ChangeKind.INCREASE_REPS: 2,
    ChangeKind.DECREASE_REPS: 2,
    ChangeKind.INCREASE_REST: 3,
    ChangeKind.DECREASE_REST: 3,
    ChangeKind.CHANGE_SET_TYPE: 4,
    ChangeKind.REMOVE_SET: 5,
    ChangeKind.CHANGE_REST_TIME_MODE: 6,
    ChangeKind.INCREASE_REST_TIME_SECONDS: 7,
    ChangeKind.DECREASE_REST_TIME_SECONDS: 7,
}


@dataclass
class SuggestionGroup:
    """Suggestions for one set, or for one exercise-level category."""

    changes: list[Suggestion]
    set_prescription: SetPrescription | None = None
    category: ChangeCategory | None = None

    @property
    def label(self) -> str:
        if self.set_prescription is not None:
            return f"Set {self.set_prescription.index + 1}"
        if self.category is not None:
            return self.category.label
        return ChangeCategory.SETTINGS.label


@dataclass
class ExerciseSuggestionSection:
    """All review groups for one exercise."""

    exercise: ExercisePrescription
    groups: list[SuggestionGroup] = field(default_factory=list)

    @property
    def exercise_name(self) -> str:
        return self.exercise.name


def pending_suggestions(store: EntityStore, plan: Plan) -> list[Suggestion]:
    """
    Suggestions on this plan that still await a review decision.

    A row belongs to the plan when its exercise target is one of the plan's
    exercises or its set target is one of the plan's sets; it is outstanding
    when its decision is PENDING or DEFERRED.

    Returns:
        Matching suggestions in store insertion order
    """
    exercise_ids = plan.exercise_ids()
    set_ids = plan.set_ids()
    return [
        s for s in store.all_suggestions()
        if s.decision.is_open
        and (s.target_prescription_id in exercise_ids or s.target_set_id in set_ids)
    ]


def _change_order(kind: ChangeKind, category: ChangeCategory | None) -> int:
    if category == ChangeCategory.REP_RANGE:
        return _REP_RANGE_KIND_ORDER.get(kind, 10)
    return _KIND_ORDER.get(kind, 10)


def _sorted_changes(changes: list[Suggestion], category: ChangeCategory | None) -> list[Suggestion]:
    return sorted(
        changes,
        key=lambda s: (_change_order(s.change_kind, category), s.created_at, s.id),
    )


def group_suggestions(store: EntityStore, suggestions: Iterable[Suggestion]) -> list[ExerciseSuggestionSection]:
    """
    Arrange suggestions into review sections.

    One section per target exercise (ordered by exercise index).  Within a
    section: one group per target set ordered by set index, followed by at
    most one Rep Range group and one Settings group.  Rows whose exercise no
    longer exists are left out; set-level rows whose set was deleted land in
    the Settings group.

    Args:
        store: Entity store used to resolve targets
        suggestions: Suggestions in any order

    Returns:
        Sections in review order
    """
    by_exercise: dict[str, list[Suggestion]] = {}
    for s in suggestions:
        if store.prescription(s.target_prescription_id) is None:
            continue
        by_exercise.setdefault(s.target_prescription_id, []).append(s)

    sections: list[ExerciseSuggestionSection] = []
    for exercise_id, changes in by_exercise.items():
        exercise = store.prescription(exercise_id)

        by_set: dict[str, list[Suggestion]] = {}
        by_category: dict[ChangeCategory, list[Suggestion]] = {}
        for s in changes:
            target_set = store.set_prescription(s.target_set_id)
            if target_set is not None:
                by_set.setdefault(target_set.id, []).append(s)
            else:
                category = s.change_kind.category or ChangeCategory.SETTINGS
                by_category.setdefault(category, []).append(s)

        set_groups = [
            SuggestionGroup(
                changes=_sorted_changes(set_changes, None),
                set_prescription=store.set_prescription(set_id),
            )
            for set_id, set_changes in by_set.items()
        ]
        set_groups.sort(key=lambda g: (g.set_prescription.index, g.set_prescription.id))

        category_groups = [
            SuggestionGroup(changes=_sorted_changes(cat_changes, category), category=category)
            for category, cat_changes in by_category.items()
        ]
        category_groups.sort(key=lambda g: _CATEGORY_ORDER[g.category])

        sections.append(ExerciseSuggestionSection(exercise=exercise, groups=set_groups + category_groups))

    sections.sort(key=lambda sec: (sec.exercise.index, sec.exercise.id))
    return sections


# =============================================================================
# Review actions
# =============================================================================


def _int_value(suggestion: Suggestion) -> int:
    return int(suggestion.new_value or 0)


def _enum_value(enum_cls, suggestion: Suggestion, default):
    try:
        return enum_cls(_int_value(suggestion))
    except ValueError:
        return default


def apply_change(store: EntityStore, suggestion: Suggestion) -> None:
    """
    Write a suggestion's new value onto its live target.

    Missing targets are ignored.  REMOVE_SET deletes the target set; other
    machine suggestions on that set are overridden first.
    """
    kind = suggestion.change_kind
    set_ = store.set_prescription(suggestion.target_set_id)
    exercise = store.prescription(suggestion.target_prescription_id)

    if kind.is_set_level:
        if set_ is None:
            return
        if kind in (ChangeKind.INCREASE_WEIGHT, ChangeKind.DECREASE_WEIGHT):
            set_.target_weight = float(suggestion.new_value or 0)
        elif kind in (ChangeKind.INCREASE_REPS, ChangeKind.DECREASE_REPS):
            set_.target_reps = _int_value(suggestion)
        elif kind in (ChangeKind.INCREASE_REST, ChangeKind.DECREASE_REST):
            set_.target_rest = _int_value(suggestion)
        elif kind == ChangeKind.CHANGE_SET_TYPE:
            set_.set_type = _enum_value(SetType, suggestion, SetType.WORKING)
        elif kind == ChangeKind.REMOVE_SET:
            owner = store.prescription_for_set(set_.id)
            for other in store.suggestions_for_set(set_.id):
                if other.id != suggestion.id:
                    override_suggestion(other)
            store.delete_set(set_.id)
            if owner is not None:
                owner.reindex_sets()
        store.mark_dirty()
        return

    if exercise is None:
        return
    if kind in (ChangeKind.INCREASE_REP_RANGE_LOWER, ChangeKind.DECREASE_REP_RANGE_LOWER):
        exercise.rep_range.lower = _int_value(suggestion)
    elif kind in (ChangeKind.INCREASE_REP_RANGE_UPPER, ChangeKind.DECREASE_REP_RANGE_UPPER):
        exercise.rep_range.upper = _int_value(suggestion)
    elif kind in (ChangeKind.INCREASE_REP_RANGE_TARGET, ChangeKind.DECREASE_REP_RANGE_TARGET):
        exercise.rep_range.target = _int_value(suggestion)
    elif kind == ChangeKind.CHANGE_REP_RANGE_MODE:
        exercise.rep_range.mode = _enum_value(RepRangeMode, suggestion, RepRangeMode.NOT_SET)
    elif kind == ChangeKind.CHANGE_REST_TIME_MODE:
        exercise.rest_time.mode = _enum_value(RestTimeMode, suggestion, RestTimeMode.INDIVIDUAL)
    elif kind in (ChangeKind.INCREASE_REST_TIME_SECONDS, ChangeKind.DECREASE_REST_TIME_SECONDS):
        exercise.rest_time.all_same_seconds = _int_value(suggestion)
    store.mark_dirty()


def accept_group(store: EntityStore, changes: Iterable[Suggestion]) -> list[Suggestion]:
    """
    Accept suggestions and apply each to its target; returns those accepted.

    A row overridden earlier in the same pass (by a REMOVE_SET on its set)
    keeps its USER_OVERRIDE decision and is not applied.
    """
    accepted = []
    for change in changes:
        if not change.decision.is_open:
            continue
        change.decision = Decision.ACCEPTED
        apply_change(store, change)
        accepted.append(change)
    store.mark_dirty()
    return accepted


def reject_group(store: EntityStore, changes: Iterable[Suggestion]) -> None:
    for change in changes:
        change.decision = Decision.REJECTED
    store.mark_dirty()


def defer_group(store: EntityStore, changes: Iterable[Suggestion]) -> None:
    for change in changes:
        change.decision = Decision.DEFERRED
    store.mark_dirty()


def accept_all(store: EntityStore, plan: Plan) -> list[Suggestion]:
    """Accept every outstanding suggestion on a plan; returns them."""
    accepted = accept_group(store, pending_suggestions(store, plan))
    logger.info("Accepted %d suggestion(s) on plan %s", len(accepted), plan.id)
    return accepted


def skip_all(store: EntityStore, plan: Plan) -> list[Suggestion]:
    """Reject every outstanding suggestion on a plan; returns them."""
    pending = pending_suggestions(store, plan)
    reject_group(store, pending)
    logger.info("Skipped %d suggestion(s) on plan %s", len(pending), plan.id)
    return pending
