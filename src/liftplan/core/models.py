"""
Data models for liftplan.

All core dataclasses representing plans, prescriptions, suggestions,
performances and the cached per-exercise statistics.

Entities carry a stable string id.  A plan's draft copy holds value copies of
the original's prescriptions and sets with the *same* ids, which is what lets
the change detector pair them up again on commit.
"""

import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum, IntEnum, auto

from .config import (
    DEFAULT_DROP_SET_REST_SECONDS,
    DEFAULT_PLAN_TITLE,
    DEFAULT_REP_RANGE_LOWER,
    DEFAULT_REP_RANGE_UPPER,
    DEFAULT_REP_TARGET,
    DEFAULT_REST_SECONDS,
    DEFAULT_WARMUP_REST_SECONDS,
    E1RM_REP_DIVISOR,
)


def new_id() -> str:
    """Return a fresh entity id."""
    return uuid.uuid4().hex


def now_timestamp() -> str:
    """Current local time as an ISO timestamp with second precision."""
    return datetime.now().isoformat(timespec="seconds")


def validate_iso_date(date_str: str) -> None:
    """Validate date string is ISO format YYYY-MM-DD."""
    if not re.match(r"^\d{4}-\d{2}-\d{2}$", date_str):
        raise ValueError(f"Invalid date format: {date_str}. Expected YYYY-MM-DD")

    try:
        datetime.strptime(date_str, "%Y-%m-%d")
    except ValueError as e:
        raise ValueError(f"Invalid date: {date_str}") from e


# =============================================================================
# Enumerations
# =============================================================================


class SetType(IntEnum):
    """Kind of set.  Integer codes are what change records store."""

    WARMUP = 0
    WORKING = 1
    SUPER_SET = 2
    DROP_SET = 3
    FAILURE = 4

    @property
    def short_label(self) -> str:
        return {
            SetType.WARMUP: "W",
            SetType.WORKING: "",
            SetType.SUPER_SET: "S",
            SetType.DROP_SET: "D",
            SetType.FAILURE: "F",
        }[self]


class RepRangeMode(IntEnum):
    NOT_SET = 0
    TARGET = 1
    RANGE = 2
    UNTIL_FAILURE = 3


class RestTimeMode(IntEnum):
    ALL_SAME = 0
    INDIVIDUAL = 1
    BY_TYPE = 2


class SuggestionSource(Enum):
    """Who proposed a change."""

    RULES = auto()
    AI = auto()
    USER = auto()


class Decision(Enum):
    """What happened to a suggestion in review."""

    PENDING = auto()
    ACCEPTED = auto()
    REJECTED = auto()
    DEFERRED = auto()
    USER_OVERRIDE = auto()

    @property
    def is_open(self) -> bool:
        """True while the suggestion still awaits a review decision."""
        return self in (Decision.PENDING, Decision.DEFERRED)


class Outcome(Enum):
    """How an applied suggestion worked out in later training."""

    PENDING = auto()
    GOOD = auto()
    TOO_AGGRESSIVE = auto()
    TOO_EASY = auto()
    IGNORED = auto()
    USER_MODIFIED = auto()


class ChangeCategory(Enum):
    """Review grouping for exercise-level changes."""

    REP_RANGE = auto()
    SETTINGS = auto()

    @property
    def label(self) -> str:
        return "Rep Range" if self is ChangeCategory.REP_RANGE else "Settings"


class ChangeKind(Enum):
    """Taxonomy of prescription edits."""

    # Set-level (target a specific set)
    INCREASE_WEIGHT = auto()
    DECREASE_WEIGHT = auto()
    INCREASE_REPS = auto()
    DECREASE_REPS = auto()
    INCREASE_REST = auto()
    DECREASE_REST = auto()
    CHANGE_SET_TYPE = auto()
    REMOVE_SET = auto()

    # Exercise-level rep range
    INCREASE_REP_RANGE_LOWER = auto()
    DECREASE_REP_RANGE_LOWER = auto()
    INCREASE_REP_RANGE_UPPER = auto()
    DECREASE_REP_RANGE_UPPER = auto()
    INCREASE_REP_RANGE_TARGET = auto()
    DECREASE_REP_RANGE_TARGET = auto()
    CHANGE_REP_RANGE_MODE = auto()

    # Exercise-level rest policy
    CHANGE_REST_TIME_MODE = auto()
    INCREASE_REST_TIME_SECONDS = auto()
    DECREASE_REST_TIME_SECONDS = auto()

    @property
    def is_set_level(self) -> bool:
        return self in _SET_LEVEL_KINDS

    @property
    def category(self) -> ChangeCategory | None:
        """Review category for exercise-level kinds; None for set-level kinds."""
        if self in _SET_LEVEL_KINDS:
            return None
        if self in _REP_RANGE_KINDS:
            return ChangeCategory.REP_RANGE
        return ChangeCategory.SETTINGS

    @property
    def family(self) -> frozenset["ChangeKind"]:
        """The kinds that edit the same field (an up/down pair, or just self)."""
        for pair in _DIRECTIONAL_PAIRS:
            if self in pair:
                return pair
        return frozenset({self})


_SET_LEVEL_KINDS = frozenset({
    ChangeKind.INCREASE_WEIGHT,
    ChangeKind.DECREASE_WEIGHT,
    ChangeKind.INCREASE_REPS,
    ChangeKind.DECREASE_REPS,
    ChangeKind.INCREASE_REST,
    ChangeKind.DECREASE_REST,
    ChangeKind.CHANGE_SET_TYPE,
    ChangeKind.REMOVE_SET,
})

_REP_RANGE_KINDS = frozenset({
    ChangeKind.INCREASE_REP_RANGE_LOWER,
    ChangeKind.DECREASE_REP_RANGE_LOWER,
    ChangeKind.INCREASE_REP_RANGE_UPPER,
    ChangeKind.DECREASE_REP_RANGE_UPPER,
    ChangeKind.INCREASE_REP_RANGE_TARGET,
    ChangeKind.DECREASE_REP_RANGE_TARGET,
    ChangeKind.CHANGE_REP_RANGE_MODE,
})

_DIRECTIONAL_PAIRS = (
    frozenset({ChangeKind.INCREASE_WEIGHT, ChangeKind.DECREASE_WEIGHT}),
    frozenset({ChangeKind.INCREASE_REPS, ChangeKind.DECREASE_REPS}),
    frozenset({ChangeKind.INCREASE_REST, ChangeKind.DECREASE_REST}),
    frozenset({ChangeKind.INCREASE_REP_RANGE_LOWER, ChangeKind.DECREASE_REP_RANGE_LOWER}),
    frozenset({ChangeKind.INCREASE_REP_RANGE_UPPER, ChangeKind.DECREASE_REP_RANGE_UPPER}),
    frozenset({ChangeKind.INCREASE_REP_RANGE_TARGET, ChangeKind.DECREASE_REP_RANGE_TARGET}),
    frozenset({ChangeKind.INCREASE_REST_TIME_SECONDS, ChangeKind.DECREASE_REST_TIME_SECONDS}),
)


class ProgressionTrend(Enum):
    """
    Direction of an exercise's recent top working weight.

    Compares the mean of the 3 most recent sessions against the 3 before
    them (±2.5 %).  Fewer than 3 sessions → INSUFFICIENT; 3–5 → STABLE.
    """

    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"
    INSUFFICIENT = "insufficient"

    @property
    def display_name(self) -> str:
        if self is ProgressionTrend.INSUFFICIENT:
            return "Insufficient Data"
        return self.value.capitalize()


# =============================================================================
# Prescriptions
# =============================================================================


@dataclass
class RepRangePolicy:
    """How reps are prescribed for an exercise."""

    mode: RepRangeMode = RepRangeMode.NOT_SET
    lower: int = DEFAULT_REP_RANGE_LOWER
    upper: int = DEFAULT_REP_RANGE_UPPER
    target: int = DEFAULT_REP_TARGET

    def copy(self) -> "RepRangePolicy":
        return replace(self)

    @property
    def display_text(self) -> str:
        if self.mode == RepRangeMode.RANGE:
            return f"Rep Range: {self.lower}-{self.upper}"
        if self.mode == RepRangeMode.TARGET:
            return f"Rep Target: {self.target}"
        if self.mode == RepRangeMode.UNTIL_FAILURE:
            return "Rep Goal: Until Failure"
        return "Rep Range: Not Set"


@dataclass
class RestTimePolicy:
    """
    How rest between sets is prescribed for an exercise.

    ALL_SAME uses one value for every set, BY_TYPE picks a value per set
    type, INDIVIDUAL defers to each set's own target_rest.
    """

    mode: RestTimeMode = RestTimeMode.ALL_SAME
    all_same_seconds: int = DEFAULT_REST_SECONDS
    warmup_seconds: int = DEFAULT_WARMUP_REST_SECONDS
    working_seconds: int = DEFAULT_REST_SECONDS
    drop_set_seconds: int = DEFAULT_DROP_SET_REST_SECONDS

    def copy(self) -> "RestTimePolicy":
        return replace(self)

    def seconds_for(self, set_type: SetType, individual_seconds: int) -> int:
        """Rest in seconds that applies after a set of the given type."""
        if self.mode == RestTimeMode.ALL_SAME:
            return self.all_same_seconds
        if self.mode == RestTimeMode.INDIVIDUAL:
            return individual_seconds
        if set_type == SetType.WARMUP:
            return self.warmup_seconds
        if set_type == SetType.DROP_SET:
            return self.drop_set_seconds
        return self.working_seconds

    def default_working_seconds(self) -> int:
        return self.seconds_for(SetType.WORKING, self.working_seconds)


@dataclass
class SetPrescription:
    """A planned set within an exercise prescription."""

    id: str = field(default_factory=new_id)
    index: int = 0
    set_type: SetType = SetType.WORKING
    target_weight: float = 0.0
    target_reps: int = 0
    target_rest: int = 0

    def __post_init__(self) -> None:
        """Validate set data."""
        if self.target_weight < 0:
            raise ValueError("target_weight must be non-negative")
        if self.target_reps < 0:
            raise ValueError("target_reps must be non-negative")
        if self.target_rest < 0:
            raise ValueError("target_rest must be non-negative")

    def copy(self) -> "SetPrescription":
        """Value copy that keeps the same id."""
        return replace(self)


@dataclass
class ExercisePrescription:
    """
    A planned exercise within a plan.

    Suggestions that target this prescription are not stored here; ask the
    store via ``suggestions_for_prescription(id)``.
    """

    catalog_id: str
    name: str = ""
    id: str = field(default_factory=new_id)
    index: int = 0
    notes: str = ""
    rep_range: RepRangePolicy = field(default_factory=RepRangePolicy)
    rest_time: RestTimePolicy = field(default_factory=RestTimePolicy)
    sets: list[SetPrescription] = field(default_factory=list)

    @property
    def sorted_sets(self) -> list[SetPrescription]:
        return sorted(self.sets, key=lambda s: s.index)

    def add_set(self) -> SetPrescription:
        """Append a set, repeating the previous set's targets if there is one."""
        ordered = self.sorted_sets
        if ordered:
            previous = ordered[-1]
            new_set = SetPrescription(
                index=len(self.sets),
                target_weight=previous.target_weight,
                target_reps=previous.target_reps,
                target_rest=previous.target_rest,
            )
        else:
            new_set = SetPrescription(
                index=len(self.sets),
                target_rest=self.rest_time.default_working_seconds(),
            )
        self.sets.append(new_set)
        return new_set

    def delete_set(self, set_id: str) -> None:
        self.sets = [s for s in self.sets if s.id != set_id]
        self.reindex_sets()

    def reindex_sets(self) -> None:
        for i, s in enumerate(self.sorted_sets):
            s.index = i

    def copy(self) -> "ExercisePrescription":
        """Deep copy for draft editing; the prescription and its sets keep their ids."""
        return replace(
            self,
            rep_range=self.rep_range.copy(),
            rest_time=self.rest_time.copy(),
            sets=[s.copy() for s in self.sorted_sets],
        )

    @classmethod
    def from_performance(cls, performance: "ExercisePerformance", index: int | None = None) -> "ExercisePrescription":
        """Prescribe what was actually done in a session."""
        prescription = cls(
            catalog_id=performance.catalog_id,
            name=performance.name,
            index=performance.index if index is None else index,
        )
        prescription.sets = [
            SetPrescription(
                index=i,
                set_type=s.set_type,
                target_weight=s.weight,
                target_reps=s.reps,
                target_rest=s.rest_seconds,
            )
            for i, s in enumerate(performance.sorted_sets)
        ]
        return prescription


@dataclass
class Plan:
    """
    A workout plan: an ordered list of exercise prescriptions.

    Drafts (``is_draft=True``) are editable copies that point back to their
    original via ``original_plan_id``.
    """

    title: str = DEFAULT_PLAN_TITLE
    id: str = field(default_factory=new_id)
    notes: str = ""
    favorite: bool = False
    completed: bool = False
    is_draft: bool = False
    original_plan_id: str | None = None
    last_used: str | None = None
    exercises: list[ExercisePrescription] = field(default_factory=list)

    @property
    def sorted_exercises(self) -> list[ExercisePrescription]:
        return sorted(self.exercises, key=lambda e: e.index)

    def exercise_by_id(self, exercise_id: str) -> ExercisePrescription | None:
        for e in self.exercises:
            if e.id == exercise_id:
                return e
        return None

    def exercise_ids(self) -> set[str]:
        return {e.id for e in self.exercises}

    def set_ids(self) -> set[str]:
        return {s.id for e in self.exercises for s in e.sets}

    def add_exercise(self, catalog_id: str, name: str = "") -> ExercisePrescription:
        """Append a new exercise with one empty set."""
        exercise = ExercisePrescription(
            catalog_id=catalog_id,
            name=name or catalog_id,
            index=len(self.exercises),
        )
        exercise.add_set()
        self.exercises.append(exercise)
        return exercise

    def delete_exercise(self, exercise_id: str) -> None:
        self.exercises = [e for e in self.exercises if e.id != exercise_id]
        self.reindex_exercises()

    def move_exercise(self, exercise_id: str, new_index: int) -> None:
        """Move an exercise to a new position, shifting the others."""
        ordered = self.sorted_exercises
        moving = next((e for e in ordered if e.id == exercise_id), None)
        if moving is None:
            return
        ordered.remove(moving)
        new_index = max(0, min(new_index, len(ordered)))
        ordered.insert(new_index, moving)
        for i, e in enumerate(ordered):
            e.index = i

    def reindex_exercises(self) -> None:
        for i, e in enumerate(self.sorted_exercises):
            e.index = i

    @classmethod
    def from_performances(cls, title: str, performances: list["ExercisePerformance"]) -> "Plan":
        """Build a plan that repeats a finished session."""
        plan = cls(title=title, completed=True)
        ordered = sorted(performances, key=lambda p: p.index)
        plan.exercises = [ExercisePrescription.from_performance(p, i) for i, p in enumerate(ordered)]
        return plan


# =============================================================================
# Suggestions
# =============================================================================


@dataclass
class Suggestion:
    """
    A proposed or applied edit to a prescription ("prescription change").

    ``decision`` and ``outcome`` are independent: decision records the review
    result, outcome records how an applied change worked out later.
    A set-level kind targets both the exercise and the set; an exercise-level
    kind targets only the exercise.
    """

    change_kind: ChangeKind
    id: str = field(default_factory=new_id)
    source: SuggestionSource = SuggestionSource.RULES
    catalog_id: str = ""
    session_from_id: str | None = None
    created_at: str = field(default_factory=now_timestamp)

    # Evidence
    evidence_performance_id: str | None = None
    evidence_set_id: str | None = None

    # Target
    target_prescription_id: str | None = None
    target_set_id: str | None = None

    previous_value: float | None = None
    new_value: float | None = None
    reasoning: str | None = None

    decision: Decision = Decision.PENDING
    outcome: Outcome = Outcome.PENDING
    evaluated_in_session_id: str | None = None
    evaluated_at: str | None = None

    @property
    def is_set_level(self) -> bool:
        return self.change_kind.is_set_level


# =============================================================================
# Performances
# =============================================================================


@dataclass
class SetPerformance:
    """A set actually performed in a session."""

    id: str = field(default_factory=new_id)
    index: int = 0
    set_type: SetType = SetType.WORKING
    weight: float = 0.0
    reps: int = 0
    rest_seconds: int = 0
    complete: bool = False
    prescription_set_id: str | None = None

    def __post_init__(self) -> None:
        """Validate set data."""
        if self.weight < 0:
            raise ValueError("weight must be non-negative")
        if self.reps < 0:
            raise ValueError("reps must be non-negative")
        if self.rest_seconds < 0:
            raise ValueError("rest_seconds must be non-negative")

    @property
    def estimated_1rm(self) -> float | None:
        """Epley estimate; None unless both weight and reps are positive."""
        if self.weight <= 0 or self.reps <= 0:
            return None
        return self.weight * (1 + self.reps / E1RM_REP_DIVISOR)

    @property
    def volume(self) -> float:
        return max(0.0, self.weight) * max(0, self.reps)


@dataclass
class ExercisePerformance:
    """
    What was done for one exercise in one session.

    ``completed`` mirrors the owning session's done state; only completed
    performances feed the statistics cache.
    """

    catalog_id: str
    date: str  # ISO format: YYYY-MM-DD
    id: str = field(default_factory=new_id)
    session_id: str | None = None
    name: str = ""
    index: int = 0
    completed: bool = True
    prescription_id: str | None = None
    sets: list[SetPerformance] = field(default_factory=list)

    def __post_init__(self) -> None:
        validate_iso_date(self.date)

    @property
    def sorted_sets(self) -> list[SetPerformance]:
        return sorted(self.sets, key=lambda s: s.index)

    @classmethod
    def from_prescription(
        cls,
        prescription: ExercisePrescription,
        date: str,
        session_id: str | None = None,
    ) -> "ExercisePerformance":
        """Start a performance pre-filled from a plan's prescription."""
        return cls(
            catalog_id=prescription.catalog_id,
            date=date,
            session_id=session_id,
            name=prescription.name,
            index=prescription.index,
            completed=False,
            prescription_id=prescription.id,
            sets=[
                SetPerformance(
                    index=s.index,
                    set_type=s.set_type,
                    weight=s.target_weight,
                    reps=s.target_reps,
                    rest_seconds=s.target_rest,
                    prescription_set_id=s.id,
                )
                for s in prescription.sorted_sets
            ],
        )


# =============================================================================
# Cached statistics
# =============================================================================


@dataclass
class ProgressionPoint:
    """One charted session: top working weight and total volume."""

    date: str
    weight: float = 0.0
    volume: float = 0.0


@dataclass
class ExerciseHistory:
    """
    Cached aggregate statistics for one catalog exercise.

    Entirely derived from completed performances; see core/stats.py.
    """

    catalog_id: str
    last_updated: str | None = None
    last_workout_date: str | None = None

    # Session counts
    total_sessions: int = 0
    last_30_day_sessions: int = 0

    # Personal records
    best_estimated_1rm: float = 0.0
    best_estimated_1rm_date: str | None = None
    best_weight: float = 0.0
    best_weight_date: str | None = None
    best_volume: float = 0.0
    best_volume_date: str | None = None
    best_reps_at_weight: dict[float, int] = field(default_factory=dict)  # {weight: max reps}

    # Recent averages (last 3 sessions)
    last3_avg_weight: float = 0.0
    last3_avg_volume: float = 0.0
    last3_avg_set_count: int = 0
    last3_avg_rest_seconds: int = 0

    # Typical patterns (all history)
    typical_set_count: int = 0
    typical_rep_range_lower: int = 0
    typical_rep_range_upper: int = 0
    typical_rest_seconds: int = 0

    progression_trend: ProgressionTrend = ProgressionTrend.INSUFFICIENT
    progression_points: list[ProgressionPoint] = field(default_factory=list)

    @property
    def sorted_progression_points(self) -> list[ProgressionPoint]:
        """Most recent first."""
        return sorted(self.progression_points, key=lambda p: p.date, reverse=True)
