"""
Configuration constants for the plan-editing and statistics engines.

All adjustable parameters are centralized here for easy tuning.
User overrides can be placed in ~/.liftplan/config.yaml (see
engine/config_loader.py); the values below are the defaults.
"""

from typing import Final

# =============================================================================
# ESTIMATED ONE-REP MAX (Epley)
# =============================================================================

E1RM_REP_DIVISOR: Final[float] = 30.0  # e1RM = weight * (1 + reps / 30)

# =============================================================================
# SESSION WINDOWS
# =============================================================================

RECENT_SESSION_WINDOW: Final[int] = 3  # Sessions averaged for "last 3" stats
ACTIVITY_WINDOW_DAYS: Final[int] = 30  # Window for last_30_day_sessions
CHART_POINT_LIMIT: Final[int] = 10  # Progression points kept for charting

# =============================================================================
# PROGRESSION TREND
# =============================================================================

TREND_MIN_SESSIONS: Final[int] = 3  # Below this → insufficient
TREND_COMPARE_SESSIONS: Final[int] = 6  # Need two full windows to compare
TREND_THRESHOLD_PERCENT: Final[float] = 2.5  # ±% change for improving/declining

# =============================================================================
# TYPICAL PATTERNS
# =============================================================================

TYPICAL_REP_LOWER_PERCENTILE: Final[float] = 0.25
TYPICAL_REP_UPPER_PERCENTILE: Final[float] = 0.75

# =============================================================================
# PRESCRIPTION DEFAULTS
# =============================================================================

DEFAULT_REP_RANGE_LOWER: Final[int] = 8
DEFAULT_REP_RANGE_UPPER: Final[int] = 12
DEFAULT_REP_TARGET: Final[int] = 8

DEFAULT_REST_SECONDS: Final[int] = 180
DEFAULT_WARMUP_REST_SECONDS: Final[int] = 120
DEFAULT_DROP_SET_REST_SECONDS: Final[int] = 120

DEFAULT_PLAN_TITLE: Final[str] = "New Workout Plan"

# =============================================================================
# PERSISTENCE
# =============================================================================

SAVE_DEBOUNCE_SECONDS: Final[float] = 1.0  # Quiet period before flushing edits
STORE_FORMAT_VERSION: Final[int] = 1
