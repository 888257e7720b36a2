"""
Core engine for liftplan.

Plan editing (draft copy, change detection, merge), suggestion review and
the exercise statistics cache.  Nothing in here touches the filesystem.
"""

from .editing import cancel_editing, create_editing_copy, delete_plan_entirely, finish_editing
from .history_updater import delete_session, rebuild_all_histories, update_history, update_histories_for_session
from .stats import for_catalog_id, recalculate
from .store import EntityStore
from .suggestions import group_suggestions, pending_suggestions

__all__ = [
    "EntityStore",
    "cancel_editing",
    "create_editing_copy",
    "delete_plan_entirely",
    "delete_session",
    "finish_editing",
    "for_catalog_id",
    "group_suggestions",
    "pending_suggestions",
    "rebuild_all_histories",
    "recalculate",
    "update_histories_for_session",
    "update_history",
]
