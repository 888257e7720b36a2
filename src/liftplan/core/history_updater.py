"""
Keeps cached exercise statistics in step with logged performances.

Call after a workout is completed, edited or deleted.  Every update is a full
recompute (core/stats.py) from the store's completed performances.
"""

import logging
from datetime import datetime

from .models import ExerciseHistory
from .stats import recalculate
from .store import EntityStore

logger = logging.getLogger(__name__)


def update_history(store: EntityStore, catalog_id: str, now: datetime | None = None) -> ExerciseHistory | None:
    """
    Recompute the cached statistics for one exercise.

    The cache row is deleted when no completed performance remains.

    Returns:
        The updated row, or None if it was removed
    """
    performances = store.completed_performances(catalog_id)
    if not performances:
        store.delete_history(catalog_id)
        logger.debug("Removed history for %s (no completed sessions)", catalog_id)
        return None

    history = store.history(catalog_id) or ExerciseHistory(catalog_id=catalog_id)
    recalculate(history, performances, now=now)
    store.put_history(history)
    logger.debug("Updated history for %s (%d sessions)", catalog_id, history.total_sessions)
    return history


def update_histories(store: EntityStore, catalog_ids, now: datetime | None = None) -> None:
    for catalog_id in sorted(set(catalog_ids)):
        update_history(store, catalog_id, now=now)


def update_histories_for_session(store: EntityStore, session_id: str, now: datetime | None = None) -> None:
    """Recompute every exercise performed in a session."""
    catalog_ids = {p.catalog_id for p in store.performances_for_session(session_id)}
    update_histories(store, catalog_ids, now=now)
    logger.info("Updated %d exercise history(ies) for session %s", len(catalog_ids), session_id)


def delete_session(store: EntityStore, session_id: str, now: datetime | None = None) -> None:
    """
    Delete a session's performances and refresh the affected statistics.

    Suggestions that used those performances as evidence keep their rows with
    the evidence reference cleared.
    """
    performances = store.performances_for_session(session_id)
    catalog_ids = {p.catalog_id for p in performances}
    for perf in performances:
        store.delete_performance(perf.id)
    update_histories(store, catalog_ids, now=now)
    logger.info("Deleted session %s (%d performance(s))", session_id, len(performances))


def rebuild_all_histories(store: EntityStore, now: datetime | None = None) -> int:
    """
    Recompute every cached history from scratch.

    Rows for exercises with no completed performances are dropped.

    Returns:
        Number of histories now cached
    """
    catalog_ids = store.completed_catalog_ids() | set(store.histories)
    update_histories(store, catalog_ids, now=now)
    logger.info("Rebuilt %d exercise history(ies)", len(store.histories))
    return len(store.histories)
