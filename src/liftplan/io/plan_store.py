"""
JSON file storage for the entity store.

The whole store (plans, drafts, suggestions, performances and cached
histories) lives in one JSON document.  Saves are atomic: the document is
written to a uniquely named sibling temp file which then replaces the real
one.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path

from ..core.config import SAVE_DEBOUNCE_SECONDS
from ..core.engine.config_loader import get_config_dir, get_setting
from ..core.store import EntityStore
from .serializers import ValidationError, dict_to_store, store_to_dict

logger = logging.getLogger(__name__)


class PlanStore:
    """
    Reads and writes the liftplan JSON document.

    The file is created by init(); load() on a missing file raises
    FileNotFoundError so the CLI can point the user at ``init``.
    """

    def __init__(self, path: str | Path):
        """
        Initialize the plan store.

        Args:
            path: Path to the JSON store file
        """
        self.path = Path(path)

    def exists(self) -> bool:
        """Check if the store file exists."""
        return self.path.exists()

    def init(self) -> None:
        """
        Create an empty store file if it doesn't exist.

        Creates parent directories if needed.
        """
        if not self.path.exists():
            self.save(EntityStore())

    def load(self) -> EntityStore:
        """
        Load the store from disk.

        Returns:
            EntityStore with ``dirty`` cleared

        Raises:
            FileNotFoundError: If the store file doesn't exist
            ValidationError: If the file is not a valid store document
        """
        if not self.path.exists():
            raise FileNotFoundError(f"Store file not found: {self.path}. Run 'init' first.")

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON in {self.path}: {e}") from e

        try:
            store = dict_to_store(data)
        except ValidationError as e:
            raise ValidationError(f"Error loading {self.path}: {e}") from e

        logger.debug(
            "Loaded %d plan(s), %d performance(s), %d suggestion(s) from %s",
            len(store.plans), len(store.performances), len(store.suggestions), self.path,
        )
        return store

    def save(self, store: EntityStore) -> None:
        """
        Write the store to disk atomically and clear its dirty flag.

        Args:
            store: Store to write
        """
        self.write(store_to_dict(store))
        store.dirty = False

    def write(self, document: dict) -> None:
        """Atomically replace the file with an already serialized document."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=self.path.parent,
            prefix=self.path.name + ".", suffix=".tmp", delete=False,
        ) as f:
            json.dump(document, f, indent=2)
        tmp_path = Path(f.name)
        try:
            os.replace(tmp_path, self.path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise

        logger.debug("Saved store to %s", self.path)


class DebouncedSaver:
    """
    Coalesces bursts of edits into one save.

    Every touch() restarts a quiet-period timer; the store is written when
    the timer fires.  Edits made inside the quiet period are lost if the
    process dies before it ends; call flush() before exiting.

    Saves run one at a time under ``lock``, which touch() also takes, so a
    timer-thread save never overlaps another save or a change notification.
    Code that edits the store from a thread of its own should hold ``lock``
    for the whole edit.

    Usage:
        saver = DebouncedSaver(plan_store, store)
        saver.attach()          # store.mark_dirty() now calls saver.touch()
        ...
        saver.flush()
    """

    def __init__(self, plan_store: PlanStore, store: EntityStore, delay: float | None = None):
        self.plan_store = plan_store
        self.store = store
        if delay is None:
            delay = float(get_setting("persistence", "save_debounce_seconds", SAVE_DEBOUNCE_SECONDS))
        self.delay = delay
        self.lock = threading.RLock()
        self._timer: threading.Timer | None = None

    def attach(self) -> None:
        """Schedule a save whenever the store reports a change."""
        self.store.on_change = self.touch

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def touch(self) -> None:
        """Mark the store dirty and restart the quiet-period timer."""
        with self.lock:
            self.store.dirty = True
            self.cancel()
            self._timer = threading.Timer(self.delay, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> None:
        """Save now if there are unsaved changes."""
        with self.lock:
            self.cancel()
            if not self.store.dirty:
                return
            document = store_to_dict(self.store)
            self.store.dirty = False
            self.plan_store.write(document)

    def cancel(self) -> None:
        """Drop any scheduled save without writing."""
        with self.lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


def get_default_store_path() -> Path:
    """
    Get the default store file path.

    A ``persistence.store_path`` entry in ~/.liftplan/config.yaml takes
    precedence over ~/.liftplan/store.json.

    Returns:
        Default store path
    """
    configured = get_setting("persistence", "store_path")
    if configured:
        return Path(configured).expanduser()
    return get_config_dir() / "store.json"
