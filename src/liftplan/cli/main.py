"""
CLI entry point using Typer.

Provides commands for plan editing, suggestion review and statistics:
- init: Create the JSON store
- plans / show-plan / create-plan: Browse and create plans
- add-exercise, edit-set, edit-rep-range, ...: Edit a plan through a draft
- log-performance / sessions / delete-session: Record workouts
- pending / review / accept-all / skip-all: Review suggested changes
- stats / rebuild-stats: Exercise statistics
"""

from .app import app
from .commands import plans, sessions, stats, suggestions  # noqa: F401  (registers commands)

__all__ = ["app"]


if __name__ == "__main__":
    app()
