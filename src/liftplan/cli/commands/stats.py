"""Statistics commands: stats, rebuild-stats."""

import json
from typing import Annotated, Optional

import typer

from ...core.history_updater import rebuild_all_histories
from ...core.stats import for_catalog_id
from ...io.serializers import history_to_dict
from .. import views
from ..app import JsonOption, StorePathOption, app, open_store


@app.command()
def stats(
    catalog_id: Annotated[
        Optional[str],
        typer.Argument(help="Catalog exercise id (default: every tracked exercise)"),
    ] = None,
    store_path: StorePathOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Show cached exercise statistics.
    """
    with open_store(store_path) as store:
        if catalog_id is None:
            catalog_ids = sorted(store.completed_catalog_ids())
        else:
            catalog_ids = [catalog_id]
        histories = [h for h in (for_catalog_id(store, cid) for cid in catalog_ids) if h is not None]

    if json_out:
        print(json.dumps([history_to_dict(h) for h in histories], indent=2))
        return

    if not histories:
        if catalog_id is None:
            views.console.print("[yellow]No completed sessions recorded yet.[/yellow]")
        else:
            views.print_warning(f"No completed sessions for '{catalog_id}'")
        return

    for history in histories:
        views.print_history(history)


@app.command("rebuild-stats")
def rebuild_stats(
    store_path: StorePathOption = None,
) -> None:
    """
    Recompute every exercise's statistics from logged sessions.
    """
    with open_store(store_path) as store:
        count = rebuild_all_histories(store)
    views.print_success(f"Rebuilt statistics for {count} exercise(s).")
