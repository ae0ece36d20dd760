"""Merge command for resolving a duplicate pair by hand."""

import asyncio
from pathlib import Path

import typer

from litdedup.cli.utils import (
    config_option,
    display_error,
    display_success,
    handle_errors,
    load_manager,
)
from litdedup.models.dedup import KeepSide
from litdedup.observability.context import new_run_id, run_context
from litdedup.services.config_manager import ConfigManager
from litdedup.services.merge_resolver import MergeResolver


@handle_errors
def merge_command(
    keep_id: str = typer.Argument(..., help="Id of the record to keep"),
    remove_id: str = typer.Argument(..., help="Id of the duplicate to delete"),
    config_path: Path = config_option(),
):
    """Keep one record of a detected duplicate pair and delete the other."""
    manager = load_manager(config_path)

    if not asyncio.run(_merge(manager, keep_id, remove_id)):
        display_error(f"No pending duplicate pair links {keep_id} and {remove_id}")
        raise typer.Exit(code=1)

    display_success(f"Kept {keep_id}, removed {remove_id}")


async def _merge(manager: ConfigManager, keep_id: str, remove_id: str) -> bool:
    config = manager.load_config()
    store = manager.build_store()
    records = await store.list_all(config.store.project_id)

    with run_context(new_run_id("merge")):
        for pair in manager.build_detector().detect(records):
            ids = (pair.record_a.id, pair.record_b.id)
            if ids == (keep_id, remove_id):
                keep_side = KeepSide.A
            elif ids == (remove_id, keep_id):
                keep_side = KeepSide.B
            else:
                continue

            await MergeResolver(store).keep(pair, keep_side)
            return True

    return False
