"""Scan command for duplicate detection.

Lists candidate duplicate pairs in the record store and optionally merges
the exact ones.
"""

import asyncio
from pathlib import Path
from typing import List, Optional, Tuple

import typer

from litdedup.cli.utils import (
    config_option,
    display_info,
    display_success,
    display_warning,
    handle_errors,
    load_manager,
)
from litdedup.models.dedup import DuplicatePair, ScanStats
from litdedup.observability.context import new_run_id, run_context
from litdedup.services.config_manager import ConfigManager
from litdedup.services.duplicate_detector import DuplicateDetector
from litdedup.services.merge_resolver import MergeResolver

FILTER_HELP = "all, pending, resolved, doi, exact-title, fuzzy-title or author-year-similar"


@handle_errors
def scan_command(
    config_path: Path = config_option(),
    filter_kind: str = typer.Option("all", "--filter", "-f", help=FILTER_HELP),
    auto_merge: bool = typer.Option(
        False, "--auto-merge", help="Merge DOI and exact-title pairs automatically"
    ),
):
    """Detect candidate duplicates among stored records."""
    manager = load_manager(config_path)

    display_info("Scanning records for duplicates...")
    pairs, stats, merged = asyncio.run(_scan(manager, auto_merge))

    _display_stats(stats)
    if merged is not None:
        display_success(f"Auto-merged {merged} exact duplicate pairs")

    shown = DuplicateDetector.filter_pairs(pairs, filter_kind)
    if not shown:
        display_success("No duplicate pairs to show.")
        return

    typer.echo("")
    for pair in shown:
        _display_pair(pair)


async def _scan(
    manager: ConfigManager, auto_merge: bool
) -> Tuple[List[DuplicatePair], ScanStats, Optional[int]]:
    config = manager.load_config()
    store = manager.build_store()
    detector = manager.build_detector()

    with run_context(new_run_id("scan")):
        records = await store.list_all(config.store.project_id)
        pairs = detector.detect(records)

        merged = None
        if auto_merge:
            merged = await MergeResolver(store).auto_merge_exact(pairs)

    return pairs, detector.summarize(pairs, records_scanned=len(records)), merged


def _display_stats(stats: ScanStats) -> None:
    typer.echo(f"  Records scanned: {stats.records_scanned}")
    typer.echo(f"  Duplicate pairs: {stats.total}")
    typer.echo(f"  Exact matches: {stats.exact}")
    typer.echo(f"  Fuzzy matches: {stats.fuzzy}")
    typer.echo(f"  Resolved: {stats.resolved}")
    if stats.pending:
        display_warning(f"  Pending review: {stats.pending}")


def _display_pair(pair: DuplicatePair) -> None:
    typer.secho(
        f"[{pair.similarity:3d}%] {pair.match_type.value} ({pair.status.value})",
        bold=True,
    )
    typer.echo(f"  A {pair.record_a.id}: {pair.record_a.title}")
    typer.echo(f"  B {pair.record_b.id}: {pair.record_b.title}")
