"""Import command for batch imports.

Parses an identifier list or CSV/TSV file and runs it through the batch
import controller, printing progress after every chunk.
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer

from litdedup.cli.utils import (
    config_option,
    display_info,
    display_job,
    display_warning,
    handle_errors,
    load_manager,
)
from litdedup.models.batch_import import BatchImportJob, ImportOptions, JobStatus
from litdedup.models.import_source import ImportSource, IdListSource
from litdedup.services.batch_import import BatchImportController
from litdedup.services.config_manager import ConfigManager
from litdedup.services.import_source_reader import ImportSourceReader


@handle_errors
def import_command(
    file_path: Path = typer.Argument(..., help="PMID/DOI list, CSV or TSV file"),
    config_path: Path = config_option(),
    chunk_size: Optional[int] = typer.Option(
        None, "--chunk-size", min=1, max=1000, help="Items per chunk"
    ),
    delay: Optional[float] = typer.Option(
        None, "--delay", min=0.0, help="Seconds between catalog requests"
    ),
    no_dedup: bool = typer.Option(
        False, "--no-dedup", help="Import exact duplicates of stored records"
    ),
    resume: Optional[str] = typer.Option(
        None, "--resume", help="Continue an interrupted job from its checkpoint"
    ),
):
    """Import records in batches from a file."""
    manager = load_manager(config_path)
    config = manager.load_config()

    source = ImportSourceReader().read_file(file_path)
    display_info(f"Parsed {len(source)} {source.kind.value} items from {file_path.name}")

    update = {}
    if chunk_size is not None:
        update["chunk_size"] = chunk_size
    if delay is not None:
        update["delay_between_requests"] = delay
    if no_dedup:
        update["enable_duplicate_detection"] = False
    if config.import_settings.project_id is None and config.store.project_id:
        update["project_id"] = config.store.project_id
    options = config.import_settings.model_copy(update=update)

    job = asyncio.run(_import(manager, source, options, resume))

    typer.echo("")
    display_job(job)
    if job.status != JobStatus.COMPLETED:
        raise typer.Exit(code=1)


async def _import(
    manager: ConfigManager,
    source: ImportSource,
    options: ImportOptions,
    resume: Optional[str],
) -> BatchImportJob:
    last_chunk = {"completed": 0}

    def on_progress(job: BatchImportJob) -> None:
        if job.status == JobStatus.PAUSED:
            display_warning("Import paused")
        if job.completed_chunks == last_chunk["completed"]:
            return
        last_chunk["completed"] = job.completed_chunks
        typer.echo(
            f"  chunk {job.completed_chunks}/{job.total_chunks}: "
            f"{job.processed_items}/{job.total_items} processed, "
            f"{job.successful_imports} imported, {job.failed_imports} failed"
        )

    controller = BatchImportController(
        store=manager.build_store(),
        catalog=manager.build_catalog() if isinstance(source, IdListSource) else None,
        detector=manager.build_detector(),
        checkpoint_service=manager.build_checkpoint_service(),
        on_progress=on_progress,
    )

    if resume:
        job = controller.resume_from_checkpoint(source, resume, options)
        display_info(f"Resuming job {resume} as {job.id}")
    else:
        job = controller.start(source, options)
        display_info(f"Started job {job.id} ({job.total_chunks} chunks)")

    return await controller.wait()
