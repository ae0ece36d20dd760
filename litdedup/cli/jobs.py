"""Job commands for inspecting batch import checkpoints."""

from pathlib import Path

import typer

from litdedup.cli.utils import (
    config_option,
    display_error,
    display_job,
    display_warning,
    handle_errors,
    load_manager,
)

jobs_app = typer.Typer(help="Inspect batch import jobs")


@jobs_app.command(name="list")
@handle_errors
def jobs_list(config_path: Path = config_option()):
    """List jobs that have a checkpoint."""
    service = load_manager(config_path).build_checkpoint_service()

    job_ids = service.list_checkpoints()
    if not job_ids:
        display_warning("No checkpoints found.")
        return

    typer.echo(f"{len(job_ids)} checkpoints:")
    for job_id in job_ids:
        checkpoint = service.load_checkpoint(job_id)
        if checkpoint is None:
            typer.echo(f" - {job_id}: unreadable")
            continue
        job = checkpoint.job
        marker = " (resumable)" if checkpoint.resumable else ""
        typer.echo(
            f" - {job_id}: {job.status.value} "
            f"{job.processed_items}/{job.total_items}{marker}"
        )


@jobs_app.command(name="show")
@handle_errors
def jobs_show(
    job_id: str = typer.Argument(..., help="Job id"),
    config_path: Path = config_option(),
):
    """Display the checkpointed state of a job."""
    service = load_manager(config_path).build_checkpoint_service()

    checkpoint = service.load_checkpoint(job_id)
    if checkpoint is None:
        display_error(f"No checkpoint found for job {job_id}")
        raise typer.Exit(code=1)

    display_job(checkpoint.job)
    typer.echo(f"  Last updated: {checkpoint.last_updated.isoformat()}")
