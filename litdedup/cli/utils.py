"""Helpers shared by the litdedup commands: config loading, error reporting
and terminal output.
"""

import functools
from pathlib import Path
from typing import Callable, TypeVar

import structlog
import typer

from litdedup.models.batch_import import BatchImportJob, JobStatus
from litdedup.observability.logging import configure_logging
from litdedup.services.config_manager import ConfigManager, DEFAULT_CONFIG_PATH
from litdedup.utils.exceptions import ConfigValidationError

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable)

STATUS_COLORS = {
    JobStatus.COMPLETED: typer.colors.GREEN,
    JobStatus.FAILED: typer.colors.RED,
    JobStatus.CANCELLED: typer.colors.YELLOW,
}


def config_option() -> Path:
    return typer.Option(
        DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to litdedup config YAML"
    )


def load_manager(config_path: Path) -> ConfigManager:
    """Validate the config at ``config_path`` and set up logging from it.

    A missing or invalid file ends the command with exit code 1.
    """
    manager = ConfigManager(config_path=str(config_path))
    try:
        settings = manager.load_config().logging
    except (FileNotFoundError, ConfigValidationError) as e:
        display_error(f"Configuration Error: {e}")
        raise typer.Exit(code=1)

    configure_logging(settings)
    return manager


def handle_errors(func: F) -> F:
    """Turn unexpected exceptions into a red one-line message and exit 1.

    ``typer.Exit`` raised by the command itself passes through untouched.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except Exception as e:
            logger.exception("cli_command_error", command=func.__name__)
            display_error(f"Error: {e}")
            raise typer.Exit(code=1)

    return wrapper  # type: ignore[return-value]


def display_success(message: str) -> None:
    typer.secho(message, fg=typer.colors.GREEN)


def display_warning(message: str) -> None:
    typer.secho(message, fg=typer.colors.YELLOW)


def display_error(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED)


def display_info(message: str) -> None:
    typer.secho(message, fg=typer.colors.CYAN)


def display_job(job: BatchImportJob) -> None:
    """Print a job's status line, counters, and per-item errors."""
    typer.secho(
        f"Job {job.id}: {job.status.value}",
        fg=STATUS_COLORS.get(job.status, typer.colors.CYAN),
        bold=True,
    )
    if job.resumed_from:
        typer.echo(f"  Resumed from: {job.resumed_from}")

    for label, value in (
        ("Items processed", f"{job.processed_items}/{job.total_items}"),
        ("Imported", job.successful_imports),
        ("Failed", job.failed_imports),
        ("Chunks", f"{job.completed_chunks}/{job.total_chunks}"),
    ):
        typer.echo(f"  {label}: {value}")

    if job.failure_reason:
        display_error(f"  Failure: {job.failure_reason}")

    if job.errors:
        display_warning(f"\nErrors: {len(job.errors)}")
        for err in job.errors:
            typer.echo(f"  - {err.item_ref}: {err.reason}")
