"""Validate command for configuration files."""

from pathlib import Path

import typer

from litdedup.services.config_manager import ConfigManager
from litdedup.cli.utils import handle_errors, display_success, display_error


@handle_errors
def validate_command(
    config_path: Path = typer.Argument(..., help="Config file to validate"),
):
    """Validate configuration file syntax and semantics."""
    try:
        config = ConfigManager(config_path=str(config_path)).load_config()
    except Exception as e:
        display_error(f"Validation failed: {e}")
        raise typer.Exit(code=1)

    display_success("Configuration is valid!")
    typer.echo(f"  Store: {config.store.path}")
    typer.echo(f"  Catalog: {config.catalog.provider.value}")
    typer.echo(f"  Chunk size: {config.import_settings.chunk_size}")
    typer.echo(f"  Fuzzy title threshold: {config.detection.fuzzy_title_threshold}")
