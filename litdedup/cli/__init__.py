"""litdedup CLI Package.

Provides the command-line interface for duplicate detection and batch
import of bibliographic records.

Usage:
    python -m litdedup.cli scan --filter pending
    python -m litdedup.cli merge KEEP_ID REMOVE_ID
    python -m litdedup.cli import pmids.txt --chunk-size 20
    python -m litdedup.cli jobs list
    python -m litdedup.cli validate config/litdedup.yaml
"""

import typer

from litdedup.cli.scan import scan_command
from litdedup.cli.merge import merge_command
from litdedup.cli.import_cmd import import_command
from litdedup.cli.validate import validate_command
from litdedup.cli.jobs import jobs_app

# Create main app
app = typer.Typer(help="litdedup: duplicate detection and batch import for literature records")

# Register individual commands
app.command(name="scan")(scan_command)
app.command(name="merge")(merge_command)
app.command(name="import")(import_command)
app.command(name="validate")(validate_command)

# Register sub-applications
app.add_typer(jobs_app, name="jobs")

__all__ = [
    "app",
    "scan_command",
    "merge_command",
    "import_command",
    "validate_command",
    "jobs_app",
]
