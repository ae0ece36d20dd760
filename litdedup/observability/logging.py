"""structlog setup for the CLI.

Library modules only ever call ``structlog.get_logger()``; this module
decides how those events are rendered. Every event carries the ``run_id``
of the scan, merge or import job that emitted it.
"""

import logging
import sys
from typing import Any, List, Optional

import structlog
from structlog.typing import EventDict, WrappedLogger

from litdedup.models.config import LoggingSettings
from litdedup.observability.context import current_run_id


def add_run_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp the current run id; an explicit ``run_id`` field wins."""
    event_dict.setdefault("run_id", current_run_id() or "-")
    return event_dict


def configure_logging(settings: Optional[LoggingSettings] = None) -> None:
    """Install the processor chain described by ``settings``.

    Console rendering is meant for interactive use, JSON for piping import
    runs into a log collector.
    """
    settings = settings or LoggingSettings()

    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        add_run_id,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]
    if settings.json_output:
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.level)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
