"""Run-id log correlation, structlog setup and Prometheus instruments."""

from litdedup.observability.context import current_run_id, new_run_id, run_context
from litdedup.observability.logging import add_run_id, configure_logging
from litdedup.observability.metrics import (
    ACTIVE_IMPORT_JOBS,
    CATALOG_REQUEST_DURATION,
    CATALOG_REQUESTS,
    DUPLICATE_PAIRS,
    IMPORT_ITEMS,
    MERGES,
    METRICS_CONTENT_TYPE,
    REGISTRY,
    render_metrics,
    track_catalog_request,
)

__all__ = [
    "current_run_id",
    "new_run_id",
    "run_context",
    "add_run_id",
    "configure_logging",
    "ACTIVE_IMPORT_JOBS",
    "CATALOG_REQUEST_DURATION",
    "CATALOG_REQUESTS",
    "DUPLICATE_PAIRS",
    "IMPORT_ITEMS",
    "MERGES",
    "METRICS_CONTENT_TYPE",
    "REGISTRY",
    "render_metrics",
    "track_catalog_request",
]
