"""Prometheus instruments for scans, merges, imports and catalog traffic.

Everything is registered on the package's own ``REGISTRY`` so importing
litdedup never touches prometheus_client's global default registry.
"""

import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry(auto_describe=True)

# outcome: success | duplicate | failed
IMPORT_ITEMS = Counter(
    "litdedup_import_items_total",
    "Batch import items by outcome",
    ["outcome"],
    registry=REGISTRY,
)

DUPLICATE_PAIRS = Counter(
    "litdedup_duplicate_pairs_total",
    "Candidate duplicate pairs emitted by scans",
    ["match_type"],
    registry=REGISTRY,
)

# mode: manual | auto
MERGES = Counter(
    "litdedup_merges_total",
    "Duplicate pairs resolved by deleting one side",
    ["mode"],
    registry=REGISTRY,
)

CATALOG_REQUESTS = Counter(
    "litdedup_catalog_requests_total",
    "HTTP requests sent to an external catalog",
    ["provider", "status"],
    registry=REGISTRY,
)

ACTIVE_IMPORT_JOBS = Gauge(
    "litdedup_active_import_jobs",
    "Batch import workers currently running",
    registry=REGISTRY,
)

CATALOG_REQUEST_DURATION = Histogram(
    "litdedup_catalog_request_duration_seconds",
    "Latency of external catalog requests, retries counted separately",
    ["provider"],
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
    registry=REGISTRY,
)


@contextmanager
def track_catalog_request(provider: str) -> Iterator[None]:
    """Time one catalog request and count it as success or failed.

    A request counts as failed when the block raises.
    """
    started = time.perf_counter()
    status = "failed"
    try:
        yield
        status = "success"
    finally:
        CATALOG_REQUEST_DURATION.labels(provider=provider).observe(
            time.perf_counter() - started
        )
        CATALOG_REQUESTS.labels(provider=provider, status=status).inc()


def render_metrics() -> bytes:
    """Text exposition of every litdedup instrument."""
    return generate_latest(REGISTRY)


METRICS_CONTENT_TYPE = CONTENT_TYPE_LATEST
