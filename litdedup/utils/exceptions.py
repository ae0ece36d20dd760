"""Custom exceptions for the deduplication and batch-import pipeline

This module defines the exception hierarchy:
- Base exception for all litdedup errors
- Format errors raised before an import job exists
- Store and catalog collaborator errors
- Job and pair state errors

All exceptions inherit from LitDedupError to allow catching every
pipeline-related error in a single except block when needed.
"""

from typing import Optional


class LitDedupError(Exception):
    """Base exception for all litdedup errors

    ```python
    try:
        source = reader.parse(raw, hint="csv")
    except LitDedupError as e:
        logger.error("import_failed", error=str(e))
    ```
    """

    pass


class UnrecognizedFormatError(LitDedupError):
    """Import source format could not be classified

    Raised when:
    - Plain-text input does not start with a PMID or DOI
    - The format hint names an unsupported format
    - The input is empty

    Always raised synchronously, before a job starts.
    """

    pass


class SourceReadError(LitDedupError):
    """Import source could not be read at all (missing or unreadable file)"""

    pass


class StoreError(LitDedupError):
    """Record store operation failed

    Raised when:
    - An insert is rejected
    - A delete fails
    """

    pass


class RecordNotFoundError(StoreError):
    """Record id does not exist in the store"""

    pass


class StoreUnavailableError(StoreError):
    """Record store is unreachable

    Unlike plain StoreError this is not a per-item fault: a batch import
    that hits it transitions to failed.
    """

    pass


class CatalogError(LitDedupError):
    """External catalog request failed"""

    pass


class CatalogNotFoundError(CatalogError):
    """Identifier is unknown to the external catalog"""

    pass


class CatalogRateLimitError(CatalogError):
    """Catalog answered 429, optionally with retry-after metadata"""

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class JobStateError(LitDedupError):
    """Operation is not valid for the job's current state

    Raised when:
    - Mutating a job in a terminal state
    - An illegal status transition is requested
    - pause/resume/cancel is called with no running job
    - A second job is started while one is running
    """

    pass


class PairStateError(LitDedupError):
    """Duplicate pair was already resolved"""

    pass


class ConfigValidationError(LitDedupError):
    """Configuration validation failed"""

    pass
