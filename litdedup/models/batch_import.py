"""Data models for batch import jobs."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field, ConfigDict

from litdedup.models.import_source import SourceKind
from litdedup.utils.exceptions import JobStateError


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES: FrozenSet[JobStatus] = frozenset(
    {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}
)

_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.QUEUED: frozenset(
        {JobStatus.PROCESSING, JobStatus.FAILED, JobStatus.CANCELLED}
    ),
    JobStatus.PROCESSING: frozenset(
        {
            JobStatus.PAUSED,
            JobStatus.COMPLETED,
            JobStatus.FAILED,
            JobStatus.CANCELLED,
        }
    ),
    JobStatus.PAUSED: frozenset({JobStatus.PROCESSING, JobStatus.CANCELLED}),
}


class ImportOptions(BaseModel):
    """Per-job import settings"""

    model_config = ConfigDict(protected_namespaces=())

    chunk_size: int = Field(10, ge=1, le=1000)
    delay_between_requests: float = Field(
        1.0, ge=0.0, description="Seconds between individual catalog fetches"
    )
    enable_duplicate_detection: bool = True
    project_id: Optional[str] = None


class ImportItemError(BaseModel):
    """One failed item of a batch import"""

    item_ref: str
    reason: str


class BatchImportJob(BaseModel):
    """Observable state of a batch import

    Counters only move forward through the ``record_*`` methods, which keep
    ``processed_items == successful_imports + failed_imports``. A job in a
    terminal state refuses every mutation.
    """

    model_config = ConfigDict(protected_namespaces=())

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    status: JobStatus = JobStatus.QUEUED
    source_kind: Optional[SourceKind] = None
    total_items: int = Field(0, ge=0)
    processed_items: int = Field(0, ge=0)
    successful_imports: int = Field(0, ge=0)
    failed_imports: int = Field(0, ge=0)
    errors: List[ImportItemError] = Field(default_factory=list)
    total_chunks: int = 0
    completed_chunks: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    resumed_from: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def remaining_items(self) -> int:
        return self.total_items - self.processed_items

    def _ensure_mutable(self) -> None:
        if self.is_terminal:
            raise JobStateError(
                f"Job {self.id} is {self.status.value} and cannot be modified"
            )

    def transition(self, new_status: JobStatus) -> None:
        """Move to ``new_status`` if the state machine allows it"""
        self._ensure_mutable()
        allowed = _TRANSITIONS.get(self.status, frozenset())
        if new_status not in allowed:
            raise JobStateError(
                f"Illegal transition {self.status.value} -> {new_status.value}"
            )

        if new_status == JobStatus.PROCESSING and self.started_at is None:
            self.started_at = datetime.utcnow()
        if new_status in TERMINAL_STATUSES:
            self.completed_at = datetime.utcnow()

        self.status = new_status

    def fail(self, reason: str) -> None:
        self.transition(JobStatus.FAILED)
        self.failure_reason = reason

    def record_success(self) -> None:
        self._ensure_mutable()
        if self.processed_items >= self.total_items:
            raise JobStateError("Processed count would exceed total items")
        self.successful_imports += 1
        self.processed_items += 1

    def record_failure(self, item_ref: str, reason: str) -> None:
        self._ensure_mutable()
        if self.processed_items >= self.total_items:
            raise JobStateError("Processed count would exceed total items")
        self.errors.append(ImportItemError(item_ref=item_ref, reason=reason))
        self.failed_imports += 1
        self.processed_items += 1

    def record_chunk_complete(self) -> None:
        self._ensure_mutable()
        self.completed_chunks += 1
