"""Checkpoint models for resumable batch imports."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from litdedup.models.batch_import import BatchImportJob, JobStatus


class CheckpointConfig(BaseModel):
    enabled: bool = True
    checkpoint_dir: str = "./checkpoints"


class Checkpoint(BaseModel):
    """Job snapshot written after a completed chunk"""

    job: BatchImportJob
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def job_id(self) -> str:
        return self.job.id

    @property
    def resumable(self) -> bool:
        # Completed jobs and jobs with no items left have nothing to resume
        return self.job.status != JobStatus.COMPLETED and self.job.remaining_items > 0
