"""
Checkpoint persistence for batch imports.

The controller hands over the job after every finished chunk; the snapshot
lands in ``<checkpoint_dir>/<job_id>.json``. A later ``import --resume``
reads it back and continues with the first chunk that was not completed.
"""

import os
import re
from pathlib import Path
from typing import List, Optional

import structlog
from pydantic import ValidationError

from litdedup.models.batch_import import BatchImportJob
from litdedup.models.checkpoint import Checkpoint, CheckpointConfig

logger = structlog.get_logger()

# Job ids are uuid4 strings; anything path-like is refused
JOB_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class CheckpointService:
    """Reads and writes one JSON snapshot per import job.

    When checkpoints are disabled every write reports success and every read
    finds nothing, so callers never need to branch on the setting.
    """

    def __init__(self, config: CheckpointConfig):
        self.config = config
        self.checkpoint_dir = Path(config.checkpoint_dir)

        if config.enabled:
            self.checkpoint_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(
            "checkpoints_ready",
            enabled=config.enabled,
            checkpoint_dir=str(self.checkpoint_dir),
        )

    def save_checkpoint(self, job: BatchImportJob) -> bool:
        """Snapshot ``job``; returns False if the file could not be written.

        The snapshot goes to a sibling ``.tmp`` file first and is then moved
        over the previous one, so a crash mid-write keeps the old snapshot.
        """
        if not self.config.enabled:
            return True

        target = self._get_checkpoint_path(job.id)
        staging = target.with_suffix(".tmp")
        payload = Checkpoint(job=job.model_copy(deep=True)).model_dump_json(indent=2)

        try:
            staging.write_text(payload, encoding="utf-8")
            os.replace(staging, target)
        except OSError as e:
            logger.error("checkpoint_write_failed", job_id=job.id, error=str(e))
            return False

        logger.debug(
            "checkpoint_written",
            job_id=job.id,
            status=job.status.value,
            completed_chunks=job.completed_chunks,
        )
        return True

    def load_checkpoint(self, job_id: str) -> Optional[Checkpoint]:
        """Return the snapshot for ``job_id``, or None if absent or unreadable."""
        if not self.config.enabled:
            return None

        path = self._get_checkpoint_path(job_id)
        if not path.is_file():
            return None

        try:
            checkpoint = Checkpoint.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning("checkpoint_unreadable", job_id=job_id, error=str(e))
            return None

        logger.info(
            "checkpoint_read",
            job_id=job_id,
            status=checkpoint.job.status.value,
            processed=checkpoint.job.processed_items,
        )
        return checkpoint

    def clear_checkpoint(self, job_id: str) -> bool:
        if not self.config.enabled:
            return True

        try:
            self._get_checkpoint_path(job_id).unlink(missing_ok=True)
        except OSError as e:
            logger.error("checkpoint_remove_failed", job_id=job_id, error=str(e))
            return False
        return True

    def list_checkpoints(self) -> List[str]:
        """Job ids with a snapshot on disk, sorted."""
        if not self.config.enabled or not self.checkpoint_dir.is_dir():
            return []
        return sorted(path.stem for path in self.checkpoint_dir.glob("*.json"))

    def _get_checkpoint_path(self, job_id: str) -> Path:
        if not JOB_ID_PATTERN.match(job_id or "") or ".." in job_id:
            raise ValueError(f"Invalid job id: {job_id!r}")
        return self.checkpoint_dir / f"{job_id}.json"
