"""
Batch import controller.

Runs one import job at a time as an asyncio task:
- Items are processed in fixed-size chunks, in strict input order
- Pause blocks on an asyncio.Event at chunk boundaries (no polling)
- Cancellation is cooperative, checked before every chunk and item
- Per-item faults are recorded on the job; only whole-job faults fail it
"""

import asyncio
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar, Union
import structlog

from litdedup.models.batch_import import BatchImportJob, ImportOptions, JobStatus
from litdedup.models.import_source import IdListSource, ImportSource, TabularSource
from litdedup.models.record import Record, utc_timestamp
from litdedup.observability.context import run_context
from litdedup.observability.metrics import ACTIVE_IMPORT_JOBS, IMPORT_ITEMS
from litdedup.services.checkpoint_service import CheckpointService
from litdedup.services.duplicate_detector import DuplicateDetector
from litdedup.services.providers.base import CatalogProvider
from litdedup.services.record_store import RecordStore
from litdedup.utils.exceptions import (
    CatalogNotFoundError,
    JobStateError,
    StoreError,
    StoreUnavailableError,
)
from litdedup.utils.rate_limiter import RateLimiter

logger = structlog.get_logger()

T = TypeVar("T")
ImportItem = Union[str, Record]
ProgressCallback = Callable[[BatchImportJob], None]

DUPLICATE_REASON = "duplicate-detected"
NOT_FOUND_REASON = "not-found"


class CancellationToken:
    """Explicit cancellation flag handed to the running worker"""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


def chunk_items(items: Sequence[T], size: int) -> List[List[T]]:
    """Split items into consecutive chunks of at most ``size``"""
    if size < 1:
        raise ValueError("chunk size must be at least 1")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class BatchImportController:
    """
    Stateful executor for batch import jobs.

    ``start`` returns the job handle immediately; its counters are updated
    in place while the worker task runs and can be polled at any time, or
    observed through ``on_progress``.
    """

    def __init__(
        self,
        store: RecordStore,
        catalog: Optional[CatalogProvider] = None,
        detector: Optional[DuplicateDetector] = None,
        checkpoint_service: Optional[CheckpointService] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        """
        Initialize the controller.

        Args:
            store: Record store receiving accepted records
            catalog: Catalog used to resolve id-list sources
            detector: Provides the exact-match rules for duplicate suppression
            checkpoint_service: Persists a job snapshot after each chunk
            on_progress: Called with the job after each item and chunk
        """
        self.store = store
        self.catalog = catalog
        self.detector = detector or DuplicateDetector()
        self.checkpoint_service = checkpoint_service
        self.on_progress = on_progress

        self._job: Optional[BatchImportJob] = None
        self._task: Optional["asyncio.Task[None]"] = None
        self._token: Optional[CancellationToken] = None
        self._resume_event: Optional[asyncio.Event] = None

    @property
    def job(self) -> Optional[BatchImportJob]:
        return self._job

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(
        self,
        source: ImportSource,
        options: Optional[ImportOptions] = None,
        resume_state: Optional[BatchImportJob] = None,
    ) -> BatchImportJob:
        """
        Create a job and schedule its worker on the running event loop.

        Args:
            source: Parsed import source
            options: Chunk size, delay and duplicate-suppression settings
            resume_state: Snapshot of an interrupted job to continue

        Returns:
            The queued job handle

        Raises:
            JobStateError: If a job is already running, or resume_state does
                not match the source
        """
        if self.is_running:
            raise JobStateError("A batch import job is already running")

        options = options or ImportOptions()
        items = self._items(source)
        job = BatchImportJob(source_kind=source.kind, total_items=len(items))

        if resume_state is not None:
            self._restore(job, resume_state)
            items = items[resume_state.processed_items :]

        chunks = chunk_items(items, options.chunk_size)
        job.total_chunks = job.completed_chunks + len(chunks)

        self._job = job
        self._token = CancellationToken()
        self._resume_event = asyncio.Event()
        self._resume_event.set()

        loop = asyncio.get_running_loop()
        self._task = loop.create_task(
            self._run(job, source, chunks, options, self._token, self._resume_event)
        )

        logger.info(
            "batch_import_queued",
            job_id=job.id,
            source_kind=source.kind.value,
            total_items=job.total_items,
            chunks=job.total_chunks,
            resumed_from=job.resumed_from,
        )
        return job

    def resume_from_checkpoint(
        self,
        source: ImportSource,
        job_id: str,
        options: Optional[ImportOptions] = None,
    ) -> BatchImportJob:
        """
        Start a new job continuing an interrupted one from its checkpoint.

        Raises:
            JobStateError: If no resumable checkpoint exists for job_id
        """
        if self.checkpoint_service is None:
            raise JobStateError("Checkpoints are not configured")

        checkpoint = self.checkpoint_service.load_checkpoint(job_id)
        if checkpoint is None:
            raise JobStateError(f"No checkpoint found for job {job_id}")
        if not checkpoint.resumable:
            raise JobStateError(f"Job {job_id} has nothing left to import")

        return self.start(source, options, resume_state=checkpoint.job)

    async def wait(self) -> BatchImportJob:
        """Wait for the current job to reach a terminal state"""
        if self._task is None or self._job is None:
            raise JobStateError("No batch import job has been started")
        await self._task
        return self._job

    async def run(
        self, source: ImportSource, options: Optional[ImportOptions] = None
    ) -> BatchImportJob:
        """Start a job and wait for it to finish"""
        self.start(source, options)
        return await self.wait()

    def pause(self) -> None:
        """Suspend the running job before its next chunk"""
        job, _, resume_event = self._ensure_active()
        resume_event.clear()
        logger.info("batch_import_pause_requested", job_id=job.id)

    def resume(self) -> None:
        """Wake a paused job"""
        job, _, resume_event = self._ensure_active()
        resume_event.set()
        logger.info("batch_import_resume_requested", job_id=job.id)

    def cancel(self) -> None:
        """Request cancellation; takes effect at the next chunk or item"""
        job, token, resume_event = self._ensure_active()
        token.cancel()
        # A paused worker must wake up to observe the cancellation
        resume_event.set()
        logger.info("batch_import_cancel_requested", job_id=job.id)

    def _ensure_active(self) -> Tuple[BatchImportJob, CancellationToken, asyncio.Event]:
        """Live job with its cancellation token and resume event"""
        job, token, resume_event = self._job, self._token, self._resume_event
        if (
            job is None
            or token is None
            or resume_event is None
            or not self.is_running
            or job.is_terminal
        ):
            raise JobStateError("No batch import job is running")
        return job, token, resume_event

    @staticmethod
    def _items(source: ImportSource) -> List[ImportItem]:
        if isinstance(source, IdListSource):
            return list(source.ids)
        if isinstance(source, TabularSource):
            return list(source.records)
        raise TypeError(f"Unsupported import source: {type(source).__name__}")

    @staticmethod
    def _restore(job: BatchImportJob, state: BatchImportJob) -> None:
        if state.total_items != job.total_items or state.source_kind != job.source_kind:
            raise JobStateError(
                f"Source does not match checkpoint of job {state.id} "
                f"({state.total_items} {state.source_kind} items)"
            )
        job.processed_items = state.processed_items
        job.successful_imports = state.successful_imports
        job.failed_imports = state.failed_imports
        job.errors = list(state.errors)
        job.completed_chunks = state.completed_chunks
        job.resumed_from = state.id

    async def _run(
        self,
        job: BatchImportJob,
        source: ImportSource,
        chunks: List[List[ImportItem]],
        options: ImportOptions,
        token: CancellationToken,
        resume_event: asyncio.Event,
    ) -> None:
        ACTIVE_IMPORT_JOBS.inc()
        with run_context(job.id):
            try:
                job.transition(JobStatus.PROCESSING)
                logger.info("batch_import_started", total_items=job.total_items)

                await self.store.ping()

                if isinstance(source, IdListSource) and self.catalog is None:
                    job.fail("No catalog provider configured for identifier import")
                    logger.error("batch_import_failed", reason=job.failure_reason)
                    return

                limiter = None
                if isinstance(source, IdListSource) and options.delay_between_requests > 0:
                    limiter = RateLimiter.from_delay(options.delay_between_requests)

                for chunk_number, chunk in enumerate(chunks, start=job.completed_chunks + 1):
                    if token.cancelled:
                        self._cancel_job(job)
                        return

                    if not resume_event.is_set():
                        job.transition(JobStatus.PAUSED)
                        self._save_checkpoint(job)
                        self._notify(job)
                        logger.info("batch_import_paused", processed=job.processed_items)

                        await resume_event.wait()

                        if token.cancelled:
                            self._cancel_job(job)
                            return
                        job.transition(JobStatus.PROCESSING)
                        logger.info("batch_import_resumed", processed=job.processed_items)

                    logger.debug(
                        "chunk_started",
                        chunk=chunk_number,
                        total_chunks=job.total_chunks,
                        size=len(chunk),
                    )

                    for item in chunk:
                        if token.cancelled:
                            self._cancel_job(job)
                            return
                        await self._process_item(job, item, options, limiter)
                        self._notify(job)

                    job.record_chunk_complete()
                    self._save_checkpoint(job)
                    self._notify(job)

                job.transition(JobStatus.COMPLETED)
                logger.info(
                    "batch_import_completed",
                    processed=job.processed_items,
                    successful=job.successful_imports,
                    failed=job.failed_imports,
                )

            except StoreUnavailableError as e:
                if not job.is_terminal:
                    job.fail(f"Record store unavailable: {e}")
                logger.error("batch_import_failed", reason=job.failure_reason)

            except Exception as e:
                if not job.is_terminal:
                    job.fail(str(e))
                logger.exception("batch_import_crashed", error=str(e))

            finally:
                ACTIVE_IMPORT_JOBS.dec()
                if job.is_terminal:
                    self._save_checkpoint(job)
                self._notify(job)

    async def _process_item(
        self,
        job: BatchImportJob,
        item: ImportItem,
        options: ImportOptions,
        limiter: Optional[RateLimiter],
    ) -> None:
        """Fetch (for identifiers), suppress duplicates and insert one item

        Every path ends in exactly one record_success/record_failure, except
        StoreUnavailableError which fails the whole job.
        """
        if isinstance(item, str):
            item_ref = item
            if limiter is not None:
                await limiter.acquire(requester_id=job.id)
            try:
                record = await self.catalog.fetch_by_id(item)  # type: ignore[union-attr]
            except CatalogNotFoundError:
                self._item_failed(job, item_ref, NOT_FOUND_REASON)
                return
            except Exception as e:
                self._item_failed(job, item_ref, str(e) or type(e).__name__)
                return
        else:
            record = item
            item_ref = record.external_id or record.title[:80]

        record = record.with_provenance(batch_job_id=job.id, imported_at=utc_timestamp())
        if options.project_id:
            record = record.model_copy(update={"project_id": options.project_id})

        try:
            if options.enable_duplicate_detection:
                filters = {"project_id": options.project_id} if options.project_id else None
                candidates = await self.store.find_candidate_duplicates(record, filters)
                match = self.detector.find_exact_match(record, candidates)
                if match is not None:
                    existing, match_type = match
                    logger.info(
                        "import_duplicate_detected",
                        item_ref=item_ref,
                        existing_id=existing.id,
                        match_type=match_type.value,
                    )
                    self._item_failed(job, item_ref, DUPLICATE_REASON, outcome="duplicate")
                    return

            await self.store.insert(record)

        except StoreUnavailableError:
            raise
        except StoreError as e:
            self._item_failed(job, item_ref, str(e))
            return

        job.record_success()
        IMPORT_ITEMS.labels(outcome="success").inc()
        logger.debug("import_item_stored", item_ref=item_ref)

    @staticmethod
    def _item_failed(
        job: BatchImportJob, item_ref: str, reason: str, outcome: str = "failed"
    ) -> None:
        job.record_failure(item_ref, reason)
        IMPORT_ITEMS.labels(outcome=outcome).inc()
        logger.warning("import_item_failed", item_ref=item_ref, reason=reason)

    def _cancel_job(self, job: BatchImportJob) -> None:
        job.transition(JobStatus.CANCELLED)
        logger.info(
            "batch_import_cancelled",
            processed=job.processed_items,
            total=job.total_items,
        )

    def _save_checkpoint(self, job: BatchImportJob) -> None:
        if self.checkpoint_service is not None:
            self.checkpoint_service.save_checkpoint(job)

    def _notify(self, job: BatchImportJob) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(job)
        except Exception as e:
            logger.warning("progress_callback_failed", error=str(e))

