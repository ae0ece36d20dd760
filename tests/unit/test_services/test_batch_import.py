"""Tests for the batch import controller."""

import asyncio
import pytest
from typing import Callable, List, Optional, Set
from unittest.mock import AsyncMock, MagicMock, patch

from litdedup.models.batch_import import BatchImportJob, ImportOptions, JobStatus
from litdedup.models.checkpoint import CheckpointConfig
from litdedup.models.import_source import IdListSource, IdType, TabularSource
from litdedup.models.record import Record
from litdedup.services.batch_import import (
    BatchImportController,
    chunk_items,
    DUPLICATE_REASON,
    NOT_FOUND_REASON,
)
from litdedup.services.checkpoint_service import CheckpointService
from litdedup.services.providers.base import CatalogProvider
from litdedup.services.providers.pubmed import PubMedProvider
from litdedup.services.record_store import InMemoryRecordStore
from litdedup.utils.exceptions import (
    CatalogError,
    CatalogNotFoundError,
    JobStateError,
    StoreError,
    StoreUnavailableError,
)

NO_DELAY = ImportOptions(delay_between_requests=0)


class FakeCatalog(CatalogProvider):
    def __init__(
        self,
        missing: Optional[Set[str]] = None,
        broken: Optional[Set[str]] = None,
        on_fetch: Optional[Callable[[str], None]] = None,
    ):
        self.missing = missing or set()
        self.broken = broken or set()
        self.on_fetch = on_fetch
        self.fetched: List[str] = []

    @property
    def name(self) -> str:
        return "fake"

    async def fetch_by_id(self, identifier: str) -> Record:
        self.fetched.append(identifier)
        if self.on_fetch:
            self.on_fetch(identifier)
        if identifier in self.missing:
            raise CatalogNotFoundError(identifier)
        if identifier in self.broken:
            raise CatalogError("catalog exploded")
        return Record(title=f"Paper {identifier}", pmid=identifier, external_id=identifier)

    async def search(self, query: str, max_results: int = 20) -> List[Record]:
        return []


class UnreachableStore(InMemoryRecordStore):
    async def ping(self) -> None:
        raise StoreUnavailableError("connection refused")


class FlakyStore(InMemoryRecordStore):
    """Rejects inserts of chosen titles"""

    def __init__(self, reject: Set[str], unavailable: bool = False):
        super().__init__()
        self.reject = reject
        self.unavailable = unavailable

    async def insert(self, record: Record) -> Record:
        if record.title in self.reject:
            if self.unavailable:
                raise StoreUnavailableError("store went away")
            raise StoreError("constraint violation")
        return await super().insert(record)


def id_source(count: int) -> IdListSource:
    return IdListSource(id_type=IdType.PMID, ids=[str(i) for i in range(1, count + 1)])


def assert_consistent(job: BatchImportJob) -> None:
    assert job.processed_items == job.successful_imports + job.failed_imports
    assert job.processed_items <= job.total_items
    assert len(job.errors) == job.failed_imports


def test_chunk_items():
    chunks = chunk_items(list(range(25)), 10)
    assert [len(c) for c in chunks] == [10, 10, 5]
    assert [x for c in chunks for x in c] == list(range(25))


def test_chunk_items_rejects_zero():
    with pytest.raises(ValueError):
        chunk_items([1], 0)


@pytest.mark.asyncio
async def test_twenty_five_ids_in_three_chunks():
    store = InMemoryRecordStore()
    controller = BatchImportController(store, catalog=FakeCatalog())

    job = await controller.run(id_source(25), ImportOptions(chunk_size=10, delay_between_requests=0))

    assert job.total_items == 25
    assert job.total_chunks == 3
    assert job.completed_chunks == 3
    assert job.status == JobStatus.COMPLETED
    assert job.successful_imports == 25
    assert job.started_at is not None and job.completed_at is not None
    assert_consistent(job)
    assert [r.pmid for r in await store.list_all()] == [str(i) for i in range(1, 26)]


@pytest.mark.asyncio
async def test_start_returns_queued_handle():
    controller = BatchImportController(InMemoryRecordStore(), catalog=FakeCatalog())

    job = controller.start(id_source(3), NO_DELAY)

    assert job.status == JobStatus.QUEUED
    assert controller.is_running
    await controller.wait()
    assert job.status == JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_imported_records_carry_provenance():
    store = InMemoryRecordStore()
    controller = BatchImportController(store, catalog=FakeCatalog())

    job = await controller.run(id_source(1), ImportOptions(delay_between_requests=0, project_id="p1"))

    [record] = await store.list_all()
    assert record.id is not None
    assert record.project_id == "p1"
    assert record.metadata["batch_job_id"] == job.id


@pytest.mark.asyncio
async def test_not_found_is_per_item_failure():
    controller = BatchImportController(
        InMemoryRecordStore(), catalog=FakeCatalog(missing={"2"}, broken={"4"})
    )

    job = await controller.run(id_source(5), NO_DELAY)

    assert job.status == JobStatus.COMPLETED
    assert job.successful_imports == 3
    assert job.failed_imports == 2
    assert [(e.item_ref, e.reason) for e in job.errors] == [
        ("2", NOT_FOUND_REASON),
        ("4", "catalog exploded"),
    ]
    assert_consistent(job)


@pytest.mark.asyncio
async def test_untitled_pubmed_records_not_treated_as_duplicates():
    limiter = MagicMock()
    limiter.acquire = AsyncMock(return_value=0.0)
    catalog = PubMedProvider(api_key="k", rate_limiter=limiter)
    store = InMemoryRecordStore()

    def untitled(pmid):
        response = AsyncMock()
        response.status = 200
        response.headers = {}
        response.json.return_value = {
            "result": {"uids": [pmid], pmid: {"uid": pmid, "title": ""}}
        }
        return response

    with patch("aiohttp.ClientSession.get") as mock_get:
        mock_get.return_value.__aenter__.side_effect = [untitled("1"), untitled("2")]
        job = await BatchImportController(store, catalog=catalog).run(id_source(2), NO_DELAY)

    assert job.status == JobStatus.COMPLETED
    assert [(e.item_ref, e.reason) for e in job.errors] == [
        ("1", NOT_FOUND_REASON),
        ("2", NOT_FOUND_REASON),
    ]
    assert len(store) == 0
    assert_consistent(job)


@pytest.mark.asyncio
async def test_duplicates_suppressed():
    store = InMemoryRecordStore([Record(id="s1", title="Existing", doi="10.1/dup")])
    source = TabularSource(
        records=[
            Record(title="Renamed copy", doi="10.1/DUP", external_id="10.1/DUP"),
            Record(title="existing", external_id="row_2"),
            Record(title="Fresh paper", external_id="row_3"),
        ]
    )
    controller = BatchImportController(store)

    job = await controller.run(source, NO_DELAY)

    assert job.status == JobStatus.COMPLETED
    assert job.successful_imports == 1
    assert [e.reason for e in job.errors] == [DUPLICATE_REASON, DUPLICATE_REASON]
    assert [e.item_ref for e in job.errors] == ["10.1/DUP", "row_2"]
    assert len(store) == 2


@pytest.mark.asyncio
async def test_duplicate_detection_disabled():
    store = InMemoryRecordStore([Record(id="s1", title="Existing", doi="10.1/dup")])
    source = TabularSource(records=[Record(title="Existing", doi="10.1/dup")])
    options = ImportOptions(delay_between_requests=0, enable_duplicate_detection=False)

    job = await BatchImportController(store).run(source, options)

    assert job.successful_imports == 1
    assert len(store) == 2


@pytest.mark.asyncio
async def test_duplicates_within_the_same_file():
    store = InMemoryRecordStore()
    source = TabularSource(records=[Record(title="Same"), Record(title="SAME")])

    job = await BatchImportController(store).run(source, NO_DELAY)

    assert job.successful_imports == 1
    assert job.errors[0].reason == DUPLICATE_REASON


@pytest.mark.asyncio
async def test_insert_failure_is_per_item():
    store = FlakyStore(reject={"Paper 2"})
    controller = BatchImportController(store, catalog=FakeCatalog())

    job = await controller.run(id_source(3), NO_DELAY)

    assert job.status == JobStatus.COMPLETED
    assert job.successful_imports == 2
    assert job.errors[0].item_ref == "2"
    assert "constraint violation" in job.errors[0].reason


@pytest.mark.asyncio
async def test_unreachable_store_fails_job():
    controller = BatchImportController(UnreachableStore(), catalog=FakeCatalog())

    job = await controller.run(id_source(3), NO_DELAY)

    assert job.status == JobStatus.FAILED
    assert job.processed_items == 0
    assert "connection refused" in job.failure_reason


@pytest.mark.asyncio
async def test_store_lost_mid_job_fails_job():
    store = FlakyStore(reject={"Paper 2"}, unavailable=True)
    controller = BatchImportController(store, catalog=FakeCatalog())

    job = await controller.run(id_source(3), NO_DELAY)

    assert job.status == JobStatus.FAILED
    assert job.processed_items == 1
    assert_consistent(job)


@pytest.mark.asyncio
async def test_id_list_without_catalog_fails_job():
    job = await BatchImportController(InMemoryRecordStore()).run(id_source(2), NO_DELAY)

    assert job.status == JobStatus.FAILED
    assert job.processed_items == 0


@pytest.mark.asyncio
async def test_empty_source_completes():
    job = await BatchImportController(InMemoryRecordStore()).run(TabularSource(), NO_DELAY)

    assert job.status == JobStatus.COMPLETED
    assert job.total_items == 0
    assert job.total_chunks == 0


@pytest.mark.asyncio
async def test_delay_applies_between_fetches():
    limiter = MagicMock()
    limiter.acquire = AsyncMock(return_value=0.0)
    controller = BatchImportController(InMemoryRecordStore(), catalog=FakeCatalog())

    with patch("litdedup.services.batch_import.RateLimiter.from_delay", return_value=limiter) as factory:
        await controller.run(id_source(4), ImportOptions(chunk_size=2, delay_between_requests=0.5))

    factory.assert_called_once_with(0.5)
    assert limiter.acquire.await_count == 4


@pytest.mark.asyncio
async def test_tabular_sources_are_not_rate_limited():
    source = TabularSource(records=[Record(title="A"), Record(title="B")])
    with patch("litdedup.services.batch_import.RateLimiter.from_delay") as factory:
        await BatchImportController(InMemoryRecordStore()).run(source, ImportOptions())
    factory.assert_not_called()


class TestPauseResumeCancel:
    @pytest.mark.asyncio
    async def test_pause_then_resume_matches_uninterrupted_run(self):
        baseline_store = InMemoryRecordStore()
        baseline = await BatchImportController(baseline_store, catalog=FakeCatalog(missing={"3"})).run(
            id_source(7), ImportOptions(chunk_size=3, delay_between_requests=0)
        )

        store = InMemoryRecordStore()
        controller = BatchImportController(store, catalog=FakeCatalog(missing={"3"}))
        job = controller.start(id_source(7), ImportOptions(chunk_size=3, delay_between_requests=0))
        controller.pause()
        await asyncio.sleep(0.05)

        assert job.status == JobStatus.PAUSED
        assert job.processed_items == 0

        controller.resume()
        await controller.wait()

        assert job.status == JobStatus.COMPLETED
        assert job.successful_imports == baseline.successful_imports
        assert job.errors == baseline.errors
        assert [r.title for r in await store.list_all()] == [
            r.title for r in await baseline_store.list_all()
        ]

    @pytest.mark.asyncio
    async def test_pause_takes_effect_at_chunk_boundary(self):
        controller = BatchImportController(InMemoryRecordStore())
        catalog = FakeCatalog(on_fetch=lambda identifier: controller.pause() if identifier == "2" else None)
        controller.catalog = catalog

        job = controller.start(id_source(6), ImportOptions(chunk_size=3, delay_between_requests=0))
        await asyncio.sleep(0.05)

        assert job.status == JobStatus.PAUSED
        assert job.processed_items == 3
        assert job.completed_chunks == 1

        controller.resume()
        await controller.wait()
        assert job.processed_items == 6

    @pytest.mark.asyncio
    async def test_cancel_before_first_chunk(self):
        controller = BatchImportController(InMemoryRecordStore(), catalog=FakeCatalog())
        job = controller.start(id_source(5), NO_DELAY)
        controller.cancel()
        await controller.wait()

        assert job.status == JobStatus.CANCELLED
        assert job.processed_items == 0
        assert job.completed_at is not None

    @pytest.mark.asyncio
    async def test_cancel_while_paused(self):
        controller = BatchImportController(InMemoryRecordStore(), catalog=FakeCatalog())
        job = controller.start(id_source(5), NO_DELAY)
        controller.pause()
        await asyncio.sleep(0.05)
        assert job.status == JobStatus.PAUSED

        controller.cancel()
        await controller.wait()

        assert job.status == JobStatus.CANCELLED
        assert job.processed_items == 0

    @pytest.mark.asyncio
    async def test_cancel_mid_chunk_stops_before_next_item(self):
        store = InMemoryRecordStore()
        controller = BatchImportController(store)
        catalog = FakeCatalog(on_fetch=lambda identifier: controller.cancel() if identifier == "3" else None)
        controller.catalog = catalog

        job = controller.start(id_source(8), ImportOptions(chunk_size=5, delay_between_requests=0))
        await controller.wait()

        assert job.status == JobStatus.CANCELLED
        assert job.processed_items == 3
        assert catalog.fetched == ["1", "2", "3"]
        assert len(store) == 3
        assert_consistent(job)

    @pytest.mark.asyncio
    async def test_cancelled_job_rejects_mutation(self):
        controller = BatchImportController(InMemoryRecordStore(), catalog=FakeCatalog())
        job = controller.start(id_source(2), NO_DELAY)
        controller.cancel()
        await controller.wait()

        with pytest.raises(JobStateError):
            job.record_success()
        with pytest.raises(JobStateError):
            controller.resume()
        assert job.processed_items == 0

    @pytest.mark.asyncio
    async def test_controls_require_running_job(self):
        controller = BatchImportController(InMemoryRecordStore())
        for action in (controller.pause, controller.resume, controller.cancel):
            with pytest.raises(JobStateError):
                action()
        with pytest.raises(JobStateError):
            await controller.wait()

    @pytest.mark.asyncio
    async def test_controls_rejected_after_completion(self):
        controller = BatchImportController(InMemoryRecordStore(), catalog=FakeCatalog())
        job = await controller.run(id_source(1), NO_DELAY)

        for action in (controller.pause, controller.resume, controller.cancel):
            with pytest.raises(JobStateError):
                action()
        assert job.status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_single_job_at_a_time(self):
        controller = BatchImportController(InMemoryRecordStore(), catalog=FakeCatalog())
        controller.start(id_source(3), NO_DELAY)

        with pytest.raises(JobStateError):
            controller.start(id_source(3), NO_DELAY)
        await controller.wait()


class TestProgress:
    @pytest.mark.asyncio
    async def test_observations_are_consistent_and_monotonic(self):
        snapshots = []

        def on_progress(job):
            snapshots.append(job.model_copy(deep=True))

        controller = BatchImportController(
            InMemoryRecordStore(), catalog=FakeCatalog(missing={"4"}), on_progress=on_progress
        )
        await controller.run(id_source(6), ImportOptions(chunk_size=4, delay_between_requests=0))

        processed = [s.processed_items for s in snapshots]
        assert processed == sorted(processed)
        assert processed[-1] == 6
        assert snapshots[-1].status == JobStatus.COMPLETED
        for snapshot in snapshots:
            assert_consistent(snapshot)

    @pytest.mark.asyncio
    async def test_callback_errors_do_not_break_job(self):
        def on_progress(job):
            raise RuntimeError("ui crashed")

        controller = BatchImportController(
            InMemoryRecordStore(), catalog=FakeCatalog(), on_progress=on_progress
        )
        job = await controller.run(id_source(2), NO_DELAY)
        assert job.status == JobStatus.COMPLETED


class TestCheckpointResume:
    @pytest.mark.asyncio
    async def test_resume_interrupted_job(self, tmp_path):
        service = CheckpointService(CheckpointConfig(checkpoint_dir=str(tmp_path)))
        options = ImportOptions(chunk_size=2, delay_between_requests=0)
        source = id_source(6)
        store = InMemoryRecordStore()

        first = BatchImportController(store, checkpoint_service=service)
        first.catalog = FakeCatalog(on_fetch=lambda identifier: first.cancel() if identifier == "4" else None)
        interrupted = await first.run(source, options)

        assert interrupted.status == JobStatus.CANCELLED
        assert interrupted.processed_items == 4
        assert service.load_checkpoint(interrupted.id).resumable

        catalog = FakeCatalog()
        second = BatchImportController(store, catalog=catalog, checkpoint_service=service)
        job = second.resume_from_checkpoint(source, interrupted.id, options)
        await second.wait()

        assert job.resumed_from == interrupted.id
        assert job.status == JobStatus.COMPLETED
        assert job.processed_items == 6
        assert job.successful_imports == 6
        assert job.completed_chunks == job.total_chunks == 3
        assert catalog.fetched == ["5", "6"]
        assert len(store) == 6

    @pytest.mark.asyncio
    async def test_resume_requires_matching_source(self):
        controller = BatchImportController(InMemoryRecordStore(), catalog=FakeCatalog())
        state = BatchImportJob(total_items=10)

        with pytest.raises(JobStateError):
            controller.start(id_source(3), NO_DELAY, resume_state=state)

    @pytest.mark.asyncio
    async def test_resume_unknown_checkpoint(self, tmp_path):
        service = CheckpointService(CheckpointConfig(checkpoint_dir=str(tmp_path)))
        controller = BatchImportController(InMemoryRecordStore(), checkpoint_service=service)

        with pytest.raises(JobStateError):
            controller.resume_from_checkpoint(id_source(3), "missing-job")

    @pytest.mark.asyncio
    async def test_resume_completed_job_rejected(self, tmp_path):
        service = CheckpointService(CheckpointConfig(checkpoint_dir=str(tmp_path)))
        controller = BatchImportController(
            InMemoryRecordStore(), catalog=FakeCatalog(), checkpoint_service=service
        )
        job = await controller.run(id_source(2), NO_DELAY)

        with pytest.raises(JobStateError):
            controller.resume_from_checkpoint(id_source(2), job.id)

    def test_resume_without_checkpoint_service(self):
        controller = BatchImportController(InMemoryRecordStore())
        with pytest.raises(JobStateError):
            controller.resume_from_checkpoint(id_source(1), "job")
