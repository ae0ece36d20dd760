"""
Record store collaborators.

The pipeline consumes persistence through the narrow RecordStore contract.
Two implementations ship with the package:
- InMemoryRecordStore: process-local dict, used by tests and dry runs
- JsonRecordStore: single JSON file written atomically (tmp + rename)
"""

import asyncio
import json
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Any
import structlog

from litdedup.models.record import Record
from litdedup.utils.exceptions import (
    RecordNotFoundError,
    StoreError,
    StoreUnavailableError,
)

logger = structlog.get_logger()


class RecordStore(ABC):
    """Abstract base class for record persistence

    Each call is assumed to be individually atomic; multi-step sequences
    (duplicate lookup followed by insert) are not transactional.
    """

    @abstractmethod
    async def insert(self, record: Record) -> Record:
        """Persist a new record

        Returns:
            The stored record with its assigned id

        Raises:
            StoreError: If the insert is rejected
            StoreUnavailableError: If the store cannot be reached
        """
        pass

    @abstractmethod
    async def delete(self, record_id: str) -> None:
        """Delete a record

        Raises:
            RecordNotFoundError: If the id does not exist
        """
        pass

    @abstractmethod
    async def get(self, record_id: str) -> Optional[Record]:
        """Fetch one record by id, None if absent"""
        pass

    @abstractmethod
    async def find_candidate_duplicates(
        self, record: Record, filters: Optional[Dict[str, Any]] = None
    ) -> List[Record]:
        """Records sharing DOI, PMID or normalized title with ``record``

        Args:
            record: Incoming record
            filters: Optional equality filters, e.g. {"project_id": "p1"}
        """
        pass

    @abstractmethod
    async def list_all(self, project_id: Optional[str] = None) -> List[Record]:
        """All records in a project scope (all records when None)"""
        pass

    async def ping(self) -> None:
        """Raise StoreUnavailableError if the store cannot be used"""
        return None


def _matches_filters(record: Record, filters: Optional[Dict[str, Any]]) -> bool:
    if not filters:
        return True
    return all(getattr(record, key, None) == value for key, value in filters.items())


def _is_candidate(record: Record, existing: Record) -> bool:
    doi = record.normalized_doi
    if doi and doi == existing.normalized_doi:
        return True
    if record.pmid and record.pmid == existing.pmid:
        return True
    return record.normalized_title == existing.normalized_title


class InMemoryRecordStore(RecordStore):
    """Dict-backed store; insertion order is preserved for list_all"""

    def __init__(self, records: Optional[List[Record]] = None):
        self._records: Dict[str, Record] = {}
        for record in records or []:
            stored = record if record.id else record.model_copy(
                update={"id": str(uuid.uuid4())}
            )
            self._records[stored.id] = stored  # type: ignore[index]

    def __len__(self) -> int:
        return len(self._records)

    async def insert(self, record: Record) -> Record:
        record_id = record.id or str(uuid.uuid4())
        if record_id in self._records:
            raise StoreError(f"Record id already exists: {record_id}")

        stored = record.model_copy(update={"id": record_id})
        self._records[record_id] = stored
        return stored

    async def delete(self, record_id: str) -> None:
        if record_id not in self._records:
            raise RecordNotFoundError(f"Record not found: {record_id}")
        del self._records[record_id]

    async def get(self, record_id: str) -> Optional[Record]:
        return self._records.get(record_id)

    async def find_candidate_duplicates(
        self, record: Record, filters: Optional[Dict[str, Any]] = None
    ) -> List[Record]:
        return [
            existing
            for existing in self._records.values()
            if _matches_filters(existing, filters) and _is_candidate(record, existing)
        ]

    async def list_all(self, project_id: Optional[str] = None) -> List[Record]:
        if project_id is None:
            return list(self._records.values())
        return [r for r in self._records.values() if r.project_id == project_id]


class JsonRecordStore(InMemoryRecordStore):
    """File-backed store persisting the whole corpus as one JSON document

    Every mutation rewrites the file atomically: write to ``.tmp`` then
    rename over the original.
    """

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self._lock = asyncio.Lock()
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            logger.info("record_store_created", path=str(self.path))
            return

        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreUnavailableError(f"Failed to read record store: {e}")

        for item in data.get("records", []):
            record = Record(**item)
            self._records[record.id] = record  # type: ignore[index]

        logger.debug("record_store_loaded", path=str(self.path), records=len(self))

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(".tmp")
        payload = {
            "records": [r.model_dump(mode="json") for r in self._records.values()]
        }

        try:
            with open(temp_path, "w") as f:
                json.dump(payload, f, indent=2)
            temp_path.rename(self.path)
        except OSError as e:
            logger.error("record_store_save_failed", error=str(e))
            if temp_path.exists():  # pragma: no cover
                temp_path.unlink()
            raise StoreUnavailableError(f"Failed to write record store: {e}")

    async def ping(self) -> None:
        parent = self.path.parent
        if parent.exists() and not parent.is_dir():
            raise StoreUnavailableError(f"Store directory is not a directory: {parent}")

    async def insert(self, record: Record) -> Record:
        async with self._lock:
            stored = await super().insert(record)
            try:
                self._save()
            except StoreUnavailableError:
                self._records.pop(stored.id, None)  # type: ignore[arg-type]
                raise
            return stored

    async def delete(self, record_id: str) -> None:
        async with self._lock:
            removed = self._records.get(record_id)
            await super().delete(record_id)
            try:
                self._save()
            except StoreUnavailableError:
                self._records[record_id] = removed  # type: ignore[assignment]
                raise
