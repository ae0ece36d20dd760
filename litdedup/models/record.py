from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Union
from datetime import date, datetime
from enum import Enum


class RecordSource(str, Enum):
    """Where a bibliographic record came from"""

    MANUAL = "manual"
    EXTERNAL_CATALOG = "external-catalog"
    FILE_IMPORT = "file-import"


class Record(BaseModel):
    """A bibliographic entry owned by the record store

    A record without an ``id`` has not been persisted yet (a partial
    record produced by an import source or a catalog lookup).
    """

    # Identifiers
    id: Optional[str] = Field(None, description="Store-assigned record id")
    project_id: Optional[str] = None
    doi: Optional[str] = None
    pmid: Optional[str] = None
    external_id: Optional[str] = None

    # Content
    title: str = Field(..., min_length=1)
    abstract: Optional[str] = None
    authors: List[str] = Field(default_factory=list)
    journal: Optional[str] = None
    # Kept exactly as provided: duplicate checks compare it verbatim
    publication_date: Optional[Union[date, str]] = None
    url: Optional[str] = None

    # Provenance
    source: RecordSource = RecordSource.MANUAL
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def normalized_doi(self) -> Optional[str]:
        """Trimmed, lower-cased DOI or None when absent"""
        if not self.doi or not self.doi.strip():
            return None
        return self.doi.strip().lower()

    @property
    def normalized_title(self) -> str:
        """Lower-cased title; whitespace is significant"""
        return self.title.lower()

    def completeness(self) -> int:
        """Count of non-empty identifying fields among doi, abstract, pmid"""
        catalog_id = self.pmid or self.external_id
        return sum(1 for value in (self.doi, self.abstract, catalog_id) if value)

    def with_provenance(self, **metadata: Any) -> "Record":
        """Copy of this record with extra provenance metadata merged in"""
        return self.model_copy(update={"metadata": {**self.metadata, **metadata}})


def utc_timestamp() -> str:
    """ISO-8601 timestamp used in provenance metadata"""
    return datetime.utcnow().isoformat()
