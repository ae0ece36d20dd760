"""Data models for duplicate detection."""

from enum import Enum
from pydantic import BaseModel, Field, ConfigDict

from litdedup.models.record import Record


class MatchType(str, Enum):
    """Rule that classified a duplicate pair, in priority order"""

    DOI = "doi"
    EXACT_TITLE = "exact-title"
    FUZZY_TITLE = "fuzzy-title"
    AUTHOR_YEAR_SIMILAR = "author-year-similar"


EXACT_MATCH_TYPES = frozenset({MatchType.DOI, MatchType.EXACT_TITLE})


class PairStatus(str, Enum):
    PENDING = "pending"
    MERGED = "merged"
    NOT_DUPLICATE = "not-duplicate"


class KeepSide(str, Enum):
    A = "a"
    B = "b"


class DetectionConfig(BaseModel):
    """Duplicate classification thresholds (strict greater-than)"""

    model_config = ConfigDict(protected_namespaces=())

    fuzzy_title_threshold: int = Field(85, ge=0, le=100)
    author_year_title_threshold: int = Field(70, ge=0, le=100)


class DuplicatePair(BaseModel):
    """Candidate duplicate pair produced by a detection scan"""

    record_a: Record
    record_b: Record
    similarity: int = Field(..., ge=0, le=100)
    match_type: MatchType
    status: PairStatus = PairStatus.PENDING

    @property
    def pair_id(self) -> str:
        return f"{self.record_a.id}-{self.record_b.id}"

    @property
    def is_pending(self) -> bool:
        return self.status == PairStatus.PENDING

    def side(self, keep_side: KeepSide) -> Record:
        return self.record_a if keep_side == KeepSide.A else self.record_b

    def other_side(self, keep_side: KeepSide) -> Record:
        return self.record_b if keep_side == KeepSide.A else self.record_a


class ScanStats(BaseModel):
    """Duplicate scan statistics"""

    model_config = ConfigDict(protected_namespaces=())

    total: int = 0
    exact: int = 0
    fuzzy: int = 0
    resolved: int = 0
    records_scanned: int = 0

    @property
    def pending(self) -> int:
        return self.total - self.resolved
