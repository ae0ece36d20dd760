"""
Duplicate detection over a record corpus.

Tiered, short-circuiting classification of every unordered record pair:
1. DOI equality
2. Case-insensitive exact title equality
3. Fuzzy title similarity (edit distance, > 85)
4. Shared author surname + same publication date + title similarity > 70
"""

from typing import Iterable, List, Optional, Sequence, Set, Tuple
import structlog

from litdedup.models.record import Record
from litdedup.models.dedup import (
    DetectionConfig,
    DuplicatePair,
    MatchType,
    PairStatus,
    ScanStats,
    EXACT_MATCH_TYPES,
)
from litdedup.observability.metrics import DUPLICATE_PAIRS
from litdedup.utils.author_utils import authors_overlap
from litdedup.utils.similarity import similarity

logger = structlog.get_logger()

Classification = Tuple[MatchType, int]


class DuplicateDetector:
    """
    Classify candidate duplicate pairs in a corpus.

    The scan is O(n^2) over input order and deterministic for a given order.
    """

    def __init__(self, config: Optional[DetectionConfig] = None):
        """
        Initialize duplicate detector.

        Args:
            config: Classification thresholds (defaults: 85 / 70)
        """
        self.config = config or DetectionConfig()

    def detect(
        self,
        records: Sequence[Record],
        exclude_pairs: Optional[Set[str]] = None,
    ) -> List[DuplicatePair]:
        """
        Scan all unordered pairs and emit classified duplicates.

        Args:
            records: Corpus to scan, in a stable order
            exclude_pairs: Pair ids already resolved in this session

        Returns:
            Pending pairs sorted by descending similarity (stable)
        """
        pairs: List[DuplicatePair] = []
        excluded = exclude_pairs or set()

        for i in range(len(records)):
            for j in range(i + 1, len(records)):
                record_a = records[i]
                record_b = records[j]

                if excluded and f"{record_a.id}-{record_b.id}" in excluded:
                    continue

                classification = self.classify(record_a, record_b)
                if classification is None:
                    continue

                match_type, score = classification
                pairs.append(
                    DuplicatePair(
                        record_a=record_a,
                        record_b=record_b,
                        similarity=score,
                        match_type=match_type,
                        status=PairStatus.PENDING,
                    )
                )
                DUPLICATE_PAIRS.labels(match_type=match_type.value).inc()

        # list.sort is stable, so ties keep input order
        pairs.sort(key=lambda p: p.similarity, reverse=True)

        logger.info(
            "duplicate_scan_complete",
            records=len(records),
            pairs=len(pairs),
            excluded=len(excluded),
        )

        return pairs

    def classify(self, record_a: Record, record_b: Record) -> Optional[Classification]:
        """
        Apply the prioritized rules to one pair; first match wins.

        Returns:
            (match_type, similarity) or None when the pair is not a duplicate
        """
        exact = self._classify_exact(record_a, record_b)
        if exact is not None:
            return exact

        title_similarity = similarity(record_a.title, record_b.title)

        if title_similarity > self.config.fuzzy_title_threshold:
            return MatchType.FUZZY_TITLE, title_similarity

        if (
            authors_overlap(record_a.authors, record_b.authors)
            and record_a.publication_date == record_b.publication_date
            and title_similarity > self.config.author_year_title_threshold
        ):
            return MatchType.AUTHOR_YEAR_SIMILAR, title_similarity

        return None

    @staticmethod
    def _classify_exact(
        record_a: Record, record_b: Record
    ) -> Optional[Classification]:
        doi_a = record_a.normalized_doi
        if doi_a and doi_a == record_b.normalized_doi:
            return MatchType.DOI, 100

        if record_a.normalized_title == record_b.normalized_title:
            return MatchType.EXACT_TITLE, 100

        return None

    def find_exact_match(
        self, record: Record, candidates: Iterable[Record]
    ) -> Optional[Tuple[Record, MatchType]]:
        """
        Find the first candidate equivalent to ``record`` by DOI or exact title.

        Only the exact tiers apply here; fuzzy tiers need a human decision.

        Args:
            record: Incoming (not yet persisted) record
            candidates: Persisted records to compare against

        Returns:
            (matching candidate, match type) or None
        """
        for candidate in candidates:
            if candidate.id is not None and candidate.id == record.id:
                continue
            exact = self._classify_exact(record, candidate)
            if exact is not None:
                return candidate, exact[0]
        return None

    @staticmethod
    def summarize(pairs: Sequence[DuplicatePair], records_scanned: int = 0) -> ScanStats:
        """Aggregate counts for a list of pairs"""
        return ScanStats(
            total=len(pairs),
            exact=sum(1 for p in pairs if p.match_type in EXACT_MATCH_TYPES),
            fuzzy=sum(1 for p in pairs if p.match_type not in EXACT_MATCH_TYPES),
            resolved=sum(1 for p in pairs if p.status != PairStatus.PENDING),
            records_scanned=records_scanned,
        )

    @staticmethod
    def filter_pairs(pairs: Sequence[DuplicatePair], kind: str = "all") -> List[DuplicatePair]:
        """
        Select pairs by status or match type.

        Args:
            pairs: Pairs to filter
            kind: "all", "pending", "resolved" or a MatchType value

        Raises:
            ValueError: If kind is not recognized
        """
        if kind == "all":
            return list(pairs)
        if kind == "pending":
            return [p for p in pairs if p.status == PairStatus.PENDING]
        if kind == "resolved":
            return [p for p in pairs if p.status != PairStatus.PENDING]

        match_type = MatchType(kind)
        return [p for p in pairs if p.match_type == match_type]
