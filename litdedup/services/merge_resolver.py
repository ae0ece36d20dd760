"""
Resolution of candidate duplicate pairs.

A pair is resolved either by keeping one record (the other is deleted from
the store) or by marking the two records as distinct works. Only exact
matches (DOI, exact title) may be resolved automatically.
"""

from typing import List, Sequence, Set
import structlog

from litdedup.models.dedup import (
    DuplicatePair,
    KeepSide,
    PairStatus,
    EXACT_MATCH_TYPES,
)
from litdedup.observability.metrics import MERGES
from litdedup.services.record_store import RecordStore
from litdedup.utils.exceptions import PairStateError

logger = structlog.get_logger()


class MergeResolver:
    """
    Apply keep / not-duplicate decisions to duplicate pairs.

    Keeps a session registry of resolved pair ids so that a re-scan in the
    same session does not re-emit them.
    """

    def __init__(self, store: RecordStore):
        self.store = store
        self.resolved_pair_ids: Set[str] = set()
        self._deleted_ids: Set[str] = set()

    async def keep(
        self, pair: DuplicatePair, keep_side: KeepSide, mode: str = "manual"
    ) -> None:
        """
        Keep one side of a pair and delete the other from the store.

        The pair only becomes merged once the store confirms the delete.

        Args:
            pair: Pending pair to resolve
            keep_side: Side to keep (A or B)
            mode: Metrics label, "manual" or "auto"

        Raises:
            PairStateError: If the pair is already resolved
            StoreError: If the delete fails (pair status unchanged)
        """
        self._ensure_pending(pair)

        kept = pair.side(keep_side)
        removed = pair.other_side(keep_side)

        await self.store.delete(removed.id)  # type: ignore[arg-type]

        pair.status = PairStatus.MERGED
        self.resolved_pair_ids.add(pair.pair_id)
        self._deleted_ids.add(removed.id)  # type: ignore[arg-type]
        MERGES.labels(mode=mode).inc()

        logger.info(
            "duplicate_merged",
            pair_id=pair.pair_id,
            kept_id=kept.id,
            removed_id=removed.id,
            match_type=pair.match_type.value,
        )

    def mark_not_duplicate(self, pair: DuplicatePair) -> None:
        """Record that the two sides are distinct works (no store call)"""
        self._ensure_pending(pair)
        pair.status = PairStatus.NOT_DUPLICATE
        self.resolved_pair_ids.add(pair.pair_id)
        logger.info("pair_marked_not_duplicate", pair_id=pair.pair_id)

    async def auto_merge_exact(self, pairs: Sequence[DuplicatePair]) -> int:
        """
        Merge every pending DOI / exact-title pair automatically.

        The side with the higher completeness score (non-empty doi, abstract,
        catalog id) is kept; ties keep side A. Pairs touching a record that
        an earlier merge already deleted are skipped.

        Returns:
            Number of pairs merged
        """
        candidates: List[DuplicatePair] = [
            p for p in pairs if p.is_pending and p.match_type in EXACT_MATCH_TYPES
        ]

        merged = 0
        for pair in candidates:
            if (
                pair.record_a.id in self._deleted_ids
                or pair.record_b.id in self._deleted_ids
            ):
                logger.debug("auto_merge_skipped_stale_pair", pair_id=pair.pair_id)
                continue

            score_a = pair.record_a.completeness()
            score_b = pair.record_b.completeness()
            keep_side = KeepSide.A if score_a >= score_b else KeepSide.B

            await self.keep(pair, keep_side, mode="auto")
            merged += 1

        logger.info(
            "auto_merge_complete",
            candidates=len(candidates),
            merged=merged,
        )
        return merged

    @staticmethod
    def _ensure_pending(pair: DuplicatePair) -> None:
        if not pair.is_pending:
            raise PairStateError(
                f"Pair {pair.pair_id} is already {pair.status.value}"
            )
