"""
Interval merge service.

Collapses a date's candidate intervals into maximal contiguous blocks.
Overlapping and touching intervals merge; the merged block keeps the union of
contributing occurrences so exception-modified time stays identifiable.
"""

import logging
from datetime import date as date_type, datetime
from typing import Dict, Iterable, List

from shared_types.availability import CandidateInterval, MergedTimeBlock

logger = logging.getLogger(__name__)


class IntervalMergeService:
    """Service class for merging candidate intervals."""

    @staticmethod
    def _check_time_overlap(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> bool:
        """Check if two half-open intervals overlap or touch."""
        return start2 <= end1 and start1 <= end2

    @staticmethod
    def merge_intervals(candidates: Iterable[CandidateInterval]) -> List[MergedTimeBlock]:
        """
        Merge one date's candidates into ordered, non-overlapping blocks.

        The result does not depend on input order: candidates are sorted by
        (start, end, provenance) before the sweep.

        Args:
            candidates: Candidate intervals for a single date

        Returns:
            Minimal list of maximal blocks, ordered by start
        """
        ordered = sorted(candidates, key=lambda c: c.sort_key)
        if not ordered:
            return []

        blocks: List[MergedTimeBlock] = []
        current = ordered[0]
        start, end = current.start, current.end
        occurrences = {current.occurrence}
        is_exception = current.is_exception
        day = current.date

        for candidate in ordered[1:]:
            if IntervalMergeService._check_time_overlap(start, end, candidate.start, candidate.end):
                end = max(end, candidate.end)
                occurrences.add(candidate.occurrence)
                is_exception = is_exception or candidate.is_exception
                continue
            blocks.append(MergedTimeBlock(
                date=day, start=start, end=end,
                occurrences=frozenset(occurrences), is_exception=is_exception,
            ))
            start, end = candidate.start, candidate.end
            occurrences = {candidate.occurrence}
            is_exception = candidate.is_exception

        blocks.append(MergedTimeBlock(
            date=day, start=start, end=end,
            occurrences=frozenset(occurrences), is_exception=is_exception,
        ))
        return blocks

    @staticmethod
    def merge_by_date(
        candidates_by_date: Dict[date_type, List[CandidateInterval]],
    ) -> Dict[date_type, List[MergedTimeBlock]]:
        """Merge every date independently; keys are preserved."""
        merged = {
            day: IntervalMergeService.merge_intervals(candidates)
            for day, candidates in sorted(candidates_by_date.items())
        }
        logger.debug(f"Merged {len(merged)} dates into {sum(len(b) for b in merged.values())} blocks")
        return merged
