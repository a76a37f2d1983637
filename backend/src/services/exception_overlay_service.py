"""
Exception overlay service.

Applies per-date availability exceptions on top of expanded weekly rules:
an exception referencing a rule rewrites or cancels that rule's occurrence on
its date, and a standalone exception adds a one-off window.
"""

import logging
from collections import defaultdict
from dataclasses import replace
from datetime import date as date_type
from typing import Dict, Iterable, List
from zoneinfo import ZoneInfo

from shared_types.availability import CandidateInterval, RecurringOccurrence, StandaloneOccurrence
from shared_types.schedule_rows import ExceptionRow
from utils.datetime_utils import local_to_instant

logger = logging.getLogger(__name__)


class ExceptionOverlayService:
    """Service class for applying availability exceptions to candidates."""

    @staticmethod
    def latest_exceptions_by_rule(exceptions: Iterable[ExceptionRow]) -> Dict[int, ExceptionRow]:
        """
        Map rule id to its most recent exception among ``exceptions``.

        Callers pass the exceptions of a single date. Recency is created_at,
        then id; a deleted exception can be the most recent one.
        """
        latest: Dict[int, ExceptionRow] = {}
        for exception in exceptions:
            if exception.original_rule_id is None:
                continue
            current = latest.get(exception.original_rule_id)
            if current is None or exception.recency_key > current.recency_key:
                latest[exception.original_rule_id] = exception
        return latest

    @staticmethod
    def _apply_to_candidate(
        candidate: CandidateInterval,
        exception: ExceptionRow,
        tz: ZoneInfo,
    ) -> CandidateInterval | None:
        if exception.is_deleted:
            logger.debug(f"Exception {exception.id} removes {candidate.occurrence} on {candidate.date}")
            return None

        # Exception values win outright; missing sides keep the rule's value
        start = candidate.start
        end = candidate.end
        if exception.start_time is not None:
            start = local_to_instant(candidate.date, exception.start_time, tz)
        if exception.end_time is not None:
            end = local_to_instant(candidate.date, exception.end_time, tz)

        if start >= end:
            logger.warning(
                f"Exception {exception.id} leaves an empty window on {candidate.date} "
                f"({start.time()}-{end.time()}); dropping the occurrence"
            )
            return None

        return replace(
            candidate,
            start=start,
            end=end,
            is_exception=True,
            source_exception_id=exception.id,
        )

    @staticmethod
    def apply_exceptions(
        candidates_by_date: Dict[date_type, List[CandidateInterval]],
        exceptions: Iterable[ExceptionRow],
        tz: ZoneInfo,
    ) -> Dict[date_type, List[CandidateInterval]]:
        """
        Overlay exceptions onto expanded candidates.

        Only dates present in ``candidates_by_date`` are considered; exceptions
        for other dates are outside the requested range.

        Args:
            candidates_by_date: Output of RecurrenceService.expand_rules
            exceptions: Parsed exception rows, deleted ones included
            tz: Clinician zone

        Returns:
            New dict mapping each date to its candidates after overlay
        """
        exceptions_by_date: Dict[date_type, List[ExceptionRow]] = defaultdict(list)
        for exception in exceptions:
            exceptions_by_date[exception.specific_date].append(exception)

        overlaid: Dict[date_type, List[CandidateInterval]] = {}
        for day, candidates in candidates_by_date.items():
            day_exceptions = exceptions_by_date.get(day, [])
            if not day_exceptions:
                overlaid[day] = list(candidates)
                continue

            latest_by_rule = ExceptionOverlayService.latest_exceptions_by_rule(day_exceptions)
            result: List[CandidateInterval] = []
            matched_rules = set()
            for candidate in candidates:
                occurrence = candidate.occurrence
                if isinstance(occurrence, RecurringOccurrence) and occurrence.rule_id in latest_by_rule:
                    matched_rules.add(occurrence.rule_id)
                    applied = ExceptionOverlayService._apply_to_candidate(
                        candidate, latest_by_rule[occurrence.rule_id], tz
                    )
                    if applied is not None:
                        result.append(applied)
                else:
                    result.append(candidate)

            for rule_id in sorted(set(latest_by_rule) - matched_rules):
                logger.debug(f"Exception {latest_by_rule[rule_id].id} references rule {rule_id} with no occurrence on {day}")

            for exception in sorted(day_exceptions, key=lambda e: e.id):
                if not exception.is_standalone or exception.is_deleted:
                    continue
                if exception.start_time is None or exception.end_time is None:
                    logger.warning(f"Standalone exception {exception.id} on {day} has no window; skipping")
                    continue
                start = local_to_instant(day, exception.start_time, tz)
                end = local_to_instant(day, exception.end_time, tz)
                if start >= end:
                    logger.warning(f"Standalone exception {exception.id} has no real time on {day}; skipping")
                    continue
                result.append(CandidateInterval(
                    date=day,
                    start=start,
                    end=end,
                    occurrence=StandaloneOccurrence(exception.id),
                    is_exception=True,
                    source_exception_id=exception.id,
                ))

            overlaid[day] = sorted(result, key=lambda c: c.sort_key)
        return overlaid
