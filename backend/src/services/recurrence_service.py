"""
Recurrence service for expanding weekly availability rules into dated intervals.

Rules are dateless ("Mondays 09:00-12:00"). Expansion anchors each rule to the
concrete dates of a range in the clinician's own zone, which is where DST
shifts are resolved.
"""

import logging
from collections import defaultdict
from datetime import date as date_type, time
from typing import Dict, Iterable, List, NamedTuple, Set, Tuple
from zoneinfo import ZoneInfo

from shared_types.availability import CandidateInterval, RecurringOccurrence
from shared_types.schedule_rows import RuleRow
from utils.datetime_utils import date_range, local_to_instant

logger = logging.getLogger(__name__)


class WeeklyWindow(NamedTuple):
    """A rule projected back to its weekday form."""
    rule_id: int
    day_of_week: int
    start_time: time
    end_time: time


class RecurrenceService:
    """
    Service class for weekly rule expansion.

    All methods are pure; they never read the row store.
    """

    @staticmethod
    def deduplicate_rules(rules: Iterable[RuleRow]) -> List[RuleRow]:
        """
        Drop rules that repeat an earlier rule's (day, start, end) window.

        The lowest id is kept. Distinct ids with identical windows would only
        produce identical candidates that merge away, so this changes
        provenance, not availability.

        Args:
            rules: Parsed rule rows

        Returns:
            Unique rules ordered by id
        """
        kept: List[RuleRow] = []
        seen_windows: Dict[Tuple[int, time, time], int] = {}
        seen_ids: Set[int] = set()
        for rule in sorted(rules, key=lambda r: r.id):
            if rule.id in seen_ids:
                continue
            seen_ids.add(rule.id)
            window = (rule.day_of_week, rule.start_time, rule.end_time)
            if window in seen_windows:
                logger.warning(
                    f"Rule {rule.id} duplicates rule {seen_windows[window]} "
                    f"(day={rule.day_of_week}, {rule.start_time}-{rule.end_time}); ignoring"
                )
                continue
            seen_windows[window] = rule.id
            kept.append(rule)
        return kept

    @staticmethod
    def expand_rules(
        rules: Iterable[RuleRow],
        start_date: date_type,
        end_date: date_type,
        tz: ZoneInfo,
    ) -> Dict[date_type, List[CandidateInterval]]:
        """
        Expand active rules over [start_date, end_date] (inclusive).

        Each active rule emits at most one candidate per date whose weekday
        matches ``day_of_week``. Every date in the range appears as a key,
        even when no rule falls on it.

        Args:
            rules: Parsed rule rows (inactive ones are ignored)
            start_date: First date of the range (clinician zone)
            end_date: Last date of the range (clinician zone)
            tz: Clinician zone

        Returns:
            Dict mapping each date to its candidates sorted by start
        """
        by_weekday: Dict[int, List[RuleRow]] = defaultdict(list)
        seen_ids: Set[int] = set()
        for rule in sorted(rules, key=lambda r: (r.start_time, r.end_time, r.id)):
            if not rule.is_active or rule.id in seen_ids:
                continue
            seen_ids.add(rule.id)
            by_weekday[rule.day_of_week].append(rule)

        candidates: Dict[date_type, List[CandidateInterval]] = {}
        for day in date_range(start_date, end_date):
            day_candidates: List[CandidateInterval] = []
            for rule in by_weekday.get(day.weekday(), []):
                start = local_to_instant(day, rule.start_time, tz)
                end = local_to_instant(day, rule.end_time, tz)
                if start >= end:
                    # Whole window fell inside a spring-forward gap
                    logger.debug(f"Rule {rule.id} has no real time on {day} in {tz.key}; skipping")
                    continue
                day_candidates.append(CandidateInterval(
                    date=day,
                    start=start,
                    end=end,
                    occurrence=RecurringOccurrence(rule.id),
                ))
            candidates[day] = day_candidates

        logger.debug(
            f"Expanded {len(seen_ids)} rules over {start_date}..{end_date}: "
            f"{sum(len(c) for c in candidates.values())} candidates"
        )
        return candidates

    @staticmethod
    def collapse_by_weekday(
        candidates_by_date: Dict[date_type, List[CandidateInterval]],
        tz: ZoneInfo,
    ) -> List[WeeklyWindow]:
        """
        Project expanded candidates back onto weekday windows.

        Only recurring occurrences are considered. Over any range of seven or
        more days this reproduces the rule set that was expanded.
        """
        windows: Set[WeeklyWindow] = set()
        for day, candidates in candidates_by_date.items():
            for candidate in candidates:
                occurrence = candidate.occurrence
                if not isinstance(occurrence, RecurringOccurrence):
                    continue
                windows.add(WeeklyWindow(
                    rule_id=occurrence.rule_id,
                    day_of_week=day.weekday(),
                    start_time=candidate.start.astimezone(tz).time(),
                    end_time=candidate.end.astimezone(tz).time(),
                ))
        return sorted(windows)
