"""
Unit and property-based tests for IntervalMergeService.

The merge must be minimal, ordered, non-overlapping and independent of the
order candidates arrive in.
"""

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from hypothesis import given, settings, strategies as st

from services.interval_merge_service import IntervalMergeService
from shared_types.availability import CandidateInterval, RecurringOccurrence, StandaloneOccurrence

CHICAGO = ZoneInfo("America/Chicago")
MONDAY = date(2025, 1, 6)


def at(hour: int, minute: int = 0) -> datetime:
    return datetime.combine(MONDAY, time(hour, minute), tzinfo=CHICAGO)


def candidate(rule_id: int, start: datetime, end: datetime, is_exception: bool = False) -> CandidateInterval:
    return CandidateInterval(
        date=MONDAY, start=start, end=end,
        occurrence=RecurringOccurrence(rule_id), is_exception=is_exception,
    )


# Candidates on a 15-minute lattice between 06:00 and 22:00
candidate_strategy = st.tuples(
    st.integers(min_value=0, max_value=63),
    st.integers(min_value=1, max_value=16),
    st.booleans(),
)


def build_candidates(raw):
    candidates = []
    for index, (start_step, length, is_exception) in enumerate(raw, start=1):
        start = at(6) + timedelta(minutes=15 * start_step)
        candidates.append(candidate(index, start, start + timedelta(minutes=15 * length), is_exception))
    return candidates


class TestMergeIntervals:
    """Test merging examples."""

    def test_empty_input(self):
        assert IntervalMergeService.merge_intervals([]) == []

    def test_overlapping_rules_merge(self):
        """Test that Monday 09-12 and 11-14 become one 09:00-14:00 block."""
        blocks = IntervalMergeService.merge_intervals([
            candidate(1, at(9), at(12)),
            candidate(2, at(11), at(14)),
        ])
        assert len(blocks) == 1
        assert (blocks[0].start, blocks[0].end) == (at(9), at(14))
        assert blocks[0].rule_ids == [1, 2]
        assert not blocks[0].is_exception

    def test_touching_intervals_merge(self):
        blocks = IntervalMergeService.merge_intervals([
            candidate(1, at(9), at(10)),
            candidate(2, at(10), at(11)),
        ])
        assert [(b.start, b.end) for b in blocks] == [(at(9), at(11))]

    def test_disjoint_intervals_stay_separate(self):
        blocks = IntervalMergeService.merge_intervals([
            candidate(2, at(13), at(17)),
            candidate(1, at(9), at(12)),
        ])
        assert [(b.start, b.end) for b in blocks] == [(at(9), at(12)), (at(13), at(17))]

    def test_contained_interval_is_absorbed(self):
        blocks = IntervalMergeService.merge_intervals([
            candidate(1, at(9), at(17)),
            candidate(2, at(10), at(11)),
        ])
        assert [(b.start, b.end) for b in blocks] == [(at(9), at(17))]
        assert blocks[0].rule_ids == [1, 2]

    def test_exception_flag_is_ored(self):
        blocks = IntervalMergeService.merge_intervals([
            candidate(1, at(9), at(12)),
            CandidateInterval(date=MONDAY, start=at(11), end=at(13),
                              occurrence=StandaloneOccurrence(5), is_exception=True),
        ])
        assert len(blocks) == 1
        assert blocks[0].is_exception
        assert blocks[0].rule_ids == [1]
        assert blocks[0].exception_ids == [5]

    def test_merge_by_date_keeps_every_date(self):
        tuesday = MONDAY + timedelta(days=1)
        merged = IntervalMergeService.merge_by_date({
            MONDAY: [candidate(1, at(9), at(12))],
            tuesday: [],
        })
        assert list(merged) == [MONDAY, tuesday]
        assert merged[tuesday] == []


class TestMergeProperties:
    """Property-based tests for merge invariants."""

    @settings(max_examples=100, deadline=None)
    @given(st.lists(candidate_strategy, max_size=12))
    def test_blocks_are_ordered_and_disjoint(self, raw):
        blocks = IntervalMergeService.merge_intervals(build_candidates(raw))
        for previous, current in zip(blocks, blocks[1:]):
            # Strictly separated: touching blocks would have merged
            assert previous.end < current.start
        for block in blocks:
            assert block.start < block.end

    @settings(max_examples=100, deadline=None)
    @given(st.lists(candidate_strategy, max_size=12), st.randoms(use_true_random=False))
    def test_order_independent(self, raw, rng):
        candidates = build_candidates(raw)
        shuffled = list(candidates)
        rng.shuffle(shuffled)
        assert IntervalMergeService.merge_intervals(shuffled) == IntervalMergeService.merge_intervals(candidates)

    @settings(max_examples=100, deadline=None)
    @given(st.lists(candidate_strategy, max_size=12))
    def test_coverage_is_preserved(self, raw):
        """Test that every candidate lies inside exactly one block and blocks add no time."""
        candidates = build_candidates(raw)
        blocks = IntervalMergeService.merge_intervals(candidates)

        for c in candidates:
            containing = [b for b in blocks if b.start <= c.start and c.end <= b.end]
            assert len(containing) == 1
            assert c.occurrence in containing[0].occurrences

        for block in blocks:
            members = [c for c in candidates if c.occurrence in block.occurrences]
            assert block.start == min(c.start for c in members)
            assert block.end == max(c.end for c in members)
            assert block.is_exception == any(c.is_exception for c in members)

    @settings(max_examples=100, deadline=None)
    @given(st.lists(st.integers(min_value=0, max_value=7), min_size=1, max_size=8, unique=True))
    def test_non_overlapping_input_is_identity(self, hours):
        """Test that separated candidates come back one block each."""
        candidates = [candidate(i, at(6 + 2 * h), at(7 + 2 * h)) for i, h in enumerate(hours, start=1)]
        blocks = IntervalMergeService.merge_intervals(candidates)
        expected = sorted(candidates, key=lambda c: c.start)
        assert [(b.start, b.end) for b in blocks] == [(c.start, c.end) for c in expected]
        assert [b.occurrences for b in blocks] == [frozenset({c.occurrence}) for c in expected]

    @settings(max_examples=50, deadline=None)
    @given(st.lists(candidate_strategy, min_size=1, max_size=12))
    def test_merge_is_idempotent(self, raw):
        blocks = IntervalMergeService.merge_intervals(build_candidates(raw))
        again = IntervalMergeService.merge_intervals([
            CandidateInterval(date=b.date, start=b.start, end=b.end,
                              occurrence=RecurringOccurrence(i), is_exception=b.is_exception)
            for i, b in enumerate(blocks, start=1)
        ])
        assert [(b.start, b.end, b.is_exception) for b in again] == [(b.start, b.end, b.is_exception) for b in blocks]
