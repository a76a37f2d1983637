"""
Unit tests for row validation at the row-store boundary.

Malformed rows must be quarantined (skipped and logged), never allowed to
abort a calendar build.
"""

import pytest
from datetime import date, datetime, time, timezone

from core.exceptions import InvariantViolation
from shared_types.schedule_rows import (
    AppointmentRow,
    ExceptionRow,
    RuleRow,
    parse_appointment_rows,
    parse_exception_rows,
    parse_row,
    parse_rule_rows,
)


class TestRuleRow:
    """Test weekly rule parsing."""

    def test_parses_wall_clock_strings(self):
        rule = parse_row(RuleRow, {
            "id": 1, "clinician_id": 7, "day_of_week": 0,
            "start_time": "09:00", "end_time": "12:00",
        })
        assert rule.start_time == time(9, 0)
        assert rule.end_time == time(12, 0)
        assert rule.is_active

    def test_accepts_day_names(self):
        rule = parse_row(RuleRow, {
            "id": 1, "clinician_id": 7, "day_of_week": "wednesday",
            "start_time": "09:00", "end_time": "12:00",
        })
        assert rule.day_of_week == 2

    def test_start_not_before_end_is_invariant_violation(self):
        with pytest.raises(InvariantViolation) as exc_info:
            parse_row(RuleRow, {
                "id": 3, "clinician_id": 7, "day_of_week": 0,
                "start_time": "12:00", "end_time": "12:00",
            })
        assert exc_info.value.row_kind == "rule"
        assert exc_info.value.row_id == 3

    def test_day_out_of_range_rejected(self):
        with pytest.raises(InvariantViolation):
            parse_row(RuleRow, {
                "id": 1, "clinician_id": 7, "day_of_week": 7,
                "start_time": "09:00", "end_time": "12:00",
            })

    def test_parse_rule_rows_quarantines_bad_rows(self, caplog):
        """Test that one bad rule is skipped and the rest survive."""
        rows = [
            {"id": 1, "clinician_id": 7, "day_of_week": 0, "start_time": "09:00", "end_time": "12:00"},
            {"id": 2, "clinician_id": 7, "day_of_week": 0, "start_time": "14:00", "end_time": "13:00"},
            {"id": 3, "clinician_id": 7, "day_of_week": 1, "start_time": "bad", "end_time": "13:00"},
        ]
        with caplog.at_level("WARNING"):
            parsed = parse_rule_rows(rows)
        assert [r.id for r in parsed] == [1]
        assert "Skipping rule row 2" in caplog.text
        assert "Skipping rule row 3" in caplog.text

    def test_already_parsed_rows_pass_through(self):
        rule = RuleRow(id=1, clinician_id=7, day_of_week=0, start_time=time(9), end_time=time(10))
        assert parse_rule_rows([rule]) == [rule]

    def test_none_is_empty(self):
        assert parse_rule_rows(None) == []


class TestExceptionRow:
    """Test exception parsing."""

    def test_end_without_start_rejected(self):
        with pytest.raises(InvariantViolation):
            parse_row(ExceptionRow, {
                "id": 1, "clinician_id": 7, "specific_date": "2025-01-06",
                "original_rule_id": 1, "start_time": None, "end_time": "12:00",
            })

    def test_start_after_end_rejected(self):
        with pytest.raises(InvariantViolation):
            parse_row(ExceptionRow, {
                "id": 1, "clinician_id": 7, "specific_date": "2025-01-06",
                "start_time": "13:00", "end_time": "12:00",
            })

    def test_start_only_is_allowed(self):
        """Test that a start-only override keeps the rule's own end."""
        exception = parse_row(ExceptionRow, {
            "id": 1, "clinician_id": 7, "specific_date": "2025-01-06",
            "original_rule_id": 1, "start_time": "10:00",
        })
        assert exception.start_time == time(10, 0)
        assert exception.end_time is None

    def test_empty_strings_are_null(self):
        exception = parse_row(ExceptionRow, {
            "id": 1, "clinician_id": 7, "specific_date": "2025-01-06",
            "original_rule_id": 1, "start_time": "", "end_time": "", "is_deleted": True,
        })
        assert exception.start_time is None
        assert exception.is_deleted

    def test_naive_created_at_is_utc(self):
        exception = parse_row(ExceptionRow, {
            "id": 1, "clinician_id": 7, "specific_date": date(2025, 1, 6),
            "created_at": datetime(2025, 1, 1, 12, 0),
        })
        assert exception.created_at == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_recency_key_orders_by_created_at_then_id(self):
        older = ExceptionRow(id=9, clinician_id=7, specific_date=date(2025, 1, 6),
                             created_at=datetime(2025, 1, 1, tzinfo=timezone.utc))
        newer = ExceptionRow(id=2, clinician_id=7, specific_date=date(2025, 1, 6),
                             created_at=datetime(2025, 1, 2, tzinfo=timezone.utc))
        undated = ExceptionRow(id=50, clinician_id=7, specific_date=date(2025, 1, 6))
        assert newer.recency_key > older.recency_key > undated.recency_key

    def test_parse_exception_rows_quarantines(self):
        rows = [
            {"id": 1, "clinician_id": 7, "specific_date": "2025-01-06", "start_time": "10:00", "end_time": "11:00"},
            {"id": 2, "clinician_id": 7, "specific_date": "not-a-date"},
        ]
        assert [e.id for e in parse_exception_rows(rows)] == [1]


class TestAppointmentRow:
    """Test appointment parsing."""

    def test_parses_and_flags_scheduled(self):
        appointment = parse_row(AppointmentRow, {
            "id": 1, "client_id": 3, "clinician_id": 7, "date": "2025-01-06",
            "start_time": "10:00", "end_time": "11:00", "type": "Therapy Session",
        })
        assert appointment.is_scheduled
        assert appointment.client_name is None

    def test_cancelled_is_not_scheduled(self):
        appointment = parse_row(AppointmentRow, {
            "id": 1, "client_id": 3, "clinician_id": 7, "date": "2025-01-06",
            "start_time": "10:00", "end_time": "11:00", "status": "cancelled",
        })
        assert not appointment.is_scheduled

    def test_parse_appointment_rows_quarantines(self):
        rows = [
            {"id": 1, "client_id": 3, "clinician_id": 7, "date": "2025-01-06",
             "start_time": "11:00", "end_time": "10:00"},
        ]
        assert parse_appointment_rows(rows) == []
