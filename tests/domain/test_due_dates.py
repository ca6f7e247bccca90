"""Tests for due date resolution from payment terms."""

from datetime import date, datetime, timezone

import pytest

from billing_kernel.domain.due_dates import (
    PAYMENT_TERMS,
    is_known_term,
    resolve_due_date,
    term_days,
)

ISSUED = date(2024, 1, 1)


class TestResolveDueDate:

    @pytest.mark.parametrize(
        "term,expected",
        [
            ("Due Today", date(2024, 1, 1)),
            ("Due on Receipt", date(2024, 1, 1)),
            ("Net 7", date(2024, 1, 8)),
            ("Net 9", date(2024, 1, 10)),
            ("Net 14", date(2024, 1, 15)),
            ("Net 15", date(2024, 1, 16)),
            ("Net 30", date(2024, 1, 31)),
            ("Net 60", date(2024, 3, 1)),
            ("Net 90", date(2024, 3, 31)),
            ("7 calendar days", date(2024, 1, 8)),
            ("14 calendar days", date(2024, 1, 15)),
            ("30 calendar days", date(2024, 1, 31)),
        ],
    )
    def test_known_terms(self, term, expected):
        assert resolve_due_date(ISSUED, term) == expected

    @pytest.mark.parametrize("term", ["net 30", "NET 30", "  Net   30 "])
    def test_matching_ignores_case_and_spacing(self, term):
        assert resolve_due_date(ISSUED, term) == date(2024, 1, 31)

    @pytest.mark.parametrize("term", ["Net 45", "whenever", "", None])
    def test_unknown_terms_fall_back_to_issue_date(self, term):
        assert resolve_due_date(ISSUED, term) == ISSUED
        assert not is_known_term(term)

    def test_datetime_input_keeps_type(self):
        issued = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
        assert resolve_due_date(issued, "Net 7") == datetime(2024, 1, 8, 9, 0, tzinfo=timezone.utc)

    def test_string_issue_date(self):
        assert resolve_due_date("2024-02-20", "Net 14") == date(2024, 3, 5)

    @pytest.mark.parametrize("issued", [None, "not a date"])
    def test_missing_issue_date(self, issued):
        assert resolve_due_date(issued, "Net 30") is None


def test_every_listed_term_is_known():
    for term in PAYMENT_TERMS:
        assert is_known_term(term)
    assert term_days("Net 60") == 60
