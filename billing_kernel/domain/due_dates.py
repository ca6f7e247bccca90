"""
DueDateResolver -- payment term code + issue date -> due date.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Matching is case-insensitive and ignores surrounding whitespace.
    - Unrecognized or missing term codes resolve to the issue date itself;
      the resolver never raises for a term.  Callers that care can check
      ``is_known_term`` and log ``unknown_payment_term``.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import TypeVar

from billing_kernel.domain.sanitize import parse_date

D = TypeVar("D", date, datetime)

# Term label -> days after issue.  Labels are the ones offered on the
# invoice settings screen; "Net 9" is accepted for older documents.
PAYMENT_TERM_DAYS: dict[str, int] = {
    "Due Today": 0,
    "Due on Receipt": 0,
    "Net 7": 7,
    "Net 9": 9,
    "Net 14": 14,
    "Net 15": 15,
    "Net 30": 30,
    "Net 60": 60,
    "Net 90": 90,
    "7 calendar days": 7,
    "14 calendar days": 14,
    "30 calendar days": 30,
}

PAYMENT_TERMS: tuple[str, ...] = tuple(PAYMENT_TERM_DAYS)

_TERM_LOOKUP: dict[str, int] = {
    label.lower(): days for label, days in PAYMENT_TERM_DAYS.items()
}


def _normalize(term: str | None) -> str:
    return " ".join((term or "").split()).lower()


def is_known_term(term: str | None) -> bool:
    return _normalize(term) in _TERM_LOOKUP


def term_days(term: str | None) -> int:
    """Days granted by a term; 0 for unknown terms."""
    return _TERM_LOOKUP.get(_normalize(term), 0)


def resolve_due_date(issue_date: D | str | None, term: str | None) -> D | date | None:
    """
    Resolve the due date for an issue date and payment term.

    Preconditions:
        - ``issue_date`` is a date, a datetime or an ISO-8601 string.
          Strings are parsed to a ``date``.

    Postconditions:
        - Returns ``issue_date + N days`` for a known term, else
          ``issue_date`` unchanged.  Returns None if there is no usable
          issue date.

    Example:
        resolve_due_date(date(2024, 1, 1), "net 30") -> date(2024, 1, 31)
    """
    if isinstance(issue_date, str):
        issue_date = parse_date(issue_date)
    if issue_date is None:
        return None
    return issue_date + timedelta(days=term_days(term))
