"""
PaymentPlan -- Installment schedules and their derived status.

Responsibility:
    Splits an invoice's outstanding balance into N installments on a
    weekly, biweekly or monthly cadence (PaymentScheduleBuilder), derives
    live pending/paid/overdue status for display (InstallmentStatusProjector)
    and applies the plan lifecycle: create, record a payment, disable.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Every operation
    returns a new immutable value; nothing here is persisted.

Invariants enforced:
    - sum(installment.amount) == plan_total exactly, to the cent.  Every
      installment except the last gets floor(total / n) cents; the last
      absorbs the remainder.
    - The set of installments is fixed at creation; only status and paid
      fields change afterwards.
    - Projection never changes a PAID installment and is idempotent.
    - Overdue is derived on read, never stored by the projector.

Failure modes:
    - InvalidScheduleRequestError: non-positive or non-finite total,
      installment count outside the configured range, missing start date,
      unknown frequency.
    - InstallmentNotFoundError / InstallmentAlreadyPaidError from
      record_installment_payment().

Audit relevance:
    Disabling a plan keeps its installments so recorded payments remain
    visible on the invoice.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from enum import Enum
from typing import Any

from billing_kernel.db.types import MONEY_DECIMAL_PLACES, ZERO, round_money
from billing_kernel.domain.sanitize import parse_date
from billing_kernel.exceptions import (
    InstallmentAlreadyPaidError,
    InstallmentNotFoundError,
    InvalidScheduleRequestError,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("domain.payment_plan")

MIN_INSTALLMENTS = 2
MAX_INSTALLMENTS = 12
DEFAULT_PAYMENT_METHOD = "Recorded"

_CENT = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)


class Frequency(Enum):
    """Installment cadence."""
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, value: Frequency | str) -> Frequency:
        """Accept an enum member or a name; ``bi-weekly`` is an alias."""
        if isinstance(value, Frequency):
            return value
        text = str(value or "").strip().lower().replace("-", "").replace("_", "")
        for member in cls:
            if member.value == text:
                return member
        raise InvalidScheduleRequestError("frequency", f"unknown frequency {value!r}")


class InstallmentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


@dataclass(frozen=True)
class Installment:
    """One scheduled partial payment."""
    index: int
    due_date: date
    amount: Decimal
    status: InstallmentStatus = InstallmentStatus.PENDING
    paid_at: datetime | None = None
    paid_amount: Decimal | None = None
    payment_method: str | None = None

    @property
    def is_open(self) -> bool:
        return self.status is not InstallmentStatus.PAID

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "dueDate": self.due_date.isoformat(),
            "amount": str(self.amount),
            "status": self.status.value,
            "paidAt": self.paid_at.isoformat() if self.paid_at else None,
            "paidAmount": str(self.paid_amount) if self.paid_amount is not None else None,
            "paymentMethod": self.payment_method,
        }


@dataclass(frozen=True)
class PaymentPlan:
    """A multi-installment plan attached to an invoice."""
    enabled: bool
    frequency: Frequency
    installments: tuple[Installment, ...]
    next_payment_date: date | None
    plan_total: Decimal
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "frequency": self.frequency.value,
            "installments": [i.to_dict() for i in self.installments],
            "nextPaymentDate": (
                self.next_payment_date.isoformat() if self.next_payment_date else None
            ),
            "planTotal": str(self.plan_total),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


# ---------------------------------------------------------------------------
# Cadence
# ---------------------------------------------------------------------------


def add_months(start: date, months: int) -> date:
    """Same day-of-month ``months`` later, clamped to the last day of shorter months."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def installment_due_date(start: date, frequency: Frequency, index: int) -> date:
    """Due date of the installment at ``index`` (0-based)."""
    if frequency is Frequency.WEEKLY:
        return start + timedelta(weeks=index)
    if frequency is Frequency.BIWEEKLY:
        return start + timedelta(weeks=2 * index)
    # Offsets are taken from the start so Jan 31 -> Feb 29 -> Mar 31.
    return add_months(start, index)


# ---------------------------------------------------------------------------
# PaymentScheduleBuilder
# ---------------------------------------------------------------------------


def _validated_total(plan_total: Any) -> Decimal:
    if isinstance(plan_total, bool) or plan_total is None:
        raise InvalidScheduleRequestError("plan_total", "a positive amount is required")
    try:
        total = plan_total if isinstance(plan_total, Decimal) else Decimal(str(plan_total))
    except (InvalidOperation, ValueError):
        raise InvalidScheduleRequestError(
            "plan_total", f"not a number: {plan_total!r}"
        ) from None
    if not total.is_finite():
        raise InvalidScheduleRequestError("plan_total", "must be finite")
    total = round_money(total)
    if total <= ZERO:
        raise InvalidScheduleRequestError("plan_total", "must be greater than zero")
    return total


def _validated_start(start_date: Any) -> date:
    if isinstance(start_date, str):
        start_date = parse_date(start_date)
    if isinstance(start_date, datetime):
        return start_date.date()
    if isinstance(start_date, date):
        return start_date
    raise InvalidScheduleRequestError("start_date", "a valid start date is required")


def build_payment_schedule(
    plan_total: Decimal | str | int,
    installment_count: int,
    frequency: Frequency | str,
    start_date: date | str,
    *,
    min_installments: int = MIN_INSTALLMENTS,
    max_installments: int = MAX_INSTALLMENTS,
) -> tuple[Installment, ...]:
    """
    Split ``plan_total`` into ``installment_count`` pending installments.

    Preconditions:
        - plan_total is finite and > 0 (rounded to cents first).
        - min_installments <= installment_count <= max_installments.
        - start_date is a date or an ISO-8601 date string.
        - Each installment is at least one cent.

    Postconditions:
        - Exactly ``installment_count`` installments, indexed from 0.
        - sum(amount) == round_money(plan_total).

    Example:
        build_payment_schedule(Decimal("100.00"), 3, "monthly", date(2024, 1, 31))
        -> amounts 33.33, 33.33, 33.34 due 2024-01-31, 2024-02-29, 2024-03-31
    """
    total = _validated_total(plan_total)
    if (
        isinstance(installment_count, bool)
        or not isinstance(installment_count, int)
        or not min_installments <= installment_count <= max_installments
    ):
        raise InvalidScheduleRequestError(
            "installment_count",
            f"must be an integer between {min_installments} and {max_installments}, "
            f"got {installment_count!r}",
        )
    cadence = Frequency.parse(frequency)
    start = _validated_start(start_date)

    base_amount = (total / installment_count).quantize(_CENT, rounding=ROUND_FLOOR)
    if base_amount <= ZERO:
        raise InvalidScheduleRequestError(
            "plan_total",
            f"{total} is too small to split into {installment_count} installments",
        )
    last_amount = round_money(total - base_amount * (installment_count - 1))

    return tuple(
        Installment(
            index=i,
            due_date=installment_due_date(start, cadence, i),
            amount=last_amount if i == installment_count - 1 else base_amount,
        )
        for i in range(installment_count)
    )


# ---------------------------------------------------------------------------
# InstallmentStatusProjector
# ---------------------------------------------------------------------------


def _as_date(now: date | datetime) -> date:
    return now.date() if isinstance(now, datetime) else now


def project_installment_statuses(
    schedule: tuple[Installment, ...] | list[Installment],
    now: date | datetime,
) -> tuple[Installment, ...]:
    """
    Mark pending installments due before ``now`` as overdue.

    Pure and idempotent.  An installment due today is still pending.
    Paid and already-overdue installments pass through unchanged.
    """
    today = _as_date(now)
    return tuple(
        replace(item, status=InstallmentStatus.OVERDUE)
        if item.status is InstallmentStatus.PENDING and item.due_date < today
        else item
        for item in schedule
    )


def next_payment_date(installments: tuple[Installment, ...]) -> date | None:
    """Earliest due date among unpaid installments, or None."""
    open_dates = [item.due_date for item in installments if item.is_open]
    return min(open_dates) if open_dates else None


def project_plan(plan: PaymentPlan | None, now: date | datetime) -> PaymentPlan | None:
    """Apply the projector to an enabled plan; disabled or absent plans pass through."""
    if plan is None or not plan.enabled:
        return plan
    return replace(plan, installments=project_installment_statuses(plan.installments, now))


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def create_payment_plan(
    plan_total: Decimal | str | int,
    installment_count: int,
    frequency: Frequency | str,
    start_date: date | str,
    created_at: datetime | None = None,
    *,
    min_installments: int = MIN_INSTALLMENTS,
    max_installments: int = MAX_INSTALLMENTS,
) -> PaymentPlan:
    """Build an enabled plan whose next payment is the first installment."""
    installments = build_payment_schedule(
        plan_total,
        installment_count,
        frequency,
        start_date,
        min_installments=min_installments,
        max_installments=max_installments,
    )
    plan = PaymentPlan(
        enabled=True,
        frequency=Frequency.parse(frequency),
        installments=installments,
        next_payment_date=installments[0].due_date,
        plan_total=sum((i.amount for i in installments), ZERO),
        created_at=created_at,
    )
    logger.info(
        "payment_plan_created",
        extra={
            "plan_total": str(plan.plan_total),
            "installment_count": installment_count,
            "frequency": plan.frequency.value,
            "first_due_date": installments[0].due_date.isoformat(),
        },
    )
    return plan


def record_installment_payment(
    plan: PaymentPlan | None,
    index: int,
    paid_at: datetime,
    amount: Decimal | None = None,
    method: str | None = None,
) -> PaymentPlan | None:
    """
    Mark one installment paid.

    A disabled or absent plan is returned unchanged.  ``amount`` defaults
    to the installment amount and ``method`` to ``Recorded``.

    Raises:
        InstallmentNotFoundError: index outside the schedule.
        InstallmentAlreadyPaidError: installment already paid.
    """
    if plan is None or not plan.enabled:
        return plan

    count = len(plan.installments)
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < count:
        raise InstallmentNotFoundError(index, count)

    target = plan.installments[index]
    if target.status is InstallmentStatus.PAID:
        raise InstallmentAlreadyPaidError(index)

    paid = replace(
        target,
        status=InstallmentStatus.PAID,
        paid_at=paid_at,
        paid_amount=round_money(amount) if amount is not None else target.amount,
        payment_method=method or DEFAULT_PAYMENT_METHOD,
    )
    installments = plan.installments[:index] + (paid,) + plan.installments[index + 1:]
    updated = replace(
        plan,
        installments=installments,
        next_payment_date=next_payment_date(installments),
    )

    logger.info(
        "installment_recorded",
        extra={
            "installment_index": index,
            "paid_amount": str(paid.paid_amount),
            "payment_method": paid.payment_method,
            "next_payment_date": (
                updated.next_payment_date.isoformat()
                if updated.next_payment_date else None
            ),
        },
    )
    return updated


def disable_payment_plan(plan: PaymentPlan | None) -> PaymentPlan | None:
    """Switch a plan off; installments and payment history are kept."""
    if plan is None or not plan.enabled:
        return plan
    logger.info(
        "payment_plan_disabled",
        extra={
            "installment_count": len(plan.installments),
            "paid_count": sum(1 for i in plan.installments if not i.is_open),
        },
    )
    return replace(plan, enabled=False)
