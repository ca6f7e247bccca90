"""
TotalsCalculator -- Pure money derivation for quotes, invoices and jobs.

Responsibility:
    Derives subtotal, discounts, tax and total from a priced document.
    Also provides the smaller derived figures the rest of the system shows
    next to documents: job value, job profitability, invoice balance.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Safe to call from
    any number of threads; used for live previews, by the document
    assembler and by report/export collaborators.

Invariants enforced:
    - Only billable lines (charges that are not optional) contribute.
    - Line discounts are taken first; the document discount applies to the
      already line-discounted subtotal.  Both subtractions clamp at zero.
    - Every returned money figure is rounded to cents by round_money(), and
      total == after_all_discounts + tax_amount exactly.  The total is
      rounded once from the unrounded taxed amount, so it never drifts from
      the formula by more than half a cent.

Failure modes:
    - None.  Raw drafts are sanitized first; garbage contributes zero.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from billing_kernel.db.types import ZERO, coerce_amount, round_money
from billing_kernel.domain.documents import LineItem, PricedDocument, Totals
from billing_kernel.domain.sanitize import sanitize_line_items, sanitize_priced_document

HUNDRED = Decimal(100)


def compute_totals(document: PricedDocument | Mapping[str, Any]) -> Totals:
    """
    Price a document.

    Preconditions:
        - ``document`` is a PricedDocument, or a raw draft mapping which is
          sanitized first (partial and invalid drafts are fine).

    Postconditions:
        - Idempotent: the same input always yields an equal Totals.
        - ``total == max(0, max(0, subtotal - line discounts) - document
          discount) * (1 + tax/100)`` to the cent.

    Example:
        Two lines (2 x 50, optional 1 x 100), 10% document discount, 15% tax
        -> subtotal 100.00, discount 10.00, tax 13.50, total 103.50.
    """
    if not isinstance(document, PricedDocument):
        document = sanitize_priced_document(document)

    subtotal = ZERO
    line_discounts = ZERO
    for item in document.billable_items:
        line_subtotal = item.line_subtotal
        subtotal += line_subtotal
        line_discounts += item.line_discount.amount_off(line_subtotal)

    discounted_subtotal = max(ZERO, subtotal - line_discounts)
    document_discount = document.document_discount.amount_off(discounted_subtotal)
    after_discounts = max(ZERO, discounted_subtotal - document_discount)
    after_all_discounts = round_money(after_discounts)

    # Total is rounded once from the exact figure; tax is the remainder.
    multiplier = 1 + document.tax_rate_percent / HUNDRED
    total = round_money(after_discounts * multiplier)
    tax_amount = total - after_all_discounts

    # Display only: what the customer would pay with every discount zeroed.
    subtotal_rounded = round_money(subtotal)
    original_total = round_money(subtotal * multiplier)
    total_savings = max(Decimal("0.00"), original_total - total)

    return Totals(
        subtotal_before_discount=subtotal_rounded,
        line_discount_total=round_money(line_discounts),
        discounted_subtotal=round_money(discounted_subtotal),
        document_discount_amount=round_money(document_discount),
        after_all_discounts=after_all_discounts,
        tax_amount=tax_amount,
        total=total,
        original_total=original_total,
        total_savings=total_savings,
    )


def compute_job_total_value(line_items: Iterable[LineItem]) -> Decimal:
    """Billable value of a job: sum of qty x price over billable lines."""
    value = sum(
        (item.line_subtotal for item in line_items if item.is_billable),
        ZERO,
    )
    return round_money(value)


def calculate_job_profitability(job: Mapping[str, Any]) -> dict[str, Decimal]:
    """
    Revenue, costs, profit and margin for a job record.

    Revenue is the job's stored ``totalValue`` when positive, otherwise the
    value of its billable lines.  Labour entries contribute their ``cost``
    (or ``amount``), else hours x rate.  Materials are qty x unitCost over
    billable lines.
    """
    line_items = sanitize_line_items(job.get("lineItems") or job.get("line_items"))

    revenue = coerce_amount(job.get("totalValue", job.get("total_value")))
    if revenue == ZERO:
        revenue = compute_job_total_value(line_items)

    labour_cost = ZERO
    for entry in _as_list(job.get("laborEntries", job.get("labor_entries"))):
        cost = coerce_amount(entry.get("cost") or entry.get("amount"))
        if cost == ZERO:
            cost = coerce_amount(entry.get("hours")) * coerce_amount(entry.get("rate"))
        labour_cost += cost

    expenses_cost = sum(
        (coerce_amount(expense.get("amount")) for expense in _as_list(job.get("expenses"))),
        ZERO,
    )
    materials_cost = sum(
        (item.quantity * item.unit_cost for item in line_items if item.is_billable),
        ZERO,
    )

    total_costs = labour_cost + expenses_cost + materials_cost
    profit = revenue - total_costs
    margin = (profit / revenue * HUNDRED) if revenue > ZERO else ZERO

    return {
        "revenue": round_money(revenue),
        "labor_cost": round_money(labour_cost),
        "expenses_cost": round_money(expenses_cost),
        "materials_cost": round_money(materials_cost),
        "total_costs": round_money(total_costs),
        "profit": round_money(profit),
        "margin_percent": round_money(margin),
    }


def calculate_invoice_balance(
    total: Decimal | str | int | float | None,
    payments: Iterable[Mapping[str, Any]] = (),
    status: str | None = None,
) -> Decimal:
    """Outstanding balance: ``max(0, total - paid)``; zero once marked Paid."""
    if status == "Paid":
        return Decimal("0.00")
    paid = sum((coerce_amount(p.get("amount")) for p in _as_list(payments)), ZERO)
    return round_money(max(ZERO, coerce_amount(total) - paid))


def invoice_payment_status(
    total: Decimal | str | int | float | None,
    payments: Iterable[Mapping[str, Any]] = (),
) -> str:
    """``Paid`` once payments cover the total, else ``Partially Paid``/``Unpaid``."""
    paid = sum((coerce_amount(p.get("amount")) for p in _as_list(payments)), ZERO)
    if paid == ZERO:
        return "Unpaid"
    if paid >= coerce_amount(total):
        return "Paid"
    return "Partially Paid"


def _as_list(value: Any) -> list[Mapping[str, Any]]:
    if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Iterable):
        return []
    return [entry for entry in value if isinstance(entry, Mapping)]
