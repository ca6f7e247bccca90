"""
Pure domain layer.

Pricing, due dates, numbering formats, payment schedules and the store
contracts.  Nothing here touches a database, the network or the wall
clock; all objects are immutable and deterministic.
"""

from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.documents import (
    DiscountSpec,
    DiscountType,
    DocumentDraft,
    LineItem,
    LineItemKind,
    PricedDocument,
    Totals,
)
from billing_kernel.domain.due_dates import (
    PAYMENT_TERMS,
    is_known_term,
    resolve_due_date,
)
from billing_kernel.domain.numbering import (
    DEFAULT_SERIES,
    AllocatedNumber,
    SeriesDefinition,
    SeriesRegistry,
    format_document_number,
)
from billing_kernel.domain.payment_plan import (
    Frequency,
    Installment,
    InstallmentStatus,
    PaymentPlan,
    build_payment_schedule,
    create_payment_plan,
    disable_payment_plan,
    project_installment_statuses,
    project_plan,
    record_installment_payment,
)
from billing_kernel.domain.sanitize import (
    sanitize_draft,
    sanitize_line_item,
    sanitize_priced_document,
)
from billing_kernel.domain.store import CounterRecord, StoreTransaction, TransactionalStore
from billing_kernel.domain.totals import (
    calculate_invoice_balance,
    calculate_job_profitability,
    compute_job_total_value,
    compute_totals,
    invoice_payment_status,
)

__all__ = [
    "AllocatedNumber",
    "Clock",
    "CounterRecord",
    "DEFAULT_SERIES",
    "DeterministicClock",
    "DiscountSpec",
    "DiscountType",
    "DocumentDraft",
    "Frequency",
    "Installment",
    "InstallmentStatus",
    "LineItem",
    "LineItemKind",
    "PAYMENT_TERMS",
    "PaymentPlan",
    "PricedDocument",
    "SeriesDefinition",
    "SeriesRegistry",
    "StoreTransaction",
    "SystemClock",
    "Totals",
    "TransactionalStore",
    "build_payment_schedule",
    "calculate_invoice_balance",
    "calculate_job_profitability",
    "compute_job_total_value",
    "compute_totals",
    "create_payment_plan",
    "disable_payment_plan",
    "format_document_number",
    "invoice_payment_status",
    "is_known_term",
    "project_installment_statuses",
    "project_plan",
    "record_installment_payment",
    "resolve_due_date",
    "sanitize_draft",
    "sanitize_line_item",
    "sanitize_priced_document",
]
