"""
DocumentAssembler -- Priced, numbered document records from drafts.

Responsibility:
    Orchestrates the core for document creation: sanitize the draft,
    price it (compute_totals), resolve the due date, allocate a number and
    persist the record.  Also converts jobs into invoices and quotes into
    jobs.

Architecture position:
    Kernel > Services.  Depends on SequenceAllocator and the domain layer.

Invariants enforced:
    - Number allocation and document creation happen in ONE store
      transaction.  If persistence fails the number is not spent; on a
      write conflict both are retried together.
    - A job is invoiced at most once: every invoice that lists a job
      claims ``job:<id>`` in the same transaction.

Failure modes:
    - InvalidDraftError: draft is not a mapping, or a job has no id.
    - JobAlreadyInvoicedError: the job is already covered by an invoice.
    - ConcurrencyExhaustedError / UnknownSeriesError from the allocator.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from billing_kernel.db.types import ZERO, coerce_amount
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.documents import (
    DiscountSpec,
    DocumentDraft,
    LineItem,
    PricedDocument,
    Totals,
)
from billing_kernel.domain.due_dates import is_known_term, resolve_due_date
from billing_kernel.domain.sanitize import (
    sanitize_draft,
    sanitize_line_items,
    sanitize_priced_document,
)
from billing_kernel.domain.store import StoreTransaction
from billing_kernel.domain.totals import compute_job_total_value, compute_totals
from billing_kernel.exceptions import (
    DuplicateDocumentError,
    InvalidDraftError,
    JobAlreadyInvoicedError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.services.sequence_service import SequenceAllocator

logger = get_logger("services.document_assembler")

INVOICE_SERIES = "invoice"
JOB_SERIES = "job"
JOB_CLAIM_PREFIX = "job:"
UNSCHEDULED = "Unscheduled"


@dataclass(frozen=True)
class PersistedDocument:
    """A document as committed to the store."""
    id: str
    collection: str
    series: str
    number: str
    sequence_value: int
    draft: DocumentDraft
    totals: Totals
    issue_date: date
    due_term: str
    due_date: date | None
    created_at: datetime
    extra: Mapping[str, Any] = field(default_factory=dict)

    @property
    def total(self) -> Decimal:
        return self.totals.total

    def to_dict(self) -> dict[str, Any]:
        """Plain structured data: camelCase keys, ISO dates, money as strings."""
        draft = self.draft
        data: dict[str, Any] = {
            "id": self.id,
            "collection": self.collection,
            "series": self.series,
            "number": self.number,
            "sequenceValue": self.sequence_value,
            "status": draft.status,
            "title": draft.title,
            "clientId": draft.client_id,
            "quoteId": draft.quote_id,
            "jobIds": list(draft.job_ids),
            "issueDate": self.issue_date.isoformat(),
            "dueTerm": self.due_term,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "lineItems": [item.to_dict() for item in draft.pricing.line_items],
            "discount": draft.pricing.document_discount.to_dict(),
            "taxRate": str(draft.pricing.tax_rate_percent),
            "createdAt": self.created_at.isoformat(),
        }
        data.update(self.totals.to_dict())
        data.update(self.extra)
        return data


class DocumentAssembler:
    """
    Creates numbered documents atomically.

    Usage:
        assembler = DocumentAssembler(SequenceAllocator(store), clock)
        invoice = assembler.create_priced_document(draft, "invoice")
    """

    def __init__(
        self,
        allocator: SequenceAllocator,
        clock: Clock | None = None,
        default_due_term: str = "Due Today",
        default_tax_rate: Decimal = ZERO,
    ):
        self._allocator = allocator
        self._clock = clock or SystemClock()
        self._default_due_term = default_due_term
        self._default_tax_rate = coerce_amount(default_tax_rate)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def create_priced_document(
        self,
        draft: DocumentDraft | Mapping[str, Any],
        series: str,
    ) -> PersistedDocument:
        """Price, number and persist a quote, invoice, purchase order or credit note."""
        if not isinstance(draft, DocumentDraft):
            draft = sanitize_draft(draft)
        if series == INVOICE_SERIES and draft.job_ids:
            return self._persist_job_invoice(draft)
        return self._persist(draft, series)

    def create_invoice_from_job(
        self,
        job: Mapping[str, Any],
        quote: Mapping[str, Any] | None = None,
    ) -> PersistedDocument:
        """
        Invoice a completed job.

        Line items come from the job, else from its quote, else a single
        zero-priced line named after the job.  Tax rate and discount come
        from the quote, else the configured default tax rate.

        Raises:
            JobAlreadyInvoicedError: another invoice already covers the job.
        """
        if not isinstance(job, Mapping) or not job.get("id"):
            raise InvalidDraftError("job must be a mapping with an id")
        job_id = str(job["id"])
        quote = quote if isinstance(quote, Mapping) else None
        title = str(job.get("title") or "").strip()

        line_items = sanitize_line_items(job.get("lineItems"))
        if not line_items and quote is not None:
            line_items = sanitize_line_items(quote.get("lineItems"))
        if not line_items:
            line_items = (LineItem(name=title or "Services", quantity=Decimal(1)),)

        if quote is not None:
            quote_pricing = sanitize_priced_document(quote)
            discount = quote_pricing.document_discount
            tax_rate = quote_pricing.tax_rate_percent
        else:
            discount = DiscountSpec.none()
            tax_rate = self._default_tax_rate

        client_id = job.get("clientId") or (quote or {}).get("clientId")
        quote_id = (quote or {}).get("id") or job.get("quoteId")
        draft = DocumentDraft(
            pricing=PricedDocument(line_items, discount, tax_rate),
            client_id=str(client_id) if client_id else None,
            title=title,
            job_ids=(job_id,),
            quote_id=str(quote_id) if quote_id else None,
        )

        return self._persist_job_invoice(draft)

    def create_job_from_quote(self, quote: Mapping[str, Any]) -> PersistedDocument:
        """Turn an accepted quote into an Unscheduled job with its own number."""
        draft = sanitize_draft(quote)
        quote_id = quote.get("id") or draft.quote_id
        draft = replace(
            draft,
            status=UNSCHEDULED,
            quote_id=str(quote_id) if quote_id else None,
            job_ids=(),
        )
        total_value = compute_job_total_value(draft.pricing.line_items)
        return self._persist(draft, JOB_SERIES, extra={"totalValue": str(total_value)})

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _persist_job_invoice(self, draft: DocumentDraft) -> PersistedDocument:
        """Persist an invoice that claims every job it covers."""
        claims = tuple(dict.fromkeys(f"{JOB_CLAIM_PREFIX}{job_id}" for job_id in draft.job_ids))
        with LogContext.bind(job_id=",".join(draft.job_ids)):
            try:
                return self._persist(draft, INVOICE_SERIES, claims=claims)
            except DuplicateDocumentError as exc:
                job_id = exc.claim_key.removeprefix(JOB_CLAIM_PREFIX)
                raise JobAlreadyInvoicedError(job_id) from None

    def _persist(
        self,
        draft: DocumentDraft,
        series: str,
        claims: tuple[str, ...] = (),
        extra: Mapping[str, Any] | None = None,
    ) -> PersistedDocument:
        collection = self._allocator.registry.get(series).collection
        totals = compute_totals(draft.pricing)
        created_at = self._clock.now()
        issue_date = draft.issue_date or created_at.date()
        due_term = draft.due_term or self._default_due_term
        if not is_known_term(due_term):
            logger.warning(
                "unknown_payment_term",
                extra={"due_term": due_term, "issue_date": issue_date},
            )
        due_date = resolve_due_date(issue_date, due_term)

        def _create(txn: StoreTransaction) -> PersistedDocument:
            allocated = self._allocator.allocate_in(txn, series)
            pending = PersistedDocument(
                id="",
                collection=collection,
                series=series,
                number=allocated.number,
                sequence_value=allocated.raw_value,
                draft=draft,
                totals=totals,
                issue_date=issue_date,
                due_term=due_term,
                due_date=due_date,
                created_at=created_at,
                extra=dict(extra or {}),
            )
            record = pending.to_dict()
            del record["id"]
            document_id = txn.create_document(collection, record, claims)
            return replace(pending, id=document_id)

        with LogContext.bind(series=series):
            try:
                document = self._allocator.run_in_transaction(_create, series=series)
            except Exception as exc:
                logger.warning(
                    "document_creation_failed",
                    extra={
                        "collection": collection,
                        "reason": type(exc).__name__,
                        "claims": list(claims),
                    },
                )
                raise

            with LogContext.bind(document_id=document.id):
                logger.info(
                    "document_created",
                    extra={
                        "collection": collection,
                        "number": document.number,
                        "total": document.total,
                        "due_date": due_date,
                    },
                )
        return document
