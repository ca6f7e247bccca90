"""
Tests for the DocumentAssembler.

Verifies:
- Drafts are priced, numbered, dated and persisted in one transaction
- A failed save spends no number
- Invoices from jobs inherit lines/tax/discount and claim the job
- Jobs from quotes are numbered and Unscheduled
"""

from contextlib import contextmanager
from datetime import date
from decimal import Decimal

import pytest

from billing_kernel.db.memory import InMemoryStore
from billing_kernel.exceptions import InvalidDraftError, JobAlreadyInvoicedError
from billing_kernel.services.document_assembler import DocumentAssembler
from billing_kernel.services.sequence_service import SequenceAllocator

DRAFT = {
    "clientId": "client-1",
    "title": "Roof repair",
    "lineItems": [
        {"qty": 2, "price": 50},
        {"qty": 1, "price": 100, "isOptional": True},
    ],
    "discount": {"type": "percent", "value": 10},
    "taxRate": 15,
}


class FailingDocumentStore(InMemoryStore):
    """Counter writes succeed but document creation fails."""

    @contextmanager
    def transaction(self):
        with super().transaction() as txn:
            txn.create_document = self._explode
            yield txn

    @staticmethod
    def _explode(collection, record, claims=()):
        raise OSError("disk full")


class TestCreatePricedDocument:

    def test_invoice(self, assembler, memory_store):
        invoice = assembler.create_priced_document(DRAFT, "invoice")

        assert invoice.number == "INV-0001"
        assert invoice.sequence_value == 1
        assert invoice.collection == "invoices"
        assert invoice.total == Decimal("103.50")
        assert invoice.issue_date == date(2024, 3, 15)
        assert invoice.due_term == "Due Today"
        assert invoice.due_date == date(2024, 3, 15)

        stored = memory_store.get_document("invoices", invoice.id)
        assert stored["number"] == "INV-0001"
        assert stored["total"] == "103.50"
        assert stored["clientId"] == "client-1"

    def test_due_term_and_issue_date_from_draft(self, assembler):
        draft = dict(DRAFT, issueDate="2024-01-01", dueTerm="Net 30")
        invoice = assembler.create_priced_document(draft, "invoice")
        assert invoice.issue_date == date(2024, 1, 1)
        assert invoice.due_date == date(2024, 1, 31)

    def test_issue_date_follows_clock(self, assembler, deterministic_clock):
        deterministic_clock.advance(days=20)
        invoice = assembler.create_priced_document(dict(DRAFT, dueTerm="Net 7"), "invoice")
        assert invoice.issue_date == date(2024, 4, 4)
        assert invoice.due_date == date(2024, 4, 11)

    def test_unknown_term_logged_and_falls_back(self, assembler, captured_logs):
        invoice = assembler.create_priced_document(dict(DRAFT, dueTerm="Net 45"), "invoice")
        assert invoice.due_date == invoice.issue_date
        warnings = [r for r in captured_logs() if r["message"] == "unknown_payment_term"]
        assert warnings[0]["due_term"] == "Net 45"

    def test_quote_series(self, assembler, memory_store):
        quote = assembler.create_priced_document(DRAFT, "quote")
        assert quote.number == "QU-0001"
        assert memory_store.list_documents("quotes")[0]["id"] == quote.id

    def test_sequential_numbers(self, assembler):
        numbers = [assembler.create_priced_document(DRAFT, "invoice").number for _ in range(3)]
        assert numbers == ["INV-0001", "INV-0002", "INV-0003"]

    def test_to_dict(self, assembler):
        data = assembler.create_priced_document(DRAFT, "invoice").to_dict()
        assert data["number"] == "INV-0001"
        assert data["issueDate"] == "2024-03-15"
        assert data["createdAt"].startswith("2024-03-15T09:30:00")
        assert data["taxAmount"] == "13.50"
        assert data["documentDiscountAmount"] == "10.00"
        assert data["lineItems"][0]["price"] == "50"
        assert data["status"] == "Draft"

    def test_non_mapping_draft(self, assembler):
        with pytest.raises(InvalidDraftError):
            assembler.create_priced_document(["not", "a", "draft"], "invoice")

    def test_failed_save_spends_no_number(self, deterministic_clock, captured_logs):
        store = FailingDocumentStore()
        allocator = SequenceAllocator(store, backoff_seconds=0)
        assembler = DocumentAssembler(allocator, deterministic_clock)

        with pytest.raises(OSError):
            assembler.create_priced_document(DRAFT, "invoice")

        assert allocator.peek("invoice").next_value == 1
        assert store.list_documents("invoices") == []
        assert any(r["message"] == "document_creation_failed" for r in captured_logs())


class TestInvoiceFromJob:

    def test_lines_from_job_pricing_from_quote(self, assembler):
        job = {"id": "job-1", "title": "Fence", "clientId": "c-1",
               "lineItems": [{"qty": 4, "price": 25}]}
        quote = {"id": "q-1", "taxRate": "10", "discount": {"type": "amount", "value": 20},
                 "lineItems": [{"qty": 1, "price": 999}]}

        invoice = assembler.create_invoice_from_job(job, quote)

        assert invoice.number == "INV-0001"
        assert invoice.totals.subtotal_before_discount == Decimal("100.00")
        assert invoice.totals.after_all_discounts == Decimal("80.00")
        assert invoice.total == Decimal("88.00")
        assert invoice.draft.job_ids == ("job-1",)
        assert invoice.draft.quote_id == "q-1"
        assert invoice.draft.client_id == "c-1"

    def test_lines_fall_back_to_quote(self, assembler):
        quote = {"id": "q-1", "lineItems": [{"qty": 1, "price": 60}]}
        invoice = assembler.create_invoice_from_job({"id": "job-2"}, quote)
        assert invoice.total == Decimal("60.00")

    def test_placeholder_line_and_default_tax(self, allocator, deterministic_clock):
        assembler = DocumentAssembler(
            allocator, deterministic_clock, default_tax_rate=Decimal("10")
        )
        invoice = assembler.create_invoice_from_job({"id": "job-3", "title": "Call-out"})

        (line,) = invoice.draft.pricing.line_items
        assert line.name == "Call-out"
        assert line.quantity == Decimal("1")
        assert line.unit_price == Decimal("0")
        assert invoice.draft.pricing.tax_rate_percent == Decimal("10")
        assert invoice.total == Decimal("0.00")

    def test_job_invoiced_once(self, assembler, memory_store):
        job = {"id": "job-4", "lineItems": [{"qty": 1, "price": 10}]}
        assembler.create_invoice_from_job(job)

        with pytest.raises(JobAlreadyInvoicedError) as exc_info:
            assembler.create_invoice_from_job(job)

        assert exc_info.value.job_id == "job-4"
        assert len(memory_store.list_documents("invoices")) == 1
        # The refused invoice spent no number
        assert assembler.create_priced_document(DRAFT, "invoice").number == "INV-0002"

    def test_invoice_draft_listing_invoiced_job_refused(self, assembler, memory_store):
        assembler.create_invoice_from_job({"id": "job-6"})

        with pytest.raises(JobAlreadyInvoicedError) as exc_info:
            assembler.create_priced_document(dict(DRAFT, jobIds=["job-7", "job-6"]), "invoice")

        assert exc_info.value.job_id == "job-6"
        assert len(memory_store.list_documents("invoices")) == 1

    def test_invoice_draft_claims_its_jobs(self, assembler, memory_store):
        invoice = assembler.create_priced_document(dict(DRAFT, jobId="job-8"), "invoice")
        assert invoice.draft.job_ids == ("job-8",)

        with pytest.raises(JobAlreadyInvoicedError):
            assembler.create_invoice_from_job({"id": "job-8"})
        assert len(memory_store.list_documents("invoices")) == 1

    def test_quote_listing_job_makes_no_claim(self, assembler, memory_store):
        assembler.create_priced_document(dict(DRAFT, jobIds=["job-9"]), "quote")
        assembler.create_invoice_from_job({"id": "job-9"})
        assert len(memory_store.list_documents("invoices")) == 1

    @pytest.mark.parametrize("job", [{}, {"id": ""}, "job-5", None])
    def test_job_requires_id(self, assembler, job):
        with pytest.raises(InvalidDraftError):
            assembler.create_invoice_from_job(job)


class TestJobFromQuote:

    def test_create_job(self, assembler, memory_store):
        quote = {
            "id": "q-7",
            "status": "Accepted",
            "title": "Kitchen",
            "lineItems": [{"qty": 2, "price": 100}, {"qty": 1, "price": 50, "isOptional": True}],
        }

        job = assembler.create_job_from_quote(quote)

        assert job.number == "JOB-0001"
        assert job.collection == "jobs"
        stored = memory_store.get_document("jobs", job.id)
        assert stored["status"] == "Unscheduled"
        assert stored["quoteId"] == "q-7"
        assert stored["totalValue"] == "200.00"
        assert stored["title"] == "Kitchen"
