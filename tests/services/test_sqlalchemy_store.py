"""
Tests for the SQLAlchemy-backed store (SQLite file database).

Verifies:
- Counter rows are created lazily and advanced under version control
- A write based on a stale read fails with WriteConflictError
- Claims are unique across committed documents
- Rolled-back transactions leave no trace
"""

import pytest

from billing_kernel.domain.store import CounterRecord
from billing_kernel.exceptions import DuplicateDocumentError, WriteConflictError
from billing_kernel.services.document_assembler import DocumentAssembler
from billing_kernel.services.sequence_service import SequenceAllocator

pytestmark = pytest.mark.sqlite


class TestCounters:

    def test_allocations_persist(self, sqlite_store):
        allocator = SequenceAllocator(sqlite_store, backoff_seconds=0)

        assert allocator.allocate("invoice").number == "INV-0001"
        assert allocator.allocate("invoice").number == "INV-0002"

        record = sqlite_store.get("invoice")
        assert record.next_value == 3
        assert record.prefix == "INV"
        assert record.version == 2

    def test_configure_then_allocate(self, sqlite_store):
        allocator = SequenceAllocator(sqlite_store, backoff_seconds=0)
        allocator.configure_series("quote", prefix="Q", padding=3, next_value=50)
        assert allocator.allocate("quote").number == "Q-050"
        assert allocator.peek("quote").next_value == 51

    def test_stale_write_conflicts(self, sqlite_store):
        sqlite_store.transactional_update(
            "invoice", lambda current: CounterRecord("invoice", 1, "INV")
        )

        with pytest.raises(WriteConflictError):
            with sqlite_store.transaction() as slow:
                stale = slow.get_counter("invoice")
                with sqlite_store.transaction() as fast:
                    fast.put_counter(fast.get_counter("invoice").advanced())
                slow.put_counter(stale.advanced())

        record = sqlite_store.get("invoice")
        assert record.next_value == 2
        assert record.version == 2

    def test_put_with_foreign_stale_record(self, sqlite_store):
        sqlite_store.transactional_update(
            "job", lambda current: CounterRecord("job", 1, "JOB")
        )
        old = sqlite_store.get("job")
        sqlite_store.transactional_update("job", lambda current: current.advanced())

        with pytest.raises(WriteConflictError):
            with sqlite_store.transaction() as txn:
                txn.put_counter(old.advanced())

    def test_rollback_leaves_no_counter(self, sqlite_store):
        with pytest.raises(RuntimeError):
            with sqlite_store.transaction() as txn:
                txn.put_counter(CounterRecord("invoice", 2, "INV"))
                raise RuntimeError("abort")
        assert sqlite_store.get("invoice") is None


class TestDocuments:

    def test_create_and_read(self, sqlite_store):
        with sqlite_store.transaction() as txn:
            document_id = txn.create_document(
                "invoices", {"number": "INV-0001", "total": "10.00"}, claims=("job:7",)
            )

        stored = sqlite_store.get_document("invoices", document_id)
        assert stored == {"number": "INV-0001", "total": "10.00", "id": document_id}
        assert sqlite_store.get_document("quotes", document_id) is None
        assert sqlite_store.get_document("invoices", "not-a-uuid") is None

    def test_duplicate_claim(self, sqlite_store):
        with sqlite_store.transaction() as txn:
            txn.create_document("invoices", {"number": "INV-0001"}, claims=("job:7",))

        with pytest.raises(DuplicateDocumentError) as exc_info:
            with sqlite_store.transaction() as txn:
                txn.put_counter(CounterRecord("invoice", 3, "INV"))
                txn.create_document("invoices", {"number": "INV-0002"}, claims=("job:7",))

        assert exc_info.value.claim_key == "job:7"
        assert [d["number"] for d in sqlite_store.list_documents("invoices")] == ["INV-0001"]
        assert sqlite_store.get("invoice") is None

    def test_list_documents_by_collection(self, sqlite_store):
        with sqlite_store.transaction() as txn:
            txn.create_document("jobs", {"number": "JOB-0001"})
            txn.create_document("jobs", {"number": "JOB-0002"})
            txn.create_document("quotes", {"number": "QU-0001"})

        assert [d["number"] for d in sqlite_store.list_documents("jobs")] == [
            "JOB-0001",
            "JOB-0002",
        ]

    def test_assembler_end_to_end(self, sqlite_store, deterministic_clock):
        assembler = DocumentAssembler(
            SequenceAllocator(sqlite_store, backoff_seconds=0), deterministic_clock
        )
        invoice = assembler.create_invoice_from_job(
            {"id": "job-1", "title": "Boiler service", "lineItems": [{"qty": 1, "price": 80}]}
        )

        stored = sqlite_store.get_document("invoices", invoice.id)
        assert stored["number"] == "INV-0001"
        assert stored["total"] == "80.00"
        assert stored["jobIds"] == ["job-1"]
