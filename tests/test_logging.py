"""
Tests for billing_kernel/logging_config.py.

- One JSON object per line with money, dates and enums in plain form
- Typed kernel errors expose their attributes as exc_* fields
- LogContext.bind nests and unwinds, including on errors
- Kernel operations tag their records with series, document and job ids
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from billing_kernel.domain.documents import LineItemKind
from billing_kernel.exceptions import (
    ConcurrencyExhaustedError,
    DuplicateDocumentError,
    JobAlreadyInvoicedError,
)
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture
def json_stream():
    """Route kernel logging to a fresh JSON stream; the session handler comes back afterwards."""
    reset_logging()
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    configure_logging(handler=handler, level="debug")
    yield stream
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _lines(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


class TestJsonLines:

    def test_money_dates_and_enums_are_plain_values(self, json_stream):
        get_logger("pricing").info(
            "priced",
            extra={
                "total": Decimal("103.50"),
                "due_date": date(2024, 4, 14),
                "created_at": datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc),
                "kind": LineItemKind.TEXT_BLOCK,
                "job_ids": ("job-1", "job-2"),
            },
        )

        [record] = _lines(json_stream)
        assert record["logger"] == "billing_kernel.pricing"
        assert record["level"] == "INFO"
        assert record["total"] == "103.50"
        assert record["due_date"] == "2024-04-14"
        assert record["created_at"] == "2024-03-15T09:30:00+00:00"
        assert record["kind"] == "textBlock"
        assert record["job_ids"] == ["job-1", "job-2"]

    def test_kernel_error_attributes_become_exc_fields(self, json_stream):
        try:
            raise ConcurrencyExhaustedError("invoice", 5)
        except ConcurrencyExhaustedError:
            get_logger("allocator").error("allocation_failed", exc_info=True)

        [record] = _lines(json_stream)
        assert record["exc_type"] == "ConcurrencyExhaustedError"
        assert record["exc_code"] == "CONCURRENCY_EXHAUSTED"
        assert record["exc_series"] == "invoice"
        assert record["exc_attempts"] == 5
        assert "Traceback" in record["traceback"]

    def test_duplicate_claim_fields(self, json_stream):
        try:
            raise DuplicateDocumentError("invoices", "job:job-3")
        except DuplicateDocumentError:
            get_logger("assembler").warning("claim_refused", exc_info=True)

        [record] = _lines(json_stream)
        assert record["exc_collection"] == "invoices"
        assert record["exc_claim_key"] == "job:job-3"

    def test_plain_exception_has_no_code(self, json_stream):
        try:
            raise ValueError("bad price")
        except ValueError:
            get_logger("sanitize").error("sanitize_failed", exc_info=True)

        [record] = _lines(json_stream)
        assert record["exc_message"] == "bad price"
        assert "exc_code" not in record

    def test_extra_does_not_override_bound_context(self, json_stream):
        with LogContext.bind(series="invoice"):
            get_logger("allocator").info("sequence_allocated", extra={"series": "quote"})

        assert _lines(json_stream)[0]["series"] == "invoice"


class TestContextBinding:

    def test_nested_binds_unwind_in_order(self):
        with LogContext.bind(series="invoice"):
            with LogContext.bind(document_id="doc-1", series="credit_note"):
                assert LogContext.get_all() == {
                    "series": "credit_note",
                    "document_id": "doc-1",
                }
            assert LogContext.get_all() == {"series": "invoice"}
        assert LogContext.get_all() == {}

    def test_none_leaves_field_unchanged(self):
        with LogContext.bind(job_id="job-1"):
            with LogContext.bind(job_id=None, actor_id="u-9"):
                assert LogContext.get_all() == {"job_id": "job-1", "actor_id": "u-9"}

    def test_unknown_field_raises_and_keeps_context(self):
        LogContext.set(correlation_id="req-1")
        with pytest.raises(TypeError, match="tenant"):
            with LogContext.bind(tenant="acme"):
                pass
        assert LogContext.get_all() == {"correlation_id": "req-1"}

    def test_unwinds_on_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(document_id="doc-2"):
                raise RuntimeError("write failed")
        assert LogContext.get_all() == {}


class TestKernelEvents:

    def test_document_created_carries_series_and_document_id(
        self, assembler, captured_logs
    ):
        invoice = assembler.create_priced_document(
            {"lineItems": [{"qty": 1, "price": 40}]}, "invoice"
        )

        [created] = [r for r in captured_logs() if r["message"] == "document_created"]
        assert created["series"] == "invoice"
        assert created["document_id"] == invoice.id
        assert created["number"] == "INV-0001"
        assert created["total"] == "40.00"
        assert LogContext.get_all() == {}

    def test_refused_job_invoice_logged_with_job_id(self, assembler, captured_logs):
        assembler.create_invoice_from_job({"id": "job-4"})
        with pytest.raises(JobAlreadyInvoicedError):
            assembler.create_invoice_from_job({"id": "job-4"})

        [failed] = [r for r in captured_logs() if r["message"] == "document_creation_failed"]
        assert failed["job_id"] == "job-4"
        assert failed["reason"] == "DuplicateDocumentError"
        assert failed["claims"] == ["job:job-4"]

    def test_allocation_logged_at_debug(self, allocator, captured_logs):
        allocator.allocate("quote")

        [allocated] = [r for r in captured_logs() if r["message"] == "sequence_allocated"]
        assert allocated["level"] == "DEBUG"
        assert allocated["number"] == "QU-0001"


class TestConfiguration:

    def test_second_configure_is_ignored(self, json_stream):
        other = StringIO()
        configure_logging(stream=other)
        get_logger("engine").info("engine_initialized")

        assert other.getvalue() == ""
        assert len(logging.getLogger("billing_kernel").handlers) == 1
        assert _lines(json_stream)[0]["message"] == "engine_initialized"

    def test_level_name_filters_records(self):
        reset_logging()
        stream = StringIO()
        configure_logging(stream=stream, level="warning")
        try:
            log = get_logger("allocator")
            log.info("sequence_allocated")
            log.warning("sequence_conflict_retry")
        finally:
            reset_logging()
            configure_logging(level=logging.DEBUG)

        assert [r["message"] for r in _lines(stream)] == ["sequence_conflict_retry"]

    def test_formatter_output_is_single_line(self):
        record = logging.LogRecord(
            "billing_kernel.test", logging.INFO, __file__, 1, "multi\nline", (), None
        )
        line = StructuredFormatter().format(record)
        assert "\n" not in line
        assert json.loads(line)["message"] == "multi\nline"
