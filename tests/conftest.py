"""
Shared fixtures for the billing kernel test suite.

- JSON logging at DEBUG for the whole session, context cleared per test
- ``captured_logs`` to assert on emitted log events
- A deterministic clock fixed at 2024-03-15 09:30 UTC
- In-memory store, allocator and assembler
- A SQLite-backed store in a per-test temporary directory
"""

import json
import logging
from datetime import datetime, timezone

import pytest

from billing_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from billing_kernel.db.memory import InMemoryStore
from billing_kernel.db.store import SqlAlchemyStore
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from billing_kernel.services.document_assembler import DocumentAssembler
from billing_kernel.services.sequence_service import SequenceAllocator


def pytest_configure(config):
    config.addinivalue_line("markers", "concurrency: thread-based concurrency test")
    config.addinivalue_line("markers", "sqlite: test runs against a SQLite database file")


class _JsonCollector(logging.Handler):
    """Keeps every record as the dict the JSON formatter would emit."""

    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.setFormatter(StructuredFormatter())
        self.records: list[dict] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(json.loads(self.format(record)))


@pytest.fixture(autouse=True, scope="session")
def _session_logging():
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _fresh_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Call the fixture value to get the log records emitted so far.

        def test_allocation_logged(captured_logs, allocator):
            allocator.allocate("invoice")
            assert any(r["message"] == "sequence_allocated" for r in captured_logs())
    """
    collector = _JsonCollector()
    kernel_logger = logging.getLogger("billing_kernel")
    saved_level = kernel_logger.level
    kernel_logger.setLevel(logging.DEBUG)
    kernel_logger.addHandler(collector)
    yield lambda: list(collector.records)
    kernel_logger.removeHandler(collector)
    kernel_logger.setLevel(saved_level)


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def allocator(memory_store):
    return SequenceAllocator(memory_store, backoff_seconds=0)


@pytest.fixture
def assembler(allocator, deterministic_clock):
    return DocumentAssembler(allocator, deterministic_clock)


@pytest.fixture
def sqlite_store(tmp_path):
    """SqlAlchemyStore over a SQLite file, so separate sessions share one database."""
    init_engine_from_url(f"sqlite:///{tmp_path / 'billing.db'}")
    create_tables()
    yield SqlAlchemyStore(get_session_factory())
    drop_tables()
    reset_engine()
