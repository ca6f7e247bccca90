"""
Store -- Collaborator contracts for counter and document persistence.

Responsibility:
    Defines the narrow interface the allocator and assembler use to read
    and advance counters and to create documents.  Concrete stores live in
    ``billing_kernel.db`` (in-memory and SQLAlchemy).

Architecture position:
    Kernel > Domain -- interfaces only, zero I/O.

Invariants enforced (by every implementation):
    - A transaction commits only on clean exit of its context manager.
      On exception, nothing it wrote is observable.
    - At commit, if any counter read or written inside the transaction was
      changed by another committed transaction, the commit fails with
      WriteConflictError and nothing is written.
    - A claim key can be held by at most one committed document.  Creating
      a document whose claim is already held raises DuplicateDocumentError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from contextlib import AbstractContextManager
from dataclasses import dataclass, replace
from typing import Any


@dataclass(frozen=True)
class CounterRecord:
    """
    Persisted state of one counter series.

    ``version`` is 0 for a record that has never been written.
    """
    series: str
    next_value: int
    prefix: str
    padding: int = 4
    version: int = 0

    def advanced(self) -> CounterRecord:
        """The record after one allocation."""
        return replace(self, next_value=self.next_value + 1)


class StoreTransaction(ABC):
    """A unit of work against a TransactionalStore."""

    @abstractmethod
    def get_counter(self, series: str) -> CounterRecord | None:
        """Read a counter, registering it for conflict detection."""

    @abstractmethod
    def put_counter(self, record: CounterRecord) -> None:
        """Stage a counter write; applied at commit."""

    @abstractmethod
    def create_document(
        self,
        collection: str,
        record: Mapping[str, Any],
        claims: Iterable[str] = (),
    ) -> str:
        """Stage a new document; returns its id."""


class TransactionalStore(ABC):
    """Counter store + document store."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager[StoreTransaction]:
        """Open a transaction; commit on clean exit, discard on exception."""

    @abstractmethod
    def get_document(self, collection: str, document_id: str) -> dict[str, Any] | None:
        ...

    @abstractmethod
    def list_documents(self, collection: str) -> list[dict[str, Any]]:
        ...

    def get(self, series: str) -> CounterRecord | None:
        with self.transaction() as txn:
            return txn.get_counter(series)

    def transactional_update(
        self,
        series: str,
        fn: Callable[[CounterRecord | None], CounterRecord],
    ) -> CounterRecord:
        """Apply ``fn`` to the current counter atomically; one attempt."""
        with self.transaction() as txn:
            updated = fn(txn.get_counter(series))
            txn.put_counter(updated)
        return updated

