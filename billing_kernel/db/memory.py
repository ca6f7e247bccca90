"""
Module: billing_kernel.db.memory
Responsibility: Mutex-guarded, versioned in-memory TransactionalStore for
    single-process deployments and tests.
Architecture position: Kernel > DB.  Implements the domain store contract;
    imported by services/ callers and tests, never by domain/.

Invariants enforced:
    - Optimistic concurrency: a transaction records the version of every
      counter it reads and, under the store lock at commit, validates the
      ones it writes.  Any mismatch raises WriteConflictError and nothing
      is applied (compare-and-swap of the whole write set).  A transaction
      that only reads counters always commits.
    - Read-your-writes inside a transaction.
    - Documents and claims become visible only on successful commit.
    - Stored documents are deep copies; callers cannot mutate store state.

Failure modes:
    - WriteConflictError when a written counter changed since it was read.
    - DuplicateDocumentError when a claim key is already held.
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import replace
from typing import Any
from uuid import uuid4

from billing_kernel.domain.store import CounterRecord, StoreTransaction, TransactionalStore
from billing_kernel.exceptions import DuplicateDocumentError, WriteConflictError
from billing_kernel.logging_config import get_logger

logger = get_logger("db.memory")


class _MemoryTransaction(StoreTransaction):
    def __init__(self, store: InMemoryStore):
        self._store = store
        self.read_versions: dict[str, int] = {}
        self.counter_writes: dict[str, CounterRecord] = {}
        self.documents: list[tuple[str, str, dict[str, Any]]] = []
        self.claims: dict[str, tuple[str, str]] = {}

    def get_counter(self, series: str) -> CounterRecord | None:
        if series in self.counter_writes:
            return self.counter_writes[series]
        record = self._store._read_committed(series)
        self.read_versions.setdefault(series, record.version if record else 0)
        return record

    def put_counter(self, record: CounterRecord) -> None:
        self.read_versions.setdefault(record.series, record.version)
        self.counter_writes[record.series] = record

    def create_document(
        self,
        collection: str,
        record: Mapping[str, Any],
        claims: Iterable[str] = (),
    ) -> str:
        document_id = str(uuid4())
        for claim in claims:
            if claim in self.claims or self._store._claim_holder(claim) is not None:
                raise DuplicateDocumentError(collection, claim)
            self.claims[claim] = (collection, document_id)
        payload = copy.deepcopy(dict(record))
        payload["id"] = document_id
        self.documents.append((collection, document_id, payload))
        return document_id


class InMemoryStore(TransactionalStore):
    """
    TransactionalStore backed by dictionaries and a single lock.

    The lock is held only while reading a committed value and while
    validating and applying a commit, so transactions interleave freely
    and conflicts are detected, not prevented.
    """

    def __init__(self, counters: Iterable[CounterRecord] = ()):
        self._lock = threading.Lock()
        self._counters: dict[str, CounterRecord] = {c.series: c for c in counters}
        self._documents: dict[str, dict[str, dict[str, Any]]] = {}
        self._claims: dict[str, tuple[str, str]] = {}

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        txn = _MemoryTransaction(self)
        try:
            yield txn
        except Exception:
            logger.warning(
                "transaction_rolled_back",
                extra={"staged_counters": list(txn.counter_writes)},
            )
            raise
        self._commit(txn)

    def get_document(self, collection: str, document_id: str) -> dict[str, Any] | None:
        with self._lock:
            document = self._documents.get(collection, {}).get(document_id)
            return copy.deepcopy(document) if document is not None else None

    def list_documents(self, collection: str) -> list[dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(d) for d in self._documents.get(collection, {}).values()]

    def _read_committed(self, series: str) -> CounterRecord | None:
        with self._lock:
            return self._counters.get(series)

    def _claim_holder(self, claim: str) -> tuple[str, str] | None:
        with self._lock:
            return self._claims.get(claim)

    def _commit(self, txn: _MemoryTransaction) -> None:
        with self._lock:
            # Only written counters are validated; plain reads never conflict.
            for series in txn.counter_writes:
                expected = txn.read_versions[series]
                current = self._counters.get(series)
                if (current.version if current else 0) != expected:
                    logger.debug(
                        "transaction_conflict",
                        extra={"conflict_series": series, "expected_version": expected},
                    )
                    raise WriteConflictError("sequence_counter", series)
            for claim, (collection, _) in txn.claims.items():
                if claim in self._claims:
                    raise DuplicateDocumentError(collection, claim)

            for series, record in txn.counter_writes.items():
                self._counters[series] = replace(
                    record, version=txn.read_versions[series] + 1
                )
            for collection, document_id, payload in txn.documents:
                self._documents.setdefault(collection, {})[document_id] = payload
            self._claims.update(txn.claims)

        logger.debug(
            "transaction_committed",
            extra={
                "counters": list(txn.counter_writes),
                "documents": len(txn.documents),
            },
        )
