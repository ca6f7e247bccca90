"""
SequenceAllocator -- Atomic, gapless document numbering.

Responsibility:
    Allocates the next number in a named series (invoice, quote, job,
    purchase order, credit note) through a single read-modify-write on the
    counter store, formats it as ``PREFIX-0007`` and retries the whole
    transaction on a detected write conflict.

Architecture position:
    Kernel > Services -- the one effectful operation of the core.  Used by
    DocumentAssembler, which allocates inside the same transaction that
    persists the document.

Invariants enforced:
    - Under K concurrent allocations in one series the raw values are
      exactly N..N+K-1: no duplicates, no gaps.
    - A transaction that does not commit consumes no number.  Retries
      re-run the whole unit of work from the top; a partial retry could
      issue a number that is then discarded.
    - Stored prefix and padding are preserved on every allocation.

Failure modes:
    - UnknownSeriesError: series not configured.
    - ConcurrencyExhaustedError: still conflicting after max_attempts.
    - InvalidCounterUpdateError: configure_series() would move the
      counter backwards or set padding below 1.

Audit relevance:
    Invoice numbers must be gapless.  A failed save is reported to the
    user; a silently skipped number is not acceptable.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from dataclasses import replace
from typing import TypeVar

from billing_kernel.domain.numbering import (
    AllocatedNumber,
    SeriesDefinition,
    SeriesRegistry,
    format_document_number,
)
from billing_kernel.domain.store import CounterRecord, StoreTransaction, TransactionalStore
from billing_kernel.exceptions import (
    ConcurrencyExhaustedError,
    InvalidCounterUpdateError,
    WriteConflictError,
)
from billing_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.sequence")

T = TypeVar("T")


class SequenceAllocator:
    """
    Allocates formatted document numbers from a TransactionalStore.

    Contract:
        ``allocate(series)`` either returns a number that is durably
        committed or raises; it never reports success for a number whose
        transaction did not commit.

    Usage:
        allocator = SequenceAllocator(store)
        allocated = allocator.allocate("invoice")   # INV-0007, raw 7
    """

    def __init__(
        self,
        store: TransactionalStore,
        registry: SeriesRegistry | None = None,
        max_attempts: int = 5,
        backoff_seconds: float = 0.01,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self._store = store
        self._registry = registry or SeriesRegistry()
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._sleep = sleep

    @property
    def registry(self) -> SeriesRegistry:
        return self._registry

    @property
    def store(self) -> TransactionalStore:
        return self._store

    def _default_record(self, definition: SeriesDefinition) -> CounterRecord:
        return CounterRecord(
            series=definition.name,
            next_value=definition.start_value,
            prefix=definition.prefix,
            padding=definition.padding,
        )

    def _current(self, txn: StoreTransaction, series: str) -> CounterRecord:
        definition = self._registry.get(series)
        return txn.get_counter(series) or self._default_record(definition)

    def allocate_in(self, txn: StoreTransaction, series: str) -> AllocatedNumber:
        """
        Allocate inside a caller-owned transaction.

        No retry here: the caller's transaction is the unit that retries
        (see run_in_transaction).
        """
        definition = self._registry.get(series)
        current = self._current(txn, series)
        value = current.next_value
        number = format_document_number(
            current.prefix or definition.prefix, value, current.padding
        )
        txn.put_counter(current.advanced())

        logger.debug(
            "sequence_allocated",
            extra={"series": series, "number": number, "value": value},
        )
        return AllocatedNumber(series=series, number=number, raw_value=value)

    def allocate(self, series: str) -> AllocatedNumber:
        """Allocate the next number in ``series`` in its own transaction."""
        with LogContext.bind(series=series):
            return self.run_in_transaction(
                lambda txn: self.allocate_in(txn, series), series=series
            )

    def run_in_transaction(
        self,
        work: Callable[[StoreTransaction], T],
        series: str = "*",
    ) -> T:
        """
        Run ``work(txn)`` in a fresh transaction, retrying the whole unit
        on WriteConflictError.

        Postconditions:
            - Returns the result of the first attempt that committed.
            - Any other exception propagates immediately, nothing written.

        Raises:
            ConcurrencyExhaustedError: every attempt conflicted.
        """
        for attempt in range(1, self._max_attempts + 1):
            try:
                with self._store.transaction() as txn:
                    result = work(txn)
                return result
            except WriteConflictError as exc:
                logger.warning(
                    "sequence_conflict_retry",
                    extra={
                        "series": series,
                        "attempt": attempt,
                        "max_attempts": self._max_attempts,
                        "entity_id": exc.entity_id,
                    },
                )
                if attempt < self._max_attempts and self._backoff_seconds > 0:
                    # Linear backoff with jitter so colliding writers spread out.
                    self._sleep(self._backoff_seconds * attempt * random.uniform(0.5, 1.5))

        logger.error(
            "sequence_attempts_exhausted",
            extra={"series": series, "attempts": self._max_attempts},
        )
        raise ConcurrencyExhaustedError(series, self._max_attempts)

    def peek(self, series: str) -> CounterRecord:
        """Current counter for ``series``; defaults if it was never written."""
        definition = self._registry.get(series)
        record = self._store.get(series) or self._default_record(definition)
        if not record.prefix:
            record = replace(record, prefix=definition.prefix)
        return record

    def configure_series(
        self,
        series: str,
        prefix: str | None = None,
        padding: int | None = None,
        next_value: int | None = None,
    ) -> CounterRecord:
        """
        Change the prefix, padding or next number of a series.

        ``next_value`` may move forward (e.g. to continue numbering from a
        previous system) but never backwards, which would reissue numbers.
        """
        if padding is not None and padding < 1:
            raise InvalidCounterUpdateError(series, f"padding must be >= 1, got {padding}")

        def _update(txn: StoreTransaction) -> CounterRecord:
            current = self._current(txn, series)
            if next_value is not None and next_value < current.next_value:
                raise InvalidCounterUpdateError(
                    series,
                    f"next value {next_value} is below current {current.next_value}",
                )
            updated = replace(
                current,
                prefix=current.prefix if prefix is None else prefix.strip(),
                padding=current.padding if padding is None else padding,
                next_value=current.next_value if next_value is None else next_value,
            )
            txn.put_counter(updated)
            return updated

        updated = self.run_in_transaction(_update, series=series)
        logger.info(
            "counter_configured",
            extra={
                "series": series,
                "prefix": updated.prefix,
                "padding": updated.padding,
                "next_value": updated.next_value,
            },
        )
        return updated
