"""
Module: billing_kernel.db.store
Responsibility: TransactionalStore backed by SQLAlchemy (PostgreSQL in
    production, SQLite for local use and tests).
Architecture position: Kernel > DB.  Implements the domain store contract
    over the models in billing_kernel.models.

Invariants enforced:
    - One SQLAlchemy session per store transaction; commit on clean exit,
      rollback on any exception.
    - Counter rows are read with ``SELECT ... FOR UPDATE`` (serializing
      writers on PostgreSQL) and written through ``version_id_col``, so a
      backend without row locks still detects a stale write at flush.
    - Claims are checked before insert; a claim won by a concurrent writer
      surfaces as a unique violation at commit and is retried like any
      other conflict, after which the pre-check reports the duplicate.

Failure modes:
    - WriteConflictError: StaleDataError, or IntegrityError at flush/commit
      (concurrent counter creation or claim race).
    - DuplicateDocumentError: claim already held by a committed document.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from billing_kernel.domain.store import CounterRecord, StoreTransaction, TransactionalStore
from billing_kernel.exceptions import DuplicateDocumentError, WriteConflictError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.document import DocumentClaim, DocumentRecord
from billing_kernel.models.sequence_counter import SequenceCounter

logger = get_logger("db.store")


def _to_record(row: SequenceCounter) -> CounterRecord:
    return CounterRecord(
        series=row.name,
        next_value=row.next_value,
        prefix=row.prefix,
        padding=row.padding,
        version=row.version,
    )


class _SqlAlchemyTransaction(StoreTransaction):
    def __init__(self, session: Session):
        self._session = session
        self._rows: dict[str, SequenceCounter] = {}

    def get_counter(self, series: str) -> CounterRecord | None:
        row = self._rows.get(series)
        if row is None:
            row = self._session.execute(
                select(SequenceCounter)
                .where(SequenceCounter.name == series)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if row is None:
                return None
            self._rows[series] = row
        return _to_record(row)

    def put_counter(self, record: CounterRecord) -> None:
        row = self._rows.get(record.series)
        if row is None and record.version:
            # Caller holds a record read in another transaction.
            row = self._session.execute(
                select(SequenceCounter).where(SequenceCounter.name == record.series)
            ).scalar_one_or_none()
            if row is None or row.version != record.version:
                raise WriteConflictError("sequence_counter", record.series)
            self._rows[record.series] = row

        if row is None:
            row = SequenceCounter(
                name=record.series,
                next_value=record.next_value,
                prefix=record.prefix,
                padding=record.padding,
            )
            self._session.add(row)
            self._rows[record.series] = row
        else:
            if row.version != record.version:
                raise WriteConflictError("sequence_counter", record.series)
            row.next_value = record.next_value
            row.prefix = record.prefix
            row.padding = record.padding
        self._session.flush()

    def create_document(
        self,
        collection: str,
        record: Mapping[str, Any],
        claims: Iterable[str] = (),
    ) -> str:
        claims = list(claims)
        if claims:
            held = self._session.execute(
                select(DocumentClaim.claim_key).where(DocumentClaim.claim_key.in_(claims))
            ).scalars().first()
            if held is not None or len(set(claims)) != len(claims):
                raise DuplicateDocumentError(collection, held or claims[0])

        document_id = uuid4()
        payload = dict(record)
        payload["id"] = str(document_id)
        self._session.add(
            DocumentRecord(
                id=document_id,
                collection=collection,
                number=payload.get("number"),
                payload=payload,
            )
        )
        # Parent row first so the claim foreign keys resolve.
        self._session.flush()
        for claim in claims:
            self._session.add(DocumentClaim(claim_key=claim, document_id=document_id))
        self._session.flush()
        return str(document_id)


class SqlAlchemyStore(TransactionalStore):
    """
    TransactionalStore over a SQLAlchemy session factory.

    Usage:
        init_engine_from_url("sqlite:///billing.db")
        create_tables()
        store = SqlAlchemyStore(get_session_factory())
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        session = self._session_factory()
        try:
            try:
                yield _SqlAlchemyTransaction(session)
                session.commit()
            except (StaleDataError, IntegrityError) as exc:
                session.rollback()
                logger.warning(
                    "transaction_rolled_back",
                    extra={"reason": type(exc).__name__},
                )
                raise WriteConflictError("sequence_counter", "commit") from exc
            except Exception:
                session.rollback()
                logger.warning("transaction_rolled_back", exc_info=True)
                raise
            logger.debug("transaction_committed")
        finally:
            session.close()

    def get_document(self, collection: str, document_id: str) -> dict[str, Any] | None:
        try:
            key = UUID(str(document_id))
        except ValueError:
            return None
        with self._session_factory() as session:
            row = session.get(DocumentRecord, key)
            if row is None or row.collection != collection:
                return None
            return dict(row.payload)

    def list_documents(self, collection: str) -> list[dict[str, Any]]:
        with self._session_factory() as session:
            rows = session.execute(
                select(DocumentRecord)
                .where(DocumentRecord.collection == collection)
                .order_by(DocumentRecord.created_at, DocumentRecord.number)
            ).scalars().all()
            return [dict(row.payload) for row in rows]
