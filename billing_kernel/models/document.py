"""
Module: billing_kernel.models.document
Responsibility: ORM persistence for assembled documents and their unique
    claims.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - A document row is written in the same transaction as the counter
      update that numbered it.
    - ``document_claims.claim_key`` is unique: a job covered by one
      committed invoice cannot be claimed by another.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import Base
from billing_kernel.db.types import ShortCode


class DocumentRecord(Base):
    """A persisted quote, invoice, job, purchase order or credit note."""

    __tablename__ = "billing_documents"

    __table_args__ = (
        Index("idx_document_collection_number", "collection", "number"),
    )

    # Logical collection (e.g., "invoices", "jobs")
    collection: Mapped[ShortCode] = mapped_column(
        nullable=False,
    )

    # Formatted document number (e.g., "INV-0007"); None for unnumbered records
    number: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    payload: Mapped[dict[str, Any]] = mapped_column(nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
    )


class DocumentClaim(Base):
    """Unique key held by one document (e.g., ``job:<id>`` for an invoice)."""

    __tablename__ = "document_claims"

    claim_key: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        unique=True,
    )

    document_id: Mapped[UUID] = mapped_column(
        ForeignKey("billing_documents.id"),
        nullable=False,
    )
