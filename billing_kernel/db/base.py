"""
Module: billing_kernel.db.base
Responsibility: Declarative base shared by the counter and document tables.
Architecture position: Kernel > DB.  Imported by every model; imports only
    db/types.py.

Invariants enforced:
    - Every row has a uuid4 primary key (SQLAlchemy ``Uuid``: native on
      PostgreSQL, CHAR(32) on SQLite).
    - Timestamps are timezone-aware; counter values are BigInteger.
"""

from datetime import datetime
from typing import Any, ClassVar
from uuid import UUID, uuid4

from sqlalchemy import JSON, BigInteger, DateTime, String, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from billing_kernel.db.types import Sequence, ShortCode


class Base(DeclarativeBase):
    """Declarative base: uuid primary key plus the shared type map."""

    type_annotation_map: ClassVar[dict] = {
        UUID: Uuid(),
        datetime: DateTime(timezone=True),
        dict[str, Any]: JSON,
        Sequence: BigInteger,
        ShortCode: String(50),
    }

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
