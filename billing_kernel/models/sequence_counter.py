"""
Module: billing_kernel.models.sequence_counter
Responsibility: ORM persistence for per-series document counters (invoice,
    quote, job, purchase order, credit note).
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/ or domain/.

Invariants enforced:
    - One row per series (unique ``name``).
    - ``version`` is managed by SQLAlchemy (``version_id_col``): every
      UPDATE carries ``WHERE version = :expected``, so a write based on a
      stale read fails with StaleDataError instead of overwriting.

Failure modes:
    - IntegrityError when two transactions create the same series row.
    - StaleDataError when the row changed after it was read.
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import Base
from billing_kernel.db.types import Sequence, ShortCode


class SequenceCounter(Base):
    """
    Counter row for one numbering series.

    ``next_value`` is the raw value the next allocation will receive.
    """

    __tablename__ = "sequence_counters"

    # Series name (e.g., "invoice", "quote")
    name: Mapped[ShortCode] = mapped_column(
        nullable=False,
        unique=True,
    )

    next_value: Mapped[Sequence] = mapped_column(
        nullable=False,
        default=1,
    )

    # Empty prefix means "use the series default"
    prefix: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="",
    )

    padding: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=4,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.name}: next={self.next_value} v{self.version}>"
