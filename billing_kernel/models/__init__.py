"""ORM models for the billing kernel."""

from billing_kernel.models.document import DocumentClaim, DocumentRecord
from billing_kernel.models.sequence_counter import SequenceCounter

__all__ = [
    "DocumentClaim",
    "DocumentRecord",
    "SequenceCounter",
]
