"""Services for the billing kernel (write side)."""

from billing_kernel.services.document_assembler import DocumentAssembler, PersistedDocument
from billing_kernel.services.sequence_service import SequenceAllocator

__all__ = [
    "DocumentAssembler",
    "PersistedDocument",
    "SequenceAllocator",
]
