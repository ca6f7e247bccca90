"""
Numbering -- Series definitions and human-readable document numbers.

Responsibility:
    Declares which counter series exist (invoice, quote, job, purchase
    order, credit note), the default prefix/padding/collection of each,
    and how a raw counter value is formatted for display.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The allocator in
    services/ owns the effectful read-modify-write; this module only
    describes and formats.

Invariants enforced:
    - A series name maps to exactly one SeriesDefinition.
    - Formatting is ``"{prefix}-{value zero-padded to padding}"``.  Values
      wider than the padding are never truncated.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from billing_kernel.exceptions import UnknownSeriesError


@dataclass(frozen=True)
class SeriesDefinition:
    """Static description of one counter series."""
    name: str
    prefix: str
    collection: str
    padding: int = 4
    start_value: int = 1

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("series name must not be empty")
        if self.padding < 1:
            raise ValueError(f"padding must be >= 1, got {self.padding}")
        if self.start_value < 1:
            raise ValueError(f"start_value must be >= 1, got {self.start_value}")


@dataclass(frozen=True)
class AllocatedNumber:
    """Result of a successful allocation."""
    series: str
    number: str
    raw_value: int


DEFAULT_SERIES: tuple[SeriesDefinition, ...] = (
    SeriesDefinition("invoice", "INV", "invoices"),
    SeriesDefinition("quote", "QU", "quotes"),
    SeriesDefinition("job", "JOB", "jobs"),
    SeriesDefinition("purchaseOrder", "PO", "purchaseOrders"),
    SeriesDefinition("creditNote", "CN", "creditNotes"),
)


def format_document_number(prefix: str, value: int, padding: int) -> str:
    """
    Format a raw counter value for display.

    Example:
        format_document_number("INV", 7, 4) -> "INV-0007"
    """
    return f"{prefix}-{str(value).zfill(padding)}"


class SeriesRegistry:
    """Lookup table of configured series, keyed by name."""

    def __init__(self, definitions: Iterable[SeriesDefinition] = DEFAULT_SERIES):
        self._definitions: dict[str, SeriesDefinition] = {}
        for definition in definitions:
            if definition.name in self._definitions:
                raise ValueError(f"duplicate series: {definition.name}")
            self._definitions[definition.name] = definition

    def get(self, name: str) -> SeriesDefinition:
        try:
            return self._definitions[name]
        except KeyError:
            raise UnknownSeriesError(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __iter__(self) -> Iterator[SeriesDefinition]:
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._definitions)
