"""
Documents -- Immutable value objects for priced quotes and invoices.

Responsibility:
    Explicit, tagged records for line items, discounts, priced documents
    and the totals derived from them.  Drafts arriving from collaborators
    are converted into these types by ``domain.sanitize``; nothing else in
    the kernel reads loosely-typed document shapes.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - All money and quantity fields are Decimal >= 0 (enforced on
      construction; the sanitizer coerces before constructing).
    - TEXT_BLOCK items never carry pricing into totals.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from billing_kernel.db.types import ZERO


class LineItemKind(Enum):
    """Line item kinds."""
    CHARGE = "charge"
    TEXT_BLOCK = "textBlock"


class DiscountType(Enum):
    """How a discount value is interpreted."""
    AMOUNT = "amount"
    PERCENT = "percent"


def _require_non_negative(name: str, value: Decimal) -> None:
    if not isinstance(value, Decimal):
        raise TypeError(f"{name} must be Decimal, got {type(value).__name__}")
    if not value.is_finite() or value < ZERO:
        raise ValueError(f"{name} must be a finite, non-negative Decimal: {value}")


@dataclass(frozen=True)
class DiscountSpec:
    """A discount applied per line or once at document level."""
    type: DiscountType = DiscountType.AMOUNT
    value: Decimal = ZERO

    def __post_init__(self) -> None:
        _require_non_negative("discount value", self.value)

    @classmethod
    def none(cls) -> DiscountSpec:
        return cls()

    @classmethod
    def percent(cls, value: Decimal | str | int) -> DiscountSpec:
        return cls(DiscountType.PERCENT, Decimal(str(value)))

    @classmethod
    def amount(cls, value: Decimal | str | int) -> DiscountSpec:
        return cls(DiscountType.AMOUNT, Decimal(str(value)))

    def amount_off(self, base: Decimal) -> Decimal:
        """Discount taken from ``base`` (unrounded, may exceed base)."""
        if self.type is DiscountType.PERCENT:
            return base * self.value / Decimal(100)
        return self.value

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "value": str(self.value)}


@dataclass(frozen=True)
class LineItem:
    """A single line on a quote, job or invoice."""
    kind: LineItemKind = LineItemKind.CHARGE
    name: str = ""
    description: str = ""
    quantity: Decimal = ZERO
    unit_price: Decimal = ZERO
    unit_cost: Decimal = ZERO
    optional: bool = False
    line_discount: DiscountSpec = field(default_factory=DiscountSpec)
    service_date: date | None = None

    def __post_init__(self) -> None:
        _require_non_negative("quantity", self.quantity)
        _require_non_negative("unit_price", self.unit_price)
        _require_non_negative("unit_cost", self.unit_cost)

    @property
    def is_billable(self) -> bool:
        """Contributes to totals: a charge that is not optional."""
        return self.kind is LineItemKind.CHARGE and not self.optional

    @property
    def line_subtotal(self) -> Decimal:
        return self.quantity * self.unit_price

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "name": self.name,
            "description": self.description,
            "qty": str(self.quantity),
            "price": str(self.unit_price),
            "unitCost": str(self.unit_cost),
            "isOptional": self.optional,
            "lineDiscount": self.line_discount.to_dict(),
            "serviceDate": self.service_date.isoformat() if self.service_date else None,
        }


@dataclass(frozen=True)
class PricedDocument:
    """The pricing inputs of a quote or invoice."""
    line_items: tuple[LineItem, ...] = ()
    document_discount: DiscountSpec = field(default_factory=DiscountSpec)
    tax_rate_percent: Decimal = ZERO

    def __post_init__(self) -> None:
        _require_non_negative("tax_rate_percent", self.tax_rate_percent)

    @property
    def billable_items(self) -> tuple[LineItem, ...]:
        return tuple(item for item in self.line_items if item.is_billable)


@dataclass(frozen=True)
class Totals:
    """
    Money derived from a PricedDocument.

    All fields are quantized to cents.  ``total`` is always
    ``after_all_discounts + tax_amount`` exactly.
    """
    subtotal_before_discount: Decimal
    line_discount_total: Decimal
    discounted_subtotal: Decimal
    document_discount_amount: Decimal
    after_all_discounts: Decimal
    tax_amount: Decimal
    total: Decimal
    original_total: Decimal
    total_savings: Decimal

    @classmethod
    def zero(cls) -> Totals:
        z = Decimal("0.00")
        return cls(z, z, z, z, z, z, z, z, z)

    def to_dict(self) -> dict[str, str]:
        return {
            "subtotalBeforeDiscount": str(self.subtotal_before_discount),
            "lineDiscountTotal": str(self.line_discount_total),
            "discountedSubtotal": str(self.discounted_subtotal),
            "documentDiscountAmount": str(self.document_discount_amount),
            "afterAllDiscounts": str(self.after_all_discounts),
            "taxAmount": str(self.tax_amount),
            "total": str(self.total),
            "originalTotal": str(self.original_total),
            "totalSavings": str(self.total_savings),
        }


@dataclass(frozen=True)
class DocumentDraft:
    """A sanitized draft: pricing plus the descriptive fields the kernel keeps."""
    pricing: PricedDocument = field(default_factory=PricedDocument)
    client_id: str | None = None
    title: str = ""
    status: str = "Draft"
    issue_date: date | None = None
    due_term: str | None = None
    job_ids: tuple[str, ...] = ()
    quote_id: str | None = None
