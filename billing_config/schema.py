"""
BillingConfig schema.

Frozen dataclasses for the billing configuration.  YAML files are parsed
into these types by the loader; bridges translate them into kernel
inputs.  Validation happens in ``__post_init__`` and raises ValueError.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any

FREQUENCIES = frozenset({"weekly", "biweekly", "bi-weekly", "monthly"})


@dataclass(frozen=True)
class SeriesSettings:
    """Prefix, padding and starting value of one numbering series."""

    name: str
    prefix: str
    collection: str
    padding: int = 4
    start_value: int = 1

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("series name is required")
        if not self.collection:
            raise ValueError(f"series {self.name}: collection is required")
        if self.padding < 1:
            raise ValueError(f"series {self.name}: padding must be >= 1, got {self.padding}")
        if self.start_value < 1:
            raise ValueError(
                f"series {self.name}: start_value must be >= 1, got {self.start_value}"
            )


DEFAULT_SERIES_SETTINGS: tuple[SeriesSettings, ...] = (
    SeriesSettings("invoice", "INV", "invoices"),
    SeriesSettings("quote", "QU", "quotes"),
    SeriesSettings("job", "JOB", "jobs"),
    SeriesSettings("purchaseOrder", "PO", "purchaseOrders"),
    SeriesSettings("creditNote", "CN", "creditNotes"),
)


@dataclass(frozen=True)
class PaymentPlanSettings:
    """Limits for installment plans."""

    min_installments: int = 2
    max_installments: int = 12
    default_frequency: str = "monthly"

    def __post_init__(self) -> None:
        if self.min_installments < 2:
            raise ValueError(
                f"min_installments must be >= 2, got {self.min_installments}"
            )
        if self.max_installments < self.min_installments:
            raise ValueError(
                f"max_installments ({self.max_installments}) must be >= "
                f"min_installments ({self.min_installments})"
            )
        if self.default_frequency not in FREQUENCIES:
            raise ValueError(
                f"default_frequency must be one of {sorted(FREQUENCIES)}, "
                f"got {self.default_frequency!r}"
            )


@dataclass(frozen=True)
class BillingConfig:
    """Complete billing configuration."""

    series: tuple[SeriesSettings, ...] = DEFAULT_SERIES_SETTINGS
    default_due_term: str = "Due Today"
    default_tax_rate: Decimal = Decimal("0")
    allocation_max_attempts: int = 5
    allocation_backoff_seconds: float = 0.01
    payment_plans: PaymentPlanSettings = field(default_factory=PaymentPlanSettings)

    def __post_init__(self) -> None:
        names = [s.name for s in self.series]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate series: {', '.join(duplicates)}")
        if not self.default_due_term.strip():
            raise ValueError("default_due_term must not be empty")
        if not self.default_tax_rate.is_finite() or self.default_tax_rate < 0:
            raise ValueError(
                f"default_tax_rate must be a non-negative number, got {self.default_tax_rate}"
            )
        if self.allocation_max_attempts < 1:
            raise ValueError(
                f"allocation_max_attempts must be >= 1, got {self.allocation_max_attempts}"
            )
        if self.allocation_backoff_seconds < 0:
            raise ValueError(
                "allocation_backoff_seconds must be >= 0, "
                f"got {self.allocation_backoff_seconds}"
            )

    @classmethod
    def with_defaults(cls) -> BillingConfig:
        return cls()

    def get_series(self, name: str) -> SeriesSettings | None:
        for settings in self.series:
            if settings.name == name:
                return settings
        return None

    def to_dict(self) -> dict[str, Any]:
        """Canonical plain-data form (used for checksums)."""
        data = asdict(self)
        data["series"] = [asdict(s) for s in self.series]
        data["default_tax_rate"] = str(self.default_tax_rate)
        return data
