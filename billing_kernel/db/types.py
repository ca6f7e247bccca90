"""
Module: billing_kernel.db.types
Responsibility: Annotated column aliases and utility functions for money.
    Centralizes precision, rounding, and lenient numeric coercion so that
    every model, domain function and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    and services/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Money is always Decimal, quantized to MONEY_DECIMAL_PLACES (2) at every
      boundary.  round_money() is the ONLY sanctioned rounding function.
    - coerce_amount() is the ONLY sanctioned lenient parser.  Garbage,
      non-finite and negative inputs become zero; nothing raises.
    CRITICAL: Floats are converted through str() so 0.1 stays 0.1.

Failure modes:
    - None.  coerce_amount() never fails.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated, Any

from sqlalchemy import BigInteger, String

# Monotonic sequence number for document numbering
Sequence = Annotated[int, BigInteger]

# Short identifier strings (series names, prefixes, collections)
ShortCode = Annotated[str, String(50)]

# Rounding constants
MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")

# Largest value coerce_amount accepts from a draft field
MAX_DRAFT_AMOUNT = Decimal("1e9")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for money in the kernel.

    Preconditions: value is a Decimal.
    Postconditions: Returns value quantized to the specified decimal places
        using the specified rounding mode.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def coerce_amount(value: Any) -> Decimal:
    """
    Leniently convert a draft field into a non-negative Decimal.

    Drafts are edited live and are often half-filled, so this never
    raises: None, empty or non-numeric strings, booleans, NaN, infinities,
    negative numbers and anything above MAX_DRAFT_AMOUNT all yield
    ``Decimal("0")``.

    Postconditions:
        - Returns a finite Decimal >= 0 (not rounded).
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        candidate = value
    elif isinstance(value, (int, float)):
        candidate = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return ZERO
        try:
            candidate = Decimal(text)
        except InvalidOperation:
            return ZERO
    else:
        return ZERO

    if not candidate.is_finite() or not ZERO <= candidate <= MAX_DRAFT_AMOUNT:
        return ZERO
    return candidate

