"""Database layer - engine, declarative base, column types and stores."""

from billing_kernel.db.base import Base
from billing_kernel.db.engine import create_tables, get_engine, get_session
from billing_kernel.db.types import Sequence, ShortCode, coerce_amount, round_money

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "Sequence",
    "ShortCode",
    "coerce_amount",
    "round_money",
]
