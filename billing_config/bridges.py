"""
Config -> Kernel Bridges.

Functions that convert a BillingConfig into kernel-compatible inputs.
They live in billing_config (the producer) because the kernel must never
import billing_config.

Usage:
    from billing_config import get_active_config
    from billing_config.bridges import build_document_assembler

    config = get_active_config("billing.yaml")
    assembler = build_document_assembler(config, store)
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from billing_config.schema import BillingConfig
from billing_kernel.domain.clock import Clock
from billing_kernel.domain.numbering import SeriesDefinition, SeriesRegistry
from billing_kernel.domain.payment_plan import PaymentPlan, create_payment_plan
from billing_kernel.domain.store import TransactionalStore
from billing_kernel.services.document_assembler import DocumentAssembler
from billing_kernel.services.sequence_service import SequenceAllocator


def build_series_registry(config: BillingConfig) -> SeriesRegistry:
    return SeriesRegistry(
        SeriesDefinition(
            name=s.name,
            prefix=s.prefix,
            collection=s.collection,
            padding=s.padding,
            start_value=s.start_value,
        )
        for s in config.series
    )


def build_sequence_allocator(
    config: BillingConfig,
    store: TransactionalStore,
) -> SequenceAllocator:
    return SequenceAllocator(
        store,
        build_series_registry(config),
        max_attempts=config.allocation_max_attempts,
        backoff_seconds=config.allocation_backoff_seconds,
    )


def build_document_assembler(
    config: BillingConfig,
    store: TransactionalStore,
    clock: Clock | None = None,
) -> DocumentAssembler:
    return DocumentAssembler(
        build_sequence_allocator(config, store),
        clock,
        default_due_term=config.default_due_term,
        default_tax_rate=config.default_tax_rate,
    )


def build_payment_plan(
    config: BillingConfig,
    plan_total: Decimal,
    installment_count: int,
    start_date: date,
    frequency: str | None = None,
    created_at: datetime | None = None,
) -> PaymentPlan:
    """Create a plan within the configured installment limits."""
    settings = config.payment_plans
    return create_payment_plan(
        plan_total,
        installment_count,
        frequency or settings.default_frequency,
        start_date,
        created_at,
        min_installments=settings.min_installments,
        max_installments=settings.max_installments,
    )
