"""
Draft sanitization -- the single boundary where loose drafts become typed.

Responsibility:
    Converts collaborator-supplied drafts (plain dicts from forms, imports
    or other services) into ``LineItem`` / ``PricedDocument`` /
    ``DocumentDraft`` values.  All lenient numeric coercion happens here,
    through ``coerce_amount``; downstream code can assume well-typed input.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Unknown fields are dropped, never propagated.
    - Numbers are Decimal >= 0; garbage becomes zero.  Percentages (tax
      rate, percent discounts) are capped at 100.
    - Dates are ``datetime.date`` or None; unparseable dates become None.

Failure modes:
    - InvalidDraftError when the draft itself is not a mapping.  Individual
      bad line items (non-mappings) are skipped.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from billing_kernel.db.types import coerce_amount
from billing_kernel.domain.documents import (
    DiscountSpec,
    DiscountType,
    DocumentDraft,
    LineItem,
    LineItemKind,
    PricedDocument,
)
from billing_kernel.exceptions import InvalidDraftError

_HUNDRED = Decimal(100)

_TEXT_KINDS = frozenset({"text", "textblock", "text_block"})


def _pick(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """First present, non-None value among camelCase/snake_case aliases."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return default


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def parse_date(value: Any) -> date | None:
    """Lenient ISO-8601 date parsing: date, datetime or string; else None."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            return None
    return None


def _percent(value: Any) -> Decimal:
    """Lenient percentage, capped at 100."""
    return min(coerce_amount(value), _HUNDRED)


def sanitize_discount(raw_type: Any, raw_value: Any) -> DiscountSpec:
    """Build a DiscountSpec; unknown types are treated as a fixed amount."""
    if _text(raw_type).lower() == DiscountType.PERCENT.value:
        return DiscountSpec(DiscountType.PERCENT, _percent(raw_value))
    return DiscountSpec(DiscountType.AMOUNT, coerce_amount(raw_value))


def _sanitize_nested_discount(raw: Any) -> DiscountSpec | None:
    if isinstance(raw, Mapping):
        return sanitize_discount(raw.get("type"), raw.get("value"))
    return None


def sanitize_line_item(raw: Mapping[str, Any]) -> LineItem:
    """Convert one raw line item into a LineItem."""
    kind_text = _text(_pick(raw, "type", "kind")).lower()
    kind = LineItemKind.TEXT_BLOCK if kind_text in _TEXT_KINDS else LineItemKind.CHARGE

    line_discount = _sanitize_nested_discount(_pick(raw, "lineDiscount", "line_discount"))
    if line_discount is None:
        line_discount = sanitize_discount(
            _pick(raw, "discountType", "discount_type"),
            _pick(raw, "discountValue", "discount_value"),
        )

    return LineItem(
        kind=kind,
        name=_text(_pick(raw, "name", "description")),
        description=_text(_pick(raw, "description", "note")),
        quantity=coerce_amount(_pick(raw, "qty", "quantity")),
        unit_price=coerce_amount(_pick(raw, "price", "unitPrice", "unit_price")),
        unit_cost=coerce_amount(_pick(raw, "unitCost", "unit_cost", "cost")),
        optional=_flag(_pick(raw, "isOptional", "optional", default=False)),
        line_discount=line_discount,
        service_date=parse_date(_pick(raw, "serviceDate", "service_date")),
    )


def sanitize_line_items(raw_items: Any) -> tuple[LineItem, ...]:
    """Sanitize a list of raw line items, skipping entries that are not mappings."""
    if isinstance(raw_items, (str, bytes, Mapping)) or not isinstance(raw_items, Iterable):
        return ()
    return tuple(
        item if isinstance(item, LineItem) else sanitize_line_item(item)
        for item in raw_items
        if isinstance(item, (Mapping, LineItem))
    )


def sanitize_priced_document(raw: Mapping[str, Any]) -> PricedDocument:
    """
    Extract the pricing inputs of a draft.

    The document discount is read from a nested ``discount`` object, else
    the legacy ``quoteDiscountType``/``quoteDiscountValue`` keys, else
    ``discountType``/``discountValue``.
    """
    if not isinstance(raw, Mapping):
        raise InvalidDraftError(f"expected a mapping, got {type(raw).__name__}")

    document_discount = _sanitize_nested_discount(
        _pick(raw, "discount", "documentDiscount", "document_discount")
    )
    if document_discount is None:
        document_discount = sanitize_discount(
            _pick(raw, "quoteDiscountType", "discountType", "discount_type"),
            _pick(raw, "quoteDiscountValue", "discountValue", "discount_value"),
        )

    return PricedDocument(
        line_items=sanitize_line_items(_pick(raw, "lineItems", "line_items")),
        document_discount=document_discount,
        tax_rate_percent=_percent(_pick(raw, "taxRate", "tax_rate", "taxRatePercent")),
    )


def sanitize_draft(raw: Mapping[str, Any]) -> DocumentDraft:
    """Convert a full draft (pricing plus descriptive fields) into a DocumentDraft."""
    pricing = sanitize_priced_document(raw)

    job_ids = _pick(raw, "jobIds", "job_ids", default=())
    if isinstance(job_ids, (str, bytes)) or not isinstance(job_ids, Iterable):
        job_ids = ()
    single_job = _pick(raw, "jobId", "job_id")
    ids = [str(job_id) for job_id in job_ids if job_id]
    if single_job and str(single_job) not in ids:
        ids.insert(0, str(single_job))

    client_id = _pick(raw, "clientId", "client_id")
    quote_id = _pick(raw, "quoteId", "quote_id")
    due_term = _pick(raw, "dueTerm", "due_term")

    return DocumentDraft(
        pricing=pricing,
        client_id=str(client_id) if client_id else None,
        title=_text(_pick(raw, "title", "subject")),
        status=_text(_pick(raw, "status")) or "Draft",
        issue_date=parse_date(_pick(raw, "issueDate", "issue_date")),
        due_term=_text(due_term) or None,
        job_ids=tuple(ids),
        quote_id=str(quote_id) if quote_id else None,
    )
