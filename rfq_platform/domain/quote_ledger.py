"""Admission, revision and withdrawal of supplier quotes on an RFQ.

Every function here mutates the aggregate it receives only after all of its
checks passed, so a rejected call leaves the RFQ untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List

from rfq_platform.domain.audit import ActivityEntry, record_activity
from rfq_platform.domain.eligibility import ensure_eligible
from rfq_platform.domain.rfq import OPEN_QUOTE_STATUSES, Quote, QuoteLineItem, RequestForQuote
from rfq_platform.domain.values import new_id, parse_datetime, parse_decimal
from rfq_platform.errors import NotFoundError, StateError, ValidationError


INVALID_LINE_ITEM = "InvalidLineItem"
WITHDRAWABLE_QUOTE_STATUSES = frozenset({"pending"}) | OPEN_QUOTE_STATUSES
MAX_TEXT_LENGTH = 2000


@dataclass(frozen=True)
class QuoteDraft:
    supplier_id: str
    items: List[QuoteLineItem] = field(default_factory=list)
    total_amount: Decimal | None = None
    currency: str | None = None
    valid_until: datetime | None = None
    terms: str | None = None
    notes: str | None = None


def _int_field(raw: Dict[str, Any], name: str, index: int) -> int:
    value = raw.get(name)
    if isinstance(value, bool):
        value = None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(
        code="number_invalid",
        details=f"items[{index}].{name} must be an integer",
        payload={"field": f"items[{index}].{name}"},
    )


def _optional_text(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if len(text) > MAX_TEXT_LENGTH:
        raise ValidationError(code="field_too_long", payload={"field": field_name})
    return text or None


def draft_from_payload(supplier_id: str, payload: Dict[str, Any]) -> QuoteDraft:
    """Build a QuoteDraft from a JSON body, rejecting values of the wrong type."""
    raw_items = payload.get("items")
    if not isinstance(raw_items, list):
        raise ValidationError(code="items_required", payload={"field": "items"})

    items: List[QuoteLineItem] = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(code="item_invalid", payload={"field": f"items[{index}]"})
        price = parse_decimal(raw.get("price"))
        if price is None:
            raise ValidationError(code="number_invalid", payload={"field": f"items[{index}].price"})
        items.append(
            QuoteLineItem(
                item_index=_int_field(raw, "item_index", index),
                price=price,
                quantity=_int_field(raw, "quantity", index),
                lead_time=_int_field(raw, "lead_time", index) if raw.get("lead_time") is not None else 0,
                notes=_optional_text(raw.get("notes"), f"items[{index}].notes"),
            )
        )

    total_amount = None
    if payload.get("total_amount") is not None:
        total_amount = parse_decimal(payload.get("total_amount"))
        if total_amount is None or total_amount < 0:
            raise ValidationError(code="number_invalid", payload={"field": "total_amount"})

    valid_until = None
    if payload.get("valid_until") is not None:
        valid_until = parse_datetime(payload.get("valid_until"))
        if valid_until is None:
            raise ValidationError(code="date_invalid", payload={"field": "valid_until"})

    currency = payload.get("currency")
    if currency is not None:
        currency = str(currency).strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            raise ValidationError(code="currency_invalid", payload={"field": "currency"})

    return QuoteDraft(
        supplier_id=str(supplier_id or "").strip(),
        items=items,
        total_amount=total_amount,
        currency=currency,
        valid_until=valid_until,
        terms=_optional_text(payload.get("terms"), "terms"),
        notes=_optional_text(payload.get("notes"), "notes"),
    )


def _line_item_violation(rfq: RequestForQuote, draft: QuoteDraft) -> Dict[str, Any] | None:
    if not draft.items:
        return {"reason": "no_line_items"}
    for position, item in enumerate(draft.items):
        if item.item_index < 0 or item.item_index >= len(rfq.items):
            return {"reason": "unknown_item_index", "position": position, "item_index": item.item_index}
        if item.quantity < 1:
            return {"reason": "quantity_below_one", "position": position, "item_index": item.item_index}
        if item.price < 0:
            return {"reason": "negative_price", "position": position, "item_index": item.item_index}
        if item.lead_time < 0:
            return {"reason": "negative_lead_time", "position": position, "item_index": item.item_index}
    return None


def validate_line_items(rfq: RequestForQuote, draft: QuoteDraft) -> None:
    violation = _line_item_violation(rfq, draft)
    if violation is not None:
        raise ValidationError(
            code="invalid_line_item",
            details=f"line item rejected: {violation['reason']}",
            payload={"rule": INVALID_LINE_ITEM, **violation},
        )


def _close(quote: Quote) -> None:
    # A closed quote drops out of the ranking.
    quote.status = "withdrawn"
    quote.score = None
    quote.ranking = None


def _build_quote(rfq: RequestForQuote, draft: QuoteDraft, now: datetime, status: str) -> Quote:
    total = draft.total_amount
    if total is None:
        total = sum((item.price * item.quantity for item in draft.items), Decimal(0))
    currency = draft.currency or str(rfq.payment_terms.get("currency") or "USD")
    return Quote(
        id=new_id(),
        supplier_id=draft.supplier_id,
        status=status,
        total_amount=total,
        currency=currency,
        valid_until=draft.valid_until or rfq.valid_until,
        submitted_at=now,
        items=list(draft.items),
        terms=draft.terms,
        notes=draft.notes,
    )


def submit_quote(
    rfq: RequestForQuote,
    draft: QuoteDraft,
    now: datetime,
    performed_by: str | None = None,
    *,
    revise: bool = False,
    quote_id: str | None = None,
) -> ActivityEntry:
    if revise:
        return revise_quote(rfq, draft, now, performed_by, quote_id=quote_id)

    ensure_eligible(rfq, draft.supplier_id, now)
    validate_line_items(rfq, draft)

    quote = _build_quote(rfq, draft, now, "submitted")
    rfq.quotes.append(quote)
    return record_activity(rfq, "quote_submitted", performed_by or draft.supplier_id, now, quote_id=quote.id)


def revise_quote(
    rfq: RequestForQuote,
    draft: QuoteDraft,
    now: datetime,
    performed_by: str | None = None,
    *,
    quote_id: str | None = None,
) -> ActivityEntry:
    """Replace the supplier's active quote; the old one is kept as withdrawn."""
    ensure_eligible(rfq, draft.supplier_id, now, revise=True)

    previous = rfq.active_quote_for(draft.supplier_id)
    if quote_id:
        target = rfq.quote_by_id(quote_id)
        if target is None or target.supplier_id != draft.supplier_id:
            raise NotFoundError(code="quote_not_found", details=f"quote {quote_id} not found")
        if target is not previous or target.status not in OPEN_QUOTE_STATUSES:
            raise StateError(code="quote_not_open", details=f"quote {quote_id} is {target.status}")
    if previous is None or previous.status not in OPEN_QUOTE_STATUSES:
        raise NotFoundError(code="quote_not_found", details=f"supplier {draft.supplier_id} has no active quote")

    validate_line_items(rfq, draft)

    quote = _build_quote(rfq, draft, now, "revised")
    quote.supersedes = previous.id
    _close(previous)
    rfq.quotes.append(quote)
    return record_activity(
        rfq,
        "quote_revised",
        performed_by or draft.supplier_id,
        now,
        quote_id=quote.id,
        previous_quote_id=previous.id,
    )


def withdraw_quote(
    rfq: RequestForQuote,
    supplier_id: str,
    quote_id: str,
    reason: str | None,
    now: datetime,
    performed_by: str | None = None,
) -> ActivityEntry:
    quote = rfq.quote_by_id(quote_id)
    if quote is None or quote.supplier_id != supplier_id:
        raise NotFoundError(code="quote_not_found", details=f"quote {quote_id} not found")
    if not rfq.is_active(now):
        raise StateError(code="rfq_not_active", details=f"rfq {rfq.id} is not accepting changes")
    if quote.status not in WITHDRAWABLE_QUOTE_STATUSES:
        raise StateError(code="quote_not_open", details=f"quote {quote_id} is {quote.status}")

    _close(quote)
    return record_activity(
        rfq,
        "quote_withdrawn",
        performed_by or supplier_id,
        now,
        quote_id=quote.id,
        reason=str(reason or "").strip(),
    )
