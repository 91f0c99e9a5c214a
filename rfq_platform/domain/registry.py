"""RFQ creation, editing, publication and lifecycle invariants."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List

from rfq_platform.domain.audit import ActivityEntry, record_activity
from rfq_platform.domain.rfq import (
    CRITERIA,
    DEFAULT_WEIGHTS,
    PAYMENT_METHODS,
    RFQ_STATUSES,
    TERMINAL_STATUSES,
    VISIBILITIES,
    RequestForQuote,
    RfqItem,
    SelectionCriteria,
)
from rfq_platform.domain.values import new_id, parse_datetime, parse_decimal, to_utc
from rfq_platform.errors import StateError, ValidationError


TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 5000
SHORT_TEXT_MAX_LENGTH = 200
NUMBER_SEQUENCE_WIDTH = 5

# status -> statuses reachable from it
TRANSITIONS: Dict[str, frozenset] = {
    "draft": frozenset({"published", "cancelled"}),
    "published": frozenset({"awarded", "cancelled", "expired"}),
    "closed": frozenset({"cancelled"}),
    "awarded": frozenset(),
    "cancelled": frozenset(),
    "expired": frozenset(),
}

DRAFT_EDITABLE_FIELDS = (
    "title",
    "description",
    "category",
    "tags",
    "items",
    "delivery_location",
    "delivery_terms",
    "payment_terms",
    "selection_criteria",
    "issued_date",
    "due_date",
    "valid_until",
    "visibility",
    "invited_suppliers",
    "excluded_suppliers",
    "preferred_suppliers",
)
PUBLISHED_EDITABLE_FIELDS = ("description", "tags", "excluded_suppliers", "preferred_suppliers")


def number_period(now: datetime) -> str:
    return to_utc(now).strftime("%y%m")


def format_rfq_number(prefix: str, period: str, sequence: int) -> str:
    return f"{prefix}-{period}-{sequence:0{NUMBER_SEQUENCE_WIDTH}d}"


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


# -- field parsing -----------------------------------------------------------


def _text(value: Any, field_name: str, max_length: int, *, required: bool = True) -> str:
    if value is not None and not isinstance(value, str):
        raise ValidationError(code="validation_error", payload={"field": field_name})
    text = (value or "").strip()
    if required and not text:
        raise ValidationError(code="field_required", payload={"field": field_name})
    if len(text) > max_length:
        raise ValidationError(code="field_too_long", payload={"field": field_name, "max_length": max_length})
    return text


def _string_list(value: Any, field_name: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(code="validation_error", payload={"field": field_name})
    result = []
    for entry in value:
        text = str(entry or "").strip()
        if text and text not in result:
            result.append(text)
    return result


def _mapping(value: Any, field_name: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError(code="validation_error", payload={"field": field_name})
    return dict(value)


def _date(value: Any, field_name: str) -> datetime:
    if value is None or value == "":
        raise ValidationError(code="field_required", payload={"field": field_name})
    parsed = parse_datetime(value)
    if parsed is None:
        raise ValidationError(code="date_invalid", payload={"field": field_name})
    return parsed


def _items(value: Any, field_name: str = "items") -> List[RfqItem]:
    if not isinstance(value, list) or not value:
        raise ValidationError(code="items_required", payload={"field": field_name})
    items = []
    for index, raw in enumerate(value):
        prefix = f"{field_name}[{index}]"
        if not isinstance(raw, dict):
            raise ValidationError(code="item_invalid", payload={"field": prefix})
        quantity = raw.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError(code="number_invalid", payload={"field": f"{prefix}.quantity"})
        target_price = None
        if raw.get("target_price") is not None:
            target_price = parse_decimal(raw.get("target_price"))
            if target_price is None:
                raise ValidationError(code="number_invalid", payload={"field": f"{prefix}.target_price"})
        specifications = raw.get("specifications")
        items.append(
            RfqItem(
                name=_text(raw.get("name"), f"{prefix}.name", SHORT_TEXT_MAX_LENGTH),
                quantity=quantity,
                unit=_text(raw.get("unit"), f"{prefix}.unit", SHORT_TEXT_MAX_LENGTH),
                target_price=target_price,
                required_certifications=_string_list(
                    raw.get("required_certifications"), f"{prefix}.required_certifications"
                ),
                specifications=str(specifications).strip() if specifications is not None else None,
            )
        )
    return items


def _payment_terms(value: Any, field_name: str = "payment_terms") -> Dict[str, Any]:
    terms = {"method": "net30", "currency": "USD"}
    terms.update(_mapping(value, field_name))
    terms["method"] = str(terms.get("method") or "").strip().lower()
    terms["currency"] = str(terms.get("currency") or "").strip().upper()
    if terms["method"] not in PAYMENT_METHODS:
        raise ValidationError(code="payment_method_invalid", payload={"field": f"{field_name}.method"})
    if len(terms["currency"]) != 3 or not terms["currency"].isalpha():
        raise ValidationError(code="currency_invalid", payload={"field": f"{field_name}.currency"})
    return terms


def _selection_criteria(value: Any, field_name: str = "selection_criteria") -> SelectionCriteria:
    raw = _mapping(value, field_name)
    unknown = sorted(set(raw) - set(CRITERIA))
    if unknown:
        raise ValidationError(code="weights_invalid", payload={"field": field_name, "unknown": unknown})
    weights = {}
    for criterion in CRITERIA:
        if criterion not in raw:
            weights[criterion] = Decimal(DEFAULT_WEIGHTS[criterion])
            continue
        parsed = parse_decimal(raw[criterion])
        if parsed is None:
            raise ValidationError(code="number_invalid", payload={"field": f"{field_name}.{criterion}"})
        weights[criterion] = parsed
    return SelectionCriteria(**weights)


def _visibility(value: Any, field_name: str = "visibility") -> str:
    visibility = str(value or "public").strip().lower()
    if visibility not in VISIBILITIES:
        raise ValidationError(code="visibility_invalid", payload={"field": field_name})
    return visibility


FIELD_PARSERS: Dict[str, Callable[[Any], Any]] = {
    "title": lambda value: _text(value, "title", TITLE_MAX_LENGTH),
    "description": lambda value: _text(value, "description", DESCRIPTION_MAX_LENGTH),
    "category": lambda value: _text(value, "category", SHORT_TEXT_MAX_LENGTH),
    "tags": lambda value: _string_list(value, "tags"),
    "items": _items,
    "delivery_location": lambda value: _mapping(value, "delivery_location"),
    "delivery_terms": lambda value: _mapping(value, "delivery_terms"),
    "payment_terms": _payment_terms,
    "selection_criteria": _selection_criteria,
    "issued_date": lambda value: _date(value, "issued_date"),
    "due_date": lambda value: _date(value, "due_date"),
    "valid_until": lambda value: _date(value, "valid_until"),
    "visibility": _visibility,
    "invited_suppliers": lambda value: _string_list(value, "invited_suppliers"),
    "excluded_suppliers": lambda value: _string_list(value, "excluded_suppliers"),
    "preferred_suppliers": lambda value: _string_list(value, "preferred_suppliers"),
}


# -- invariants --------------------------------------------------------------


def validate_weights(criteria: SelectionCriteria) -> None:
    for criterion, weight in criteria.as_dict().items():
        if weight < 0 or weight > 100:
            raise ValidationError(code="weights_invalid", payload={"field": f"selection_criteria.{criterion}"})
    if criteria.total() != 100:
        raise ValidationError(
            code="weights_sum_invalid",
            details=f"weights sum to {criteria.total()}",
            payload={"field": "selection_criteria", "total": format(criteria.total(), "f")},
        )


def validate_for_write(rfq: RequestForQuote) -> None:
    """Invariants every persisted RFQ satisfies."""
    if rfq.status not in RFQ_STATUSES:
        raise ValidationError(code="validation_error", payload={"field": "status"})
    if rfq.visibility not in VISIBILITIES:
        raise ValidationError(code="visibility_invalid", payload={"field": "visibility"})
    validate_weights(rfq.selection_criteria)
    if rfq.due_date <= rfq.issued_date:
        raise ValidationError(code="due_date_before_issue", payload={"field": "due_date"})
    if rfq.valid_until < rfq.due_date:
        raise ValidationError(code="valid_until_before_due", payload={"field": "valid_until"})
    if not rfq.items:
        raise ValidationError(code="items_required", payload={"field": "items"})
    for index, item in enumerate(rfq.items):
        if not item.name or not item.unit:
            raise ValidationError(code="item_invalid", payload={"field": f"items[{index}]"})
        if item.quantity < 1:
            raise ValidationError(code="item_invalid", payload={"field": f"items[{index}].quantity"})
        if item.target_price is not None and item.target_price < 0:
            raise ValidationError(code="item_invalid", payload={"field": f"items[{index}].target_price"})
    if rfq.visibility == "invited" and not rfq.invited_suppliers:
        raise ValidationError(code="field_required", payload={"field": "invited_suppliers"})


# -- operations --------------------------------------------------------------


def build_rfq(
    data: Dict[str, Any],
    *,
    tenant_id: str,
    buyer_id: str,
    buyer_company_id: str | None,
    now: datetime,
) -> RequestForQuote:
    """Parse a create payload into a validated draft RFQ without a number."""
    if not isinstance(data, dict):
        raise ValidationError(code="payload_invalid")
    unknown = sorted(set(data) - set(DRAFT_EDITABLE_FIELDS))
    if unknown:
        raise ValidationError(code="payload_invalid", payload={"unknown_fields": unknown})

    values: Dict[str, Any] = {}
    for name in ("title", "description", "category", "items", "due_date", "valid_until"):
        values[name] = FIELD_PARSERS[name](data.get(name))
    for name in DRAFT_EDITABLE_FIELDS:
        if name not in values and data.get(name) is not None:
            values[name] = FIELD_PARSERS[name](data[name])
    values.setdefault("issued_date", now)
    values.setdefault("payment_terms", _payment_terms(None))

    rfq = RequestForQuote(
        id=new_id(),
        tenant_id=tenant_id,
        buyer_id=buyer_id,
        buyer_company_id=buyer_company_id,
        created_at=now,
        updated_at=now,
        **values,
    )
    validate_for_write(rfq)
    return rfq


def register_rfq(rfq: RequestForQuote, rfq_number: str, now: datetime, performed_by: str) -> ActivityEntry:
    if rfq.rfq_number:
        raise StateError(code="invalid_state", details=f"rfq {rfq.id} already numbered {rfq.rfq_number}")
    rfq.rfq_number = rfq_number
    return record_activity(rfq, "rfq_created", performed_by, now, rfq_number=rfq_number)


def update_rfq(rfq: RequestForQuote, changes: Dict[str, Any], now: datetime, performed_by: str) -> ActivityEntry:
    """Apply field edits. Drafts accept every editable field, published RFQs a short list."""
    if not isinstance(changes, dict) or not changes:
        raise ValidationError(code="payload_invalid")
    unknown = sorted(set(changes) - set(DRAFT_EDITABLE_FIELDS))
    if unknown:
        raise ValidationError(code="payload_invalid", payload={"unknown_fields": unknown})

    status = rfq.effective_status(now)
    if status == "draft":
        allowed = DRAFT_EDITABLE_FIELDS
    elif status == "published":
        allowed = PUBLISHED_EDITABLE_FIELDS
    else:
        raise StateError(code="rfq_not_editable", details=f"rfq {rfq.id} is {status}")

    locked = [name for name in DRAFT_EDITABLE_FIELDS if name in changes and name not in allowed]
    if locked:
        raise StateError(code="field_locked", payload={"fields": locked})

    parsed = {name: FIELD_PARSERS[name](changes[name]) for name in DRAFT_EDITABLE_FIELDS if name in changes}
    candidate = rfq.snapshot()
    for name, value in parsed.items():
        setattr(candidate, name, value)
    validate_for_write(candidate)
    for name, value in parsed.items():
        setattr(rfq, name, value)
    return record_activity(rfq, "rfq_updated", performed_by, now, updated_fields=tuple(parsed))


def publish(rfq: RequestForQuote, now: datetime, performed_by: str) -> ActivityEntry:
    if rfq.status in TERMINAL_STATUSES:
        raise StateError(code="rfq_terminal", details=f"rfq {rfq.id} is {rfq.status}")
    if rfq.status != "draft":
        raise StateError(code="rfq_not_draft", details=f"rfq {rfq.id} is {rfq.status}")
    now = to_utc(now)
    if rfq.due_date <= now:
        raise ValidationError(code="due_date_in_past", payload={"field": "due_date"})
    candidate = rfq.snapshot()
    candidate.status = "published"
    # Publication is the issue date suppliers see.
    candidate.issued_date = now
    validate_for_write(candidate)
    rfq.status = "published"
    rfq.issued_date = now
    return record_activity(rfq, "rfq_published", performed_by, now, due_date=rfq.due_date)


def apply_lazy_expiry(rfq: RequestForQuote, now: datetime, performed_by: str = "system") -> ActivityEntry | None:
    """Persistable form of the read-time expiry; None when the RFQ is not past due."""
    if not rfq.is_past_due(now):
        return None
    rfq.status = "expired"
    return record_activity(rfq, "rfq_expired", performed_by, now, due_date=rfq.due_date)
