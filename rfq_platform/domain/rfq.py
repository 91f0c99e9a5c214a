from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List

from rfq_platform.domain.audit import ActivityEntry
from rfq_platform.domain.values import (
    format_datetime,
    format_decimal,
    parse_datetime,
    parse_decimal,
    to_utc,
)


RFQ_STATUSES = ("draft", "published", "closed", "awarded", "cancelled", "expired")
TERMINAL_STATUSES = frozenset({"awarded", "cancelled", "expired"})
VISIBILITIES = ("public", "private", "invited")
PAYMENT_METHODS = ("net30", "net60", "net90", "cod", "prepaid", "custom")

QUOTE_STATUSES = ("pending", "submitted", "revised", "accepted", "rejected", "withdrawn")
# At most one quote per supplier may sit in this set.
ACTIVE_QUOTE_STATUSES = frozenset({"submitted", "revised", "accepted"})
# Quotes that take part in evaluation and can still be awarded.
OPEN_QUOTE_STATUSES = frozenset({"submitted", "revised"})
# A supplier holding a quote outside this set cannot submit a new one.
CLOSED_QUOTE_STATUSES = frozenset({"withdrawn", "rejected"})

CRITERIA = ("price", "quality", "delivery", "payment_terms", "certification", "sustainability")
DEFAULT_WEIGHTS: Dict[str, int] = {
    "price": 40,
    "quality": 25,
    "delivery": 20,
    "payment_terms": 5,
    "certification": 5,
    "sustainability": 5,
}


@dataclass
class SelectionCriteria:
    price: Decimal = Decimal(DEFAULT_WEIGHTS["price"])
    quality: Decimal = Decimal(DEFAULT_WEIGHTS["quality"])
    delivery: Decimal = Decimal(DEFAULT_WEIGHTS["delivery"])
    payment_terms: Decimal = Decimal(DEFAULT_WEIGHTS["payment_terms"])
    certification: Decimal = Decimal(DEFAULT_WEIGHTS["certification"])
    sustainability: Decimal = Decimal(DEFAULT_WEIGHTS["sustainability"])

    def weight(self, criterion: str) -> Decimal:
        return getattr(self, criterion)

    def as_dict(self) -> Dict[str, Decimal]:
        return {criterion: self.weight(criterion) for criterion in CRITERIA}

    def total(self) -> Decimal:
        return sum(self.as_dict().values(), Decimal(0))

    def to_document(self) -> Dict[str, str]:
        return {criterion: format_decimal(weight) for criterion, weight in self.as_dict().items()}

    @classmethod
    def from_document(cls, raw: Dict[str, Any] | None) -> "SelectionCriteria":
        raw = raw or {}
        values = {}
        for criterion in CRITERIA:
            parsed = parse_decimal(raw.get(criterion))
            values[criterion] = parsed if parsed is not None else Decimal(DEFAULT_WEIGHTS[criterion])
        return cls(**values)


@dataclass
class RfqItem:
    name: str
    quantity: int
    unit: str
    target_price: Decimal | None = None
    required_certifications: List[str] = field(default_factory=list)
    specifications: str | None = None

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "quantity": self.quantity,
            "unit": self.unit,
            "target_price": format_decimal(self.target_price),
            "required_certifications": list(self.required_certifications),
            "specifications": self.specifications,
        }

    @classmethod
    def from_document(cls, raw: Dict[str, Any]) -> "RfqItem":
        return cls(
            name=str(raw.get("name") or ""),
            quantity=int(raw.get("quantity") or 0),
            unit=str(raw.get("unit") or ""),
            target_price=parse_decimal(raw.get("target_price")),
            required_certifications=[str(cert) for cert in raw.get("required_certifications") or []],
            specifications=raw.get("specifications"),
        )


@dataclass
class QuoteLineItem:
    item_index: int
    price: Decimal
    quantity: int
    lead_time: int
    notes: str | None = None

    def to_document(self) -> Dict[str, Any]:
        return {
            "item_index": self.item_index,
            "price": format_decimal(self.price),
            "quantity": self.quantity,
            "lead_time": self.lead_time,
            "notes": self.notes,
        }

    @classmethod
    def from_document(cls, raw: Dict[str, Any]) -> "QuoteLineItem":
        return cls(
            item_index=int(raw["item_index"]),
            price=parse_decimal(raw.get("price")) or Decimal(0),
            quantity=int(raw.get("quantity") or 0),
            lead_time=int(raw.get("lead_time") or 0),
            notes=raw.get("notes"),
        )


@dataclass
class Quote:
    id: str
    supplier_id: str
    status: str
    total_amount: Decimal
    currency: str
    valid_until: datetime
    submitted_at: datetime
    items: List[QuoteLineItem] = field(default_factory=list)
    terms: str | None = None
    notes: str | None = None
    supersedes: str | None = None
    score: Decimal | None = None
    ranking: int | None = None

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "status": self.status,
            "total_amount": format_decimal(self.total_amount),
            "currency": self.currency,
            "valid_until": format_datetime(self.valid_until),
            "submitted_at": format_datetime(self.submitted_at),
            "items": [item.to_document() for item in self.items],
            "terms": self.terms,
            "notes": self.notes,
            "supersedes": self.supersedes,
            "score": format_decimal(self.score),
            "ranking": self.ranking,
        }

    @classmethod
    def from_document(cls, raw: Dict[str, Any]) -> "Quote":
        return cls(
            id=str(raw["id"]),
            supplier_id=str(raw["supplier_id"]),
            status=str(raw.get("status") or "submitted"),
            total_amount=parse_decimal(raw.get("total_amount")) or Decimal(0),
            currency=str(raw.get("currency") or "USD"),
            valid_until=parse_datetime(raw.get("valid_until")),
            submitted_at=parse_datetime(raw.get("submitted_at")),
            items=[QuoteLineItem.from_document(item) for item in raw.get("items") or []],
            terms=raw.get("terms"),
            notes=raw.get("notes"),
            supersedes=raw.get("supersedes"),
            score=parse_decimal(raw.get("score")),
            ranking=int(raw["ranking"]) if raw.get("ranking") is not None else None,
        )


@dataclass
class RequestForQuote:
    """The RFQ aggregate: the RFQ, its quotes and its activity log form one write unit."""

    id: str
    tenant_id: str
    title: str
    description: str
    category: str
    buyer_id: str
    buyer_company_id: str | None
    issued_date: datetime
    due_date: datetime
    valid_until: datetime
    rfq_number: str | None = None
    tags: List[str] = field(default_factory=list)
    items: List[RfqItem] = field(default_factory=list)
    delivery_location: Dict[str, Any] = field(default_factory=dict)
    delivery_terms: Dict[str, Any] = field(default_factory=dict)
    payment_terms: Dict[str, Any] = field(default_factory=lambda: {"method": "net30", "currency": "USD"})
    selection_criteria: SelectionCriteria = field(default_factory=SelectionCriteria)
    status: str = "draft"
    visibility: str = "public"
    invited_suppliers: List[str] = field(default_factory=list)
    excluded_suppliers: List[str] = field(default_factory=list)
    preferred_suppliers: List[str] = field(default_factory=list)
    quotes: List[Quote] = field(default_factory=list)
    activity_log: List[ActivityEntry] = field(default_factory=list)
    version: int = 0
    awarded_to: str | None = None
    awarded_quote: str | None = None
    awarded_date: datetime | None = None
    award_reason: str | None = None
    cancel_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_active(self, now: datetime) -> bool:
        return self.status == "published" and to_utc(now) <= self.due_date

    def is_past_due(self, now: datetime) -> bool:
        return self.status == "published" and to_utc(now) > self.due_date

    def effective_status(self, now: datetime) -> str:
        """Status as readers see it: a published RFQ past its due date reads as expired."""
        if self.is_past_due(now):
            return "expired"
        return self.status

    def quote_by_id(self, quote_id: str) -> Quote | None:
        for quote in self.quotes:
            if quote.id == quote_id:
                return quote
        return None

    def quotes_for_supplier(self, supplier_id: str) -> List[Quote]:
        return [quote for quote in self.quotes if quote.supplier_id == supplier_id]

    def active_quote_for(self, supplier_id: str) -> Quote | None:
        for quote in self.quotes:
            if quote.supplier_id == supplier_id and quote.status in ACTIVE_QUOTE_STATUSES:
                return quote
        return None

    def open_quotes(self) -> List[Quote]:
        return [quote for quote in self.quotes if quote.status in OPEN_QUOTE_STATUSES]

    def snapshot(self) -> "RequestForQuote":
        return copy.deepcopy(self)

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "rfq_number": self.rfq_number,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "tags": list(self.tags),
            "buyer_id": self.buyer_id,
            "buyer_company_id": self.buyer_company_id,
            "items": [item.to_document() for item in self.items],
            "delivery_location": dict(self.delivery_location),
            "delivery_terms": dict(self.delivery_terms),
            "payment_terms": dict(self.payment_terms),
            "selection_criteria": self.selection_criteria.to_document(),
            "issued_date": format_datetime(self.issued_date),
            "due_date": format_datetime(self.due_date),
            "valid_until": format_datetime(self.valid_until),
            "status": self.status,
            "visibility": self.visibility,
            "invited_suppliers": list(self.invited_suppliers),
            "excluded_suppliers": list(self.excluded_suppliers),
            "preferred_suppliers": list(self.preferred_suppliers),
            "quotes": [quote.to_document() for quote in self.quotes],
            "activity_log": [entry.to_dict() for entry in self.activity_log],
            "version": self.version,
            "awarded_to": self.awarded_to,
            "awarded_quote": self.awarded_quote,
            "awarded_date": format_datetime(self.awarded_date),
            "award_reason": self.award_reason,
            "cancel_reason": self.cancel_reason,
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
        }

    @classmethod
    def from_document(cls, raw: Dict[str, Any]) -> "RequestForQuote":
        return cls(
            id=str(raw["id"]),
            tenant_id=str(raw["tenant_id"]),
            rfq_number=raw.get("rfq_number"),
            title=str(raw.get("title") or ""),
            description=str(raw.get("description") or ""),
            category=str(raw.get("category") or ""),
            tags=[str(tag) for tag in raw.get("tags") or []],
            buyer_id=str(raw.get("buyer_id") or ""),
            buyer_company_id=raw.get("buyer_company_id"),
            items=[RfqItem.from_document(item) for item in raw.get("items") or []],
            delivery_location=dict(raw.get("delivery_location") or {}),
            delivery_terms=dict(raw.get("delivery_terms") or {}),
            payment_terms=dict(raw.get("payment_terms") or {}),
            selection_criteria=SelectionCriteria.from_document(raw.get("selection_criteria")),
            issued_date=parse_datetime(raw.get("issued_date")),
            due_date=parse_datetime(raw.get("due_date")),
            valid_until=parse_datetime(raw.get("valid_until")),
            status=str(raw.get("status") or "draft"),
            visibility=str(raw.get("visibility") or "public"),
            invited_suppliers=[str(value) for value in raw.get("invited_suppliers") or []],
            excluded_suppliers=[str(value) for value in raw.get("excluded_suppliers") or []],
            preferred_suppliers=[str(value) for value in raw.get("preferred_suppliers") or []],
            quotes=[Quote.from_document(quote) for quote in raw.get("quotes") or []],
            activity_log=[ActivityEntry.from_dict(entry) for entry in raw.get("activity_log") or []],
            version=int(raw.get("version") or 0),
            awarded_to=raw.get("awarded_to"),
            awarded_quote=raw.get("awarded_quote"),
            awarded_date=parse_datetime(raw.get("awarded_date")),
            award_reason=raw.get("award_reason"),
            cancel_reason=raw.get("cancel_reason"),
            created_at=parse_datetime(raw.get("created_at")),
            updated_at=parse_datetime(raw.get("updated_at")),
        )
