from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List


@dataclass(frozen=True)
class ServiceOutput:
    payload: Dict[str, Any]
    status_code: int = 200


@dataclass(frozen=True)
class RfqListFilters:
    status: List[str] = field(default_factory=list)
    category: str | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    page: int = 1
    limit: int = 20


@dataclass(frozen=True)
class QuoteSubmission:
    rfq_id: str
    supplier_id: str
    payload: Dict[str, Any]
    quote_id: str | None = None


@dataclass(frozen=True)
class QuoteWithdrawal:
    rfq_id: str
    supplier_id: str
    quote_id: str
    reason: str | None = None


@dataclass(frozen=True)
class AwardInput:
    rfq_id: str
    supplier_id: str
    quote_id: str
    reason: str | None = None


@dataclass(frozen=True)
class AnalyticsFilters:
    from_date: datetime | None = None
    to_date: datetime | None = None
    buyer_company_id: str | None = None
