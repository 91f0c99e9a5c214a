from __future__ import annotations

from datetime import datetime
from typing import Callable, List, Tuple

from rfq_platform.domain.rfq import CLOSED_QUOTE_STATUSES, RequestForQuote
from rfq_platform.errors import EligibilityError


RFQ_NOT_ACTIVE = "RfqNotActive"
VISIBILITY_DENIED = "VisibilityDenied"
SUPPLIER_EXCLUDED = "SupplierExcluded"
DUPLICATE_QUOTE = "DuplicateQuote"

Rule = Callable[[RequestForQuote, str, datetime], bool]


def _rfq_active(rfq: RequestForQuote, supplier_id: str, now: datetime) -> bool:
    return rfq.is_active(now)


def _not_private(rfq: RequestForQuote, supplier_id: str, now: datetime) -> bool:
    return rfq.visibility != "private"


def _invited(rfq: RequestForQuote, supplier_id: str, now: datetime) -> bool:
    if rfq.visibility != "invited":
        return True
    return supplier_id in rfq.invited_suppliers


def _not_excluded(rfq: RequestForQuote, supplier_id: str, now: datetime) -> bool:
    return supplier_id not in rfq.excluded_suppliers


def _no_live_quote(rfq: RequestForQuote, supplier_id: str, now: datetime) -> bool:
    return all(quote.status in CLOSED_QUOTE_STATUSES for quote in rfq.quotes_for_supplier(supplier_id))


# Evaluated in order; the first failing rule is the one reported.
ACCESS_RULES: List[Tuple[str, Rule]] = [
    (RFQ_NOT_ACTIVE, _rfq_active),
    (VISIBILITY_DENIED, _not_private),
    (VISIBILITY_DENIED, _invited),
    (SUPPLIER_EXCLUDED, _not_excluded),
]
SUBMISSION_RULES: List[Tuple[str, Rule]] = ACCESS_RULES + [(DUPLICATE_QUOTE, _no_live_quote)]


def first_veto(rfq: RequestForQuote, supplier_id: str, now: datetime, *, revise: bool = False) -> str | None:
    """Name of the first rule that keeps ``supplier_id`` from quoting, or None.

    With ``revise`` the duplicate check is left to the ledger, which instead
    requires an active quote to replace.
    """
    supplier_id = str(supplier_id or "").strip()
    rules = ACCESS_RULES if revise else SUBMISSION_RULES
    for rule_name, rule in rules:
        if not rule(rfq, supplier_id, now):
            return rule_name
    return None


def can_submit(rfq: RequestForQuote, supplier_id: str, now: datetime) -> bool:
    return first_veto(rfq, supplier_id, now) is None


def ensure_eligible(rfq: RequestForQuote, supplier_id: str, now: datetime, *, revise: bool = False) -> None:
    rule = first_veto(rfq, supplier_id, now, revise=revise)
    if rule is not None:
        raise EligibilityError(rule, details=f"supplier {supplier_id} vetoed by {rule}")
