from __future__ import annotations

from datetime import datetime

from rfq_platform.domain.audit import ActivityEntry, record_activity
from rfq_platform.domain.registry import can_transition
from rfq_platform.domain.rfq import OPEN_QUOTE_STATUSES, TERMINAL_STATUSES, RequestForQuote
from rfq_platform.domain.values import to_utc
from rfq_platform.errors import NotFoundError, StateError, ValidationError


MAX_REASON_LENGTH = 1000


def _require_published(rfq: RequestForQuote, now: datetime, action: str) -> None:
    status = rfq.effective_status(now)
    if status in TERMINAL_STATUSES:
        raise StateError(code="rfq_terminal", details=f"{action}: rfq {rfq.id} is {status}")
    if status != "published":
        raise StateError(code="rfq_not_published", details=f"{action}: rfq {rfq.id} is {status}")


def _clean_reason(reason: str | None) -> str | None:
    text = str(reason or "").strip()
    if len(text) > MAX_REASON_LENGTH:
        raise ValidationError(code="field_too_long", payload={"field": "reason"})
    return text or None


def award_to_supplier(
    rfq: RequestForQuote,
    supplier_id: str,
    quote_id: str,
    reason: str | None,
    now: datetime,
    performed_by: str,
) -> ActivityEntry:
    """Accept one quote, reject the other open ones and close the RFQ as awarded."""
    _require_published(rfq, now, "award")
    reason = _clean_reason(reason)

    winner = rfq.quote_by_id(quote_id)
    if winner is None or winner.supplier_id != supplier_id:
        raise NotFoundError(code="quote_not_found", details=f"quote {quote_id} not found for {supplier_id}")
    if winner.status not in OPEN_QUOTE_STATUSES:
        raise StateError(code="quote_not_awardable", details=f"quote {quote_id} is {winner.status}")

    for quote in rfq.quotes:
        if quote is winner:
            quote.status = "accepted"
        elif quote.status in OPEN_QUOTE_STATUSES:
            quote.status = "rejected"

    rfq.status = "awarded"
    rfq.awarded_to = supplier_id
    rfq.awarded_quote = winner.id
    rfq.awarded_date = now
    rfq.award_reason = reason
    return record_activity(
        rfq,
        "rfq_awarded",
        performed_by,
        now,
        quote_id=winner.id,
        supplier_id=supplier_id,
        amount=winner.total_amount,
    )


def cancel_rfq(rfq: RequestForQuote, reason: str | None, now: datetime, performed_by: str) -> ActivityEntry:
    # An RFQ past its due date is already expired, so it cannot be cancelled.
    status = rfq.effective_status(now)
    if not can_transition(status, "cancelled"):
        raise StateError(code="rfq_terminal", details=f"cancel: rfq {rfq.id} is {status}")
    reason = _clean_reason(reason)
    if not reason:
        raise ValidationError(code="reason_required", payload={"field": "reason"})

    rfq.status = "cancelled"
    rfq.cancel_reason = reason
    return record_activity(rfq, "rfq_cancelled", performed_by, now, reason=reason)


def extend_deadline(rfq: RequestForQuote, new_date: datetime, now: datetime, performed_by: str) -> ActivityEntry:
    _require_published(rfq, now, "extend_deadline")
    new_date = to_utc(new_date)
    if new_date <= rfq.due_date:
        raise StateError(code="deadline_not_forward", details="new due date must be after the current one")
    if new_date > rfq.valid_until:
        raise ValidationError(
            code="valid_until_before_due",
            details="new due date would pass valid_until",
            payload={"field": "new_date"},
        )

    old_date = rfq.due_date
    rfq.due_date = new_date
    return record_activity(rfq, "deadline_extended", performed_by, now, old_date=old_date, new_date=new_date)
