"""Append-only activity log of an RFQ.

Each action kind has a fixed, typed payload. ``ACTION_DETAILS`` is the closed
set of kinds the log accepts; entries are appended in order and never edited.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Type

from rfq_platform.domain.values import format_datetime, format_decimal, parse_datetime, parse_decimal


@dataclass(frozen=True, kw_only=True)
class ActivityDetails:
    pass


@dataclass(frozen=True, kw_only=True)
class RfqCreatedDetails(ActivityDetails):
    rfq_number: str


@dataclass(frozen=True, kw_only=True)
class RfqUpdatedDetails(ActivityDetails):
    updated_fields: tuple[str, ...] = ()


@dataclass(frozen=True, kw_only=True)
class RfqPublishedDetails(ActivityDetails):
    due_date: datetime


@dataclass(frozen=True, kw_only=True)
class QuoteSubmittedDetails(ActivityDetails):
    quote_id: str


@dataclass(frozen=True, kw_only=True)
class QuoteRevisedDetails(ActivityDetails):
    quote_id: str
    previous_quote_id: str


@dataclass(frozen=True, kw_only=True)
class QuoteWithdrawnDetails(ActivityDetails):
    quote_id: str
    reason: str = ""


@dataclass(frozen=True, kw_only=True)
class RfqAwardedDetails(ActivityDetails):
    quote_id: str
    supplier_id: str
    amount: Decimal


@dataclass(frozen=True, kw_only=True)
class RfqCancelledDetails(ActivityDetails):
    reason: str


@dataclass(frozen=True, kw_only=True)
class DeadlineExtendedDetails(ActivityDetails):
    old_date: datetime
    new_date: datetime


@dataclass(frozen=True, kw_only=True)
class RfqExpiredDetails(ActivityDetails):
    due_date: datetime


ACTION_DETAILS: Dict[str, Type[ActivityDetails]] = {
    "rfq_created": RfqCreatedDetails,
    "rfq_updated": RfqUpdatedDetails,
    "rfq_published": RfqPublishedDetails,
    "quote_submitted": QuoteSubmittedDetails,
    "quote_revised": QuoteRevisedDetails,
    "quote_withdrawn": QuoteWithdrawnDetails,
    "rfq_awarded": RfqAwardedDetails,
    "rfq_cancelled": RfqCancelledDetails,
    "deadline_extended": DeadlineExtendedDetails,
    "rfq_expired": RfqExpiredDetails,
}


class UnknownActivityError(ValueError):
    """Raised for an action kind or payload outside the closed activity set."""


def _encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_datetime(value)
    if isinstance(value, Decimal):
        return format_decimal(value)
    if isinstance(value, tuple):
        return [_encode_value(item) for item in value]
    return value


def _decode_value(annotation: str, value: Any) -> Any:
    if value is None:
        return None
    if annotation == "datetime":
        return parse_datetime(value)
    if annotation == "Decimal":
        return parse_decimal(value)
    if annotation.startswith("tuple"):
        return tuple(value)
    return value


def encode_details(details: ActivityDetails) -> Dict[str, Any]:
    return {item.name: _encode_value(getattr(details, item.name)) for item in dataclasses.fields(details)}


def decode_details(action: str, raw: Dict[str, Any] | None) -> ActivityDetails:
    details_type = ACTION_DETAILS.get(action)
    if details_type is None:
        raise UnknownActivityError(f"unknown activity action: {action}")
    raw = dict(raw or {})
    values = {}
    for item in dataclasses.fields(details_type):
        if item.name in raw:
            values[item.name] = _decode_value(str(item.type), raw[item.name])
    return details_type(**values)


@dataclass(frozen=True)
class ActivityEntry:
    sequence: int
    action: str
    performed_by: str
    timestamp: datetime
    details: ActivityDetails

    def __post_init__(self) -> None:
        expected = ACTION_DETAILS.get(self.action)
        if expected is None:
            raise UnknownActivityError(f"unknown activity action: {self.action}")
        if not isinstance(self.details, expected):
            raise UnknownActivityError(
                f"{self.action} expects {expected.__name__}, got {type(self.details).__name__}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "action": self.action,
            "performed_by": self.performed_by,
            "timestamp": format_datetime(self.timestamp),
            "details": encode_details(self.details),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ActivityEntry":
        action = str(raw.get("action") or "")
        return cls(
            sequence=int(raw.get("sequence") or 0),
            action=action,
            performed_by=str(raw.get("performed_by") or ""),
            timestamp=parse_datetime(raw.get("timestamp")),
            details=decode_details(action, raw.get("details")),
        )


def record_activity(rfq, action: str, performed_by: str, now: datetime, **details: Any) -> ActivityEntry:
    """Append one entry to ``rfq.activity_log`` and return it."""
    details_type = ACTION_DETAILS.get(action)
    if details_type is None:
        raise UnknownActivityError(f"unknown activity action: {action}")
    entry = ActivityEntry(
        sequence=len(rfq.activity_log) + 1,
        action=action,
        performed_by=str(performed_by or ""),
        timestamp=now,
        details=details_type(**details),
    )
    rfq.activity_log.append(entry)
    return entry
