from __future__ import annotations

from typing import Any, Dict, List

from flask import Blueprint, current_app, jsonify, request

from rfq_platform.application.rfq_service import RfqService
from rfq_platform.db import get_db, get_read_db
from rfq_platform.domain.contracts import (
    AnalyticsFilters,
    AwardInput,
    QuoteSubmission,
    QuoteWithdrawal,
    RfqListFilters,
)
from rfq_platform.domain.values import parse_datetime
from rfq_platform.errors import PermissionError as AppPermissionError
from rfq_platform.errors import ValidationError
from rfq_platform.identity import Caller, current_caller
from rfq_platform.policies import BUYER_ROLES, SUPPLIER_ROLES, require_roles
from rfq_platform.tenant import scoped_tenant_id
from rfq_platform.ui_strings import success_message


rfq_bp = Blueprint("rfqs", __name__)


def _service() -> RfqService:
    return current_app.extensions["rfq_service"]


def _ok(key: str, fallback: str | None = None) -> str:
    return success_message(key, fallback)


def _require_roles(*allowed_roles: str) -> Caller:
    caller = current_caller()
    require_roles(*allowed_roles, role=caller.role)
    return caller


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError(code="payload_invalid")
    return payload


def _respond(result, message_key: str | None = None):
    payload = dict(result.payload)
    if message_key:
        payload["message"] = _ok(message_key)
    return jsonify(payload), result.status_code


def _query_date(name: str):
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return None
    parsed = parse_datetime(raw)
    if parsed is None:
        raise ValidationError(code="date_invalid", payload={"field": name})
    return parsed


def _query_int(name: str, default: int) -> int:
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationError(code="number_invalid", payload={"field": name}) from exc


def _status_filter() -> List[str]:
    values: List[str] = []
    for raw in request.args.getlist("status"):
        values.extend(part.strip() for part in raw.split(",") if part.strip())
    return values


def _supplier_view(caller: Caller) -> str | None:
    # Suppliers read a filtered view scoped to their own company.
    if caller.is_supplier:
        return caller.acting_supplier_id()
    return None


def _acting_supplier(caller: Caller, payload: Dict[str, Any]) -> str | None:
    return caller.acting_supplier_id(payload.get("supplier_id") or request.args.get("supplier_id"))


@rfq_bp.route("/api/rfqs", methods=["POST"])
def create_rfq():
    caller = _require_roles(*BUYER_ROLES)
    result = _service().create_rfq(
        get_db(),
        tenant_id=scoped_tenant_id(),
        performed_by=caller.user_id,
        buyer_company_id=caller.company_id,
        data=_json_body(),
    )
    return _respond(result, "rfq_created")


@rfq_bp.route("/api/rfqs", methods=["GET"])
def list_rfqs():
    caller = current_caller()
    filters = RfqListFilters(
        status=_status_filter(),
        category=(request.args.get("category") or "").strip() or None,
        from_date=_query_date("from_date"),
        to_date=_query_date("to_date"),
        page=_query_int("page", 1),
        limit=_query_int("limit", 20),
    )
    result = _service().list_rfqs(
        get_read_db(),
        tenant_id=scoped_tenant_id(),
        filters=filters,
        viewer_supplier_id=_supplier_view(caller),
    )
    return _respond(result)


@rfq_bp.route("/api/rfqs/analytics", methods=["GET"])
def rfq_analytics():
    caller = _require_roles(*BUYER_ROLES)
    buyer_company_id = (request.args.get("buyer_company_id") or "").strip() or None
    if not caller.is_admin:
        buyer_company_id = caller.company_id
    result = _service().analytics(
        get_read_db(),
        tenant_id=scoped_tenant_id(),
        filters=AnalyticsFilters(
            from_date=_query_date("from_date"),
            to_date=_query_date("to_date"),
            buyer_company_id=buyer_company_id,
        ),
    )
    return _respond(result)


@rfq_bp.route("/api/rfqs/<string:rfq_id>/analytics", methods=["GET"])
def rfq_detail_analytics(rfq_id: str):
    _require_roles(*BUYER_ROLES)
    result = _service().rfq_analytics(get_read_db(), tenant_id=scoped_tenant_id(), rfq_id=rfq_id)
    return _respond(result)


@rfq_bp.route("/api/rfqs/<string:rfq_id>", methods=["GET"])
def get_rfq(rfq_id: str):
    caller = current_caller()
    result = _service().get_rfq(
        get_read_db(),
        tenant_id=scoped_tenant_id(),
        rfq_id=rfq_id,
        viewer_supplier_id=_supplier_view(caller),
    )
    return _respond(result)


@rfq_bp.route("/api/rfqs/<string:rfq_id>", methods=["PUT", "PATCH"])
def update_rfq(rfq_id: str):
    caller = _require_roles(*BUYER_ROLES)
    result = _service().update_rfq(
        get_db(),
        tenant_id=scoped_tenant_id(),
        rfq_id=rfq_id,
        performed_by=caller.user_id,
        changes=_json_body(),
    )
    return _respond(result, "rfq_updated")


@rfq_bp.route("/api/rfqs/<string:rfq_id>/publish", methods=["POST"])
def publish_rfq(rfq_id: str):
    caller = _require_roles(*BUYER_ROLES)
    result = _service().publish_rfq(
        get_db(),
        tenant_id=scoped_tenant_id(),
        rfq_id=rfq_id,
        performed_by=caller.user_id,
    )
    return _respond(result, "rfq_published")


@rfq_bp.route("/api/rfqs/<string:rfq_id>/quotes", methods=["POST"])
def submit_quote(rfq_id: str):
    caller = _require_roles(*SUPPLIER_ROLES)
    payload = _json_body()
    result = _service().submit_quote(
        get_db(),
        tenant_id=scoped_tenant_id(),
        submission=QuoteSubmission(
            rfq_id=rfq_id,
            supplier_id=_acting_supplier(caller, payload),
            payload=payload,
        ),
        performed_by=caller.user_id,
    )
    return _respond(result, "quote_submitted")


@rfq_bp.route("/api/rfqs/<string:rfq_id>/quotes/<string:quote_id>", methods=["PUT"])
def revise_quote(rfq_id: str, quote_id: str):
    caller = _require_roles(*SUPPLIER_ROLES)
    payload = _json_body()
    result = _service().revise_quote(
        get_db(),
        tenant_id=scoped_tenant_id(),
        submission=QuoteSubmission(
            rfq_id=rfq_id,
            supplier_id=_acting_supplier(caller, payload),
            payload=payload,
            quote_id=quote_id,
        ),
        performed_by=caller.user_id,
    )
    return _respond(result, "quote_revised")


@rfq_bp.route("/api/rfqs/<string:rfq_id>/quotes/<string:quote_id>/withdraw", methods=["POST"])
def withdraw_quote(rfq_id: str, quote_id: str):
    caller = _require_roles(*SUPPLIER_ROLES)
    payload = _json_body()
    result = _service().withdraw_quote(
        get_db(),
        tenant_id=scoped_tenant_id(),
        withdrawal=QuoteWithdrawal(
            rfq_id=rfq_id,
            supplier_id=_acting_supplier(caller, payload),
            quote_id=quote_id,
            reason=(payload.get("reason") or "").strip() or None,
        ),
        performed_by=caller.user_id,
    )
    return _respond(result, "quote_withdrawn")


@rfq_bp.route("/api/rfqs/<string:rfq_id>/evaluate", methods=["POST"])
def evaluate_quotes(rfq_id: str):
    _require_roles(*BUYER_ROLES)
    result = _service().evaluate_quotes(get_db(), tenant_id=scoped_tenant_id(), rfq_id=rfq_id)
    return _respond(result, "quotes_evaluated")


@rfq_bp.route("/api/rfqs/<string:rfq_id>/ranking", methods=["GET"])
def rfq_ranking(rfq_id: str):
    _require_roles(*BUYER_ROLES)
    result = _service().get_ranking(get_read_db(), tenant_id=scoped_tenant_id(), rfq_id=rfq_id)
    return _respond(result)


@rfq_bp.route("/api/rfqs/<string:rfq_id>/award", methods=["POST"])
def award_rfq(rfq_id: str):
    caller = _require_roles(*BUYER_ROLES)
    payload = _json_body()
    result = _service().award_rfq(
        get_db(),
        tenant_id=scoped_tenant_id(),
        award_input=AwardInput(
            rfq_id=rfq_id,
            supplier_id=str(payload.get("supplier_id") or "").strip(),
            quote_id=str(payload.get("quote_id") or "").strip(),
            reason=payload.get("reason"),
        ),
        performed_by=caller.user_id,
    )
    return _respond(result, "rfq_awarded")


@rfq_bp.route("/api/rfqs/<string:rfq_id>/cancel", methods=["POST"])
def cancel_rfq(rfq_id: str):
    caller = _require_roles(*BUYER_ROLES)
    payload = _json_body()
    result = _service().cancel_rfq(
        get_db(),
        tenant_id=scoped_tenant_id(),
        rfq_id=rfq_id,
        reason=payload.get("reason"),
        performed_by=caller.user_id,
    )
    return _respond(result, "rfq_cancelled")


@rfq_bp.route("/api/rfqs/<string:rfq_id>/extend-deadline", methods=["POST"])
def extend_deadline(rfq_id: str):
    caller = _require_roles(*BUYER_ROLES)
    payload = _json_body()
    new_date = parse_datetime(payload.get("new_date"))
    if new_date is None:
        raise ValidationError(code="date_invalid", payload={"field": "new_date"})
    result = _service().extend_deadline(
        get_db(),
        tenant_id=scoped_tenant_id(),
        rfq_id=rfq_id,
        new_date=new_date,
        performed_by=caller.user_id,
    )
    return _respond(result, "deadline_extended")


@rfq_bp.route("/api/rfqs/<string:rfq_id>/activity", methods=["GET"])
def rfq_activity(rfq_id: str):
    _require_roles(*BUYER_ROLES)
    result = _service().get_activity(get_read_db(), tenant_id=scoped_tenant_id(), rfq_id=rfq_id)
    return _respond(result)


@rfq_bp.route("/api/suppliers/<string:supplier_id>/quotes", methods=["GET"])
def supplier_quotes(supplier_id: str):
    caller = _require_roles(*SUPPLIER_ROLES)
    if caller.is_supplier and caller.acting_supplier_id() != supplier_id:
        raise AppPermissionError(details=f"{caller.user_id} cannot read quotes of {supplier_id}")
    result = _service().supplier_quotes(get_read_db(), tenant_id=scoped_tenant_id(), supplier_id=supplier_id)
    return _respond(result)


@rfq_bp.route("/api/suppliers/<string:supplier_id>/signals", methods=["PUT"])
def set_supplier_signals(supplier_id: str):
    _require_roles("admin")
    payload = _json_body()
    signals = payload.get("signals", payload)
    result = _service().set_supplier_signals(
        get_db(),
        tenant_id=scoped_tenant_id(),
        supplier_id=supplier_id,
        signals=signals,
    )
    return _respond(result, "signals_updated")
