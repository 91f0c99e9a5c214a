from __future__ import annotations

from dataclasses import dataclass

from flask import g, jsonify, request, session

from rfq_platform.observability import ensure_request_id
from rfq_platform.policies import normalize_role
from rfq_platform.tenant import scoped_tenant_id
from rfq_platform.ui_strings import error_message


USER_HEADER = "X-User-Id"
ROLE_HEADER = "X-User-Role"
COMPANY_HEADER = "X-Company-Id"
ANONYMOUS_USER = "anonymous"

_PUBLIC_PATHS = {"/health", "/metrics"}


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: str
    company_id: str | None
    tenant_id: str

    @property
    def is_authenticated(self) -> bool:
        return self.user_id != ANONYMOUS_USER

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_supplier(self) -> bool:
        return self.role == "supplier"

    def acting_supplier_id(self, requested: str | None = None) -> str | None:
        """Suppliers always act as their own company; admins may act for any supplier."""
        if self.is_supplier:
            return self.company_id or self.user_id
        requested = str(requested or "").strip()
        return requested or None


def _resolve_caller() -> Caller:
    user_id = str(session.get("user_id") or request.headers.get(USER_HEADER) or "").strip()
    role = session.get("user_role") or request.headers.get(ROLE_HEADER)
    company_id = str(session.get("company_id") or request.headers.get(COMPANY_HEADER) or "").strip()
    return Caller(
        user_id=user_id or ANONYMOUS_USER,
        role=normalize_role(role, default="buyer"),
        company_id=company_id or None,
        tenant_id=scoped_tenant_id(),
    )


def current_caller() -> Caller:
    caller = getattr(g, "caller", None)
    if caller is None:
        caller = _resolve_caller()
        g.caller = caller
    return caller


def register_identity(app) -> None:
    @app.before_request
    def _require_caller():
        if not app.config.get("AUTH_ENABLED", True):
            return None
        path = request.path or "/"
        if path in _PUBLIC_PATHS or not path.startswith("/api/"):
            return None
        if current_caller().is_authenticated:
            return None
        return (
            jsonify(
                {
                    "error": "auth_required",
                    "message": error_message("auth_required", "Autenticacao necessaria."),
                    "request_id": ensure_request_id(),
                }
            ),
            401,
        )