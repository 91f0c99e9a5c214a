from __future__ import annotations

from typing import Any, Dict

from rfq_platform.ui_strings import error_message


class AppError(Exception):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True

    def __init__(
        self,
        code: str | None = None,
        message_key: str | None = None,
        http_status: int | None = None,
        critical: bool | None = None,
        details: str | None = None,
        payload: Dict[str, Any] | None = None,
    ) -> None:
        self.code = (code or self.default_code).strip()
        self.message_key = (message_key or code or self.default_message_key).strip()
        self.http_status = int(http_status or self.default_http_status)
        self.critical = bool(self.default_critical if critical is None else critical)
        self.details = (details or "").strip() or None
        self.payload = dict(payload or {})
        super().__init__(self.details or self.code)

    def user_message(self) -> str:
        fallback = error_message("unexpected_error", "Nao foi possivel concluir a operacao.")
        return error_message(self.message_key, error_message(self.default_message_key, fallback))

    def to_response_payload(self, request_id: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.code,
            "message": self.user_message(),
            "request_id": request_id,
        }
        if self.payload:
            payload.update(self.payload)
        return payload


class UserActionError(AppError):
    default_code = "action_invalid"
    default_message_key = "action_invalid"
    default_http_status = 400
    default_critical = False


class ValidationError(UserActionError):
    """Malformed input. Rejected before any mutation and never retried."""

    default_code = "validation_error"
    default_message_key = "validation_error"
    default_http_status = 400
    default_critical = False


class NotFoundError(UserActionError):
    default_code = "not_found"
    default_message_key = "not_found"
    default_http_status = 404
    default_critical = False


class PermissionError(UserActionError):
    default_code = "permission_denied"
    default_message_key = "permission_denied"
    default_http_status = 403
    default_critical = False


class StateError(UserActionError):
    """Operation invalid for the current status; the caller must re-fetch state."""

    default_code = "invalid_state"
    default_message_key = "invalid_state"
    default_http_status = 409
    default_critical = False


class EligibilityError(UserActionError):
    """Supplier is not allowed to (re)submit. ``rule`` names the vetoing rule."""

    default_code = "eligibility_denied"
    default_message_key = "eligibility_denied"
    default_http_status = 422
    default_critical = False

    def __init__(self, rule: str, **kwargs) -> None:
        self.rule = str(rule or "").strip()
        payload = dict(kwargs.pop("payload", None) or {})
        payload.setdefault("rule", self.rule)
        kwargs.setdefault("code", _rule_code(self.rule))
        super().__init__(payload=payload, **kwargs)


class ConcurrencyConflict(AppError):
    """Stale aggregate version at commit. The only error retried automatically."""

    default_code = "concurrency_conflict"
    default_message_key = "concurrency_conflict"
    default_http_status = 503
    default_critical = False


class SystemError(AppError):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True


def _rule_code(rule: str) -> str:
    # DuplicateQuote -> duplicate_quote
    chars = []
    for index, char in enumerate(rule):
        if char.isupper() and index > 0:
            chars.append("_")
        chars.append(char.lower())
    return "".join(chars) or EligibilityError.default_code
