from __future__ import annotations

from typing import FrozenSet

from rfq_platform.errors import PermissionError as AppPermissionError


VALID_ROLES: FrozenSet[str] = frozenset({"buyer", "supplier", "admin"})

# Buyers own the RFQ lifecycle; suppliers own their quotes. Admin may do both.
BUYER_ROLES = ("buyer", "admin")
SUPPLIER_ROLES = ("supplier", "admin")


def normalize_role(role: str | None, default: str = "buyer") -> str:
    normalized = str(role or "").strip().lower()
    if normalized in VALID_ROLES:
        return normalized
    return default if default in VALID_ROLES else ""


def require_roles(*allowed_roles: str, role: str | None) -> str:
    """Return the normalized role, or raise permission_denied when it is not allowed."""
    normalized_role = normalize_role(role, default="")
    allowed = {normalize_role(item, default="") for item in allowed_roles} - {""}
    if not allowed or normalized_role in allowed:
        return normalized_role
    raise AppPermissionError(
        code="permission_denied",
        details=f"role {normalized_role or 'unknown'} not in {', '.join(sorted(allowed))}",
    )
