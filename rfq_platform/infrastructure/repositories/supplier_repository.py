from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping

from rfq_platform.domain.evaluation import clamp_score
from rfq_platform.domain.rfq import CRITERIA
from rfq_platform.domain.values import parse_decimal, sortable_datetime, utc_now
from rfq_platform.errors import ValidationError
from rfq_platform.infrastructure.repositories.base import BaseRepository


# Price is always scored from the quotes themselves.
SIGNAL_CRITERIA = tuple(criterion for criterion in CRITERIA if criterion != "price")


class SupplierRepository(BaseRepository):
    """Supplier directory of a tenant, including the scoring signals used in evaluation."""

    def scoring_signals(self, db, supplier_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        ids = sorted({str(value) for value in supplier_ids if value})
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = db.execute(
            f"""
            SELECT id, scoring_signals
            FROM suppliers
            WHERE tenant_id = ? AND id IN ({placeholders})
            """,
            (self.tenant_id, *ids),
        ).fetchall()
        return {str(row["id"]): self.load_json(row["scoring_signals"], {}) or {} for row in rows}

    def upsert_signals(self, db, supplier_id: str, signals: Mapping[str, Any], *, name: str | None = None) -> dict:
        normalized = normalize_signals(signals)
        now_key = sortable_datetime(utc_now())
        db.execute(
            """
            INSERT INTO suppliers (id, tenant_id, name, scoring_signals, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (tenant_id, id)
            DO UPDATE SET scoring_signals = excluded.scoring_signals, updated_at = excluded.updated_at
            """,
            (supplier_id, self.tenant_id, name or supplier_id, self.dump_json(normalized), now_key),
        )
        db.commit()
        return {"id": supplier_id, "scoring_signals": normalized}


def normalize_signals(signals: Mapping[str, Any]) -> Dict[str, str]:
    """Validate a signals payload; values are stored clamped to [0, 100]."""
    if not isinstance(signals, Mapping):
        raise ValidationError(code="signals_invalid")
    unknown = sorted(set(signals) - set(SIGNAL_CRITERIA))
    if unknown:
        raise ValidationError(code="signals_invalid", payload={"unknown": unknown})
    normalized = {}
    for criterion, raw in signals.items():
        if raw is None:
            continue
        value = parse_decimal(raw)
        if value is None:
            raise ValidationError(code="signals_invalid", payload={"field": criterion})
        normalized[criterion] = format(clamp_score(value), "f")
    return normalized
