from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from rfq_platform.domain.rfq import RequestForQuote
from rfq_platform.domain.values import sortable_datetime, utc_now
from rfq_platform.errors import ConcurrencyConflict
from rfq_platform.infrastructure.repositories.base import BaseRepository


class RfqRepository(BaseRepository):
    """Stores each RFQ aggregate as one row: a JSON document plus query columns.

    Writes are optimistic. ``save`` only lands when the row still carries the
    version the caller read; otherwise it raises ConcurrencyConflict and the
    row is left as the winning writer stored it.
    """

    def get(self, db, rfq_id: str) -> RequestForQuote | None:
        row = db.execute(
            """
            SELECT id, version, document
            FROM rfqs
            WHERE id = ? AND tenant_id = ?
            LIMIT 1
            """,
            (rfq_id, self.tenant_id),
        ).fetchone()
        return self._to_aggregate(row) if row else None

    def next_sequence(self, db, period: str) -> int:
        """Atomically reserve the next number of the tenant's monthly sequence."""
        cursor = db.execute(
            """
            INSERT INTO rfq_number_sequences (tenant_id, period, last_value)
            VALUES (?, ?, 1)
            ON CONFLICT (tenant_id, period)
            DO UPDATE SET last_value = rfq_number_sequences.last_value + 1
            RETURNING last_value
            """,
            (self.tenant_id, period),
        )
        row = cursor.fetchone()
        db.commit()
        return int(row["last_value"] if isinstance(row, dict) else row[0])

    def insert(self, db, rfq: RequestForQuote) -> RequestForQuote:
        if rfq.tenant_id != self.tenant_id:
            raise ValueError(f"rfq {rfq.id} belongs to tenant {rfq.tenant_id}")
        rfq.version = 1
        columns = self._projection(rfq)
        try:
            db.execute(
                """
                INSERT INTO rfqs (
                    id, tenant_id, rfq_number, title, category, status, visibility,
                    buyer_id, buyer_company_id, due_date, quote_count, awarded_to,
                    version, document, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    rfq.id,
                    self.tenant_id,
                    rfq.rfq_number,
                    columns["title"],
                    columns["category"],
                    columns["status"],
                    columns["visibility"],
                    rfq.buyer_id,
                    rfq.buyer_company_id,
                    columns["due_date"],
                    columns["quote_count"],
                    columns["awarded_to"],
                    rfq.version,
                    self.dump_json(rfq.to_document()),
                    columns["created_at"],
                    columns["updated_at"],
                ),
            )
            db.commit()
        except Exception:
            db.rollback()
            rfq.version = 0
            raise
        return rfq

    def save(self, db, rfq: RequestForQuote, expected_version: int) -> RequestForQuote:
        new_version = int(expected_version) + 1
        rfq.version = new_version
        columns = self._projection(rfq)
        cursor = db.execute(
            """
            UPDATE rfqs
            SET title = ?,
                category = ?,
                status = ?,
                visibility = ?,
                due_date = ?,
                quote_count = ?,
                awarded_to = ?,
                version = ?,
                document = ?,
                updated_at = ?
            WHERE id = ? AND tenant_id = ? AND version = ?
            """,
            (
                columns["title"],
                columns["category"],
                columns["status"],
                columns["visibility"],
                columns["due_date"],
                columns["quote_count"],
                columns["awarded_to"],
                new_version,
                self.dump_json(rfq.to_document()),
                columns["updated_at"],
                rfq.id,
                self.tenant_id,
                int(expected_version),
            ),
        )
        if cursor.rowcount != 1:
            db.rollback()
            rfq.version = int(expected_version)
            raise ConcurrencyConflict(details=f"rfq {rfq.id} changed since version {expected_version}")
        db.commit()
        return rfq

    def list_documents(
        self,
        db,
        *,
        now: datetime,
        statuses: List[str] | None = None,
        category: str | None = None,
        due_from: datetime | None = None,
        due_to: datetime | None = None,
        buyer_company_id: str | None = None,
    ) -> List[RequestForQuote]:
        clauses = ["tenant_id = ?"]
        params: List[Any] = [self.tenant_id]
        now_key = sortable_datetime(now)

        if statuses:
            status_clauses = []
            for status in statuses:
                clause, clause_params = self._effective_status_clause(status, now_key)
                status_clauses.append(clause)
                params.extend(clause_params)
            clauses.append("(" + " OR ".join(status_clauses) + ")")
        if category:
            clauses.append("category = ?")
            params.append(category)
        if due_from is not None:
            clauses.append("due_date >= ?")
            params.append(sortable_datetime(due_from))
        if due_to is not None:
            clauses.append("due_date <= ?")
            params.append(sortable_datetime(due_to))
        if buyer_company_id:
            clauses.append("buyer_company_id = ?")
            params.append(buyer_company_id)

        rows = db.execute(
            f"""
            SELECT id, version, document
            FROM rfqs
            WHERE {" AND ".join(clauses)}
            ORDER BY created_at DESC, id DESC
            """,
            params,
        ).fetchall()
        return [self._to_aggregate(row) for row in rows]

    def list_past_due_ids(self, db, now: datetime, *, limit: int = 200) -> List[str]:
        rows = db.execute(
            """
            SELECT id
            FROM rfqs
            WHERE tenant_id = ? AND status = 'published' AND due_date < ?
            ORDER BY due_date ASC
            LIMIT ?
            """,
            (self.tenant_id, sortable_datetime(now), int(limit)),
        ).fetchall()
        return [str(row["id"]) for row in rows]

    def status_counts(
        self,
        db,
        *,
        now: datetime,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        buyer_company_id: str | None = None,
    ) -> Dict[str, Any]:
        clauses = ["tenant_id = ?"]
        params: List[Any] = [sortable_datetime(now), sortable_datetime(now), self.tenant_id]
        if created_from is not None:
            clauses.append("created_at >= ?")
            params.append(sortable_datetime(created_from))
        if created_to is not None:
            clauses.append("created_at <= ?")
            params.append(sortable_datetime(created_to))
        if buyer_company_id:
            clauses.append("buyer_company_id = ?")
            params.append(buyer_company_id)

        row = db.execute(
            f"""
            SELECT
                COUNT(*) AS total,
                SUM(CASE WHEN status = 'published' AND due_date >= ? THEN 1 ELSE 0 END) AS published,
                SUM(CASE WHEN status = 'expired' OR (status = 'published' AND due_date < ?) THEN 1 ELSE 0 END)
                    AS expired,
                SUM(CASE WHEN status = 'awarded' THEN 1 ELSE 0 END) AS awarded,
                SUM(CASE WHEN status = 'cancelled' THEN 1 ELSE 0 END) AS cancelled,
                AVG(quote_count) AS average_quotes
            FROM rfqs
            WHERE {" AND ".join(clauses)}
            """,
            params,
        ).fetchone()
        data = dict(row) if row else {}
        return {
            "total": int(data.get("total") or 0),
            "published": int(data.get("published") or 0),
            "expired": int(data.get("expired") or 0),
            "awarded": int(data.get("awarded") or 0),
            "cancelled": int(data.get("cancelled") or 0),
            "average_quotes": float(data.get("average_quotes") or 0),
        }

    def count_by_status(self, db) -> Dict[str, int]:
        rows = db.execute(
            """
            SELECT status, COUNT(*) AS total
            FROM rfqs
            WHERE tenant_id = ?
            GROUP BY status
            """,
            (self.tenant_id,),
        ).fetchall()
        return {str(row["status"]): int(row["total"] or 0) for row in rows}

    @staticmethod
    def _effective_status_clause(status: str, now_key: str) -> tuple[str, List[Any]]:
        # A published RFQ past its due date is listed as expired.
        if status == "published":
            return "(status = 'published' AND due_date >= ?)", [now_key]
        if status == "expired":
            return "(status = 'expired' OR (status = 'published' AND due_date < ?))", [now_key]
        return "status = ?", [status]

    @staticmethod
    def _projection(rfq: RequestForQuote) -> Dict[str, Any]:
        return {
            "title": rfq.title,
            "category": rfq.category,
            "status": rfq.status,
            "visibility": rfq.visibility,
            "due_date": sortable_datetime(rfq.due_date),
            "quote_count": sum(1 for quote in rfq.quotes if quote.supersedes is None),
            "awarded_to": rfq.awarded_to,
            "created_at": sortable_datetime(rfq.created_at or utc_now()),
            "updated_at": sortable_datetime(rfq.updated_at or utc_now()),
        }

    def _to_aggregate(self, row) -> RequestForQuote:
        data = dict(row)
        document = self.load_json(data.get("document"), {}) or {}
        rfq = RequestForQuote.from_document(document)
        rfq.version = int(data.get("version") or 0)
        return rfq


def tenants_with_published_rfqs(db) -> List[str]:
    rows = db.execute(
        """
        SELECT DISTINCT tenant_id
        FROM rfqs
        WHERE status = 'published'
        ORDER BY tenant_id
        """
    ).fetchall()
    return [str(row["tenant_id"]) for row in rows]
