from __future__ import annotations

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, Iterable, Protocol, Tuple

from rfq_platform.core.event_bus import EventBus, RfqActivityRecorded, get_event_bus
from rfq_platform.db import ensure_tenant
from rfq_platform.domain import award as award_coordinator
from rfq_platform.domain import quote_ledger, registry
from rfq_platform.domain.audit import ActivityEntry
from rfq_platform.domain.contracts import (
    AnalyticsFilters,
    AwardInput,
    QuoteSubmission,
    QuoteWithdrawal,
    RfqListFilters,
    ServiceOutput,
)
from rfq_platform.domain.evaluation import ScoringPolicy, evaluate_quotes, ranked_list
from rfq_platform.domain.rfq import QUOTE_STATUSES, RFQ_STATUSES, TERMINAL_STATUSES, RequestForQuote
from rfq_platform.domain.values import format_datetime, format_decimal, sortable_datetime, to_utc, utc_now
from rfq_platform.errors import AppError, ConcurrencyConflict, NotFoundError, StateError, ValidationError
from rfq_platform.infrastructure.repositories.rfq_repository import RfqRepository
from rfq_platform.infrastructure.repositories.supplier_repository import SupplierRepository
from rfq_platform.observability import observe_rfq_concurrency_conflict, observe_rfq_operation
from rfq_platform.ui_strings import activity_label, status_label


LOGGER = logging.getLogger("rfq_platform")

DEFAULT_LIST_STATUSES = [status for status in RFQ_STATUSES if status not in {"cancelled", "expired"}]

Mutation = Callable[[RequestForQuote, datetime], ActivityEntry]


class SupplierDirectory(Protocol):
    def scoring_signals(self, db, supplier_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        ...


class RfqService:
    """Entry point for every RFQ operation.

    Each mutation reads the aggregate, applies one domain operation and writes it
    back guarded by the version it read. A stale write is retried from a fresh
    read, so every check (the Eligibility Gate included) runs again against the
    state that will actually be stored.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = utc_now,
        number_prefix: str = "RFQ",
        max_attempts: int = 3,
        list_max_limit: int = 100,
        event_bus: EventBus | None = None,
        rfq_repository_factory: Callable[[str], RfqRepository] | None = None,
        supplier_directory_factory: Callable[[str], SupplierDirectory] | None = None,
    ) -> None:
        self.clock = clock
        self.number_prefix = (number_prefix or "RFQ").strip().upper()
        self.max_attempts = max(1, int(max_attempts))
        self.list_max_limit = max(1, int(list_max_limit))
        self.event_bus = event_bus or get_event_bus()
        self._rfq_repository_factory = rfq_repository_factory or (lambda tenant_id: RfqRepository(tenant_id=tenant_id))
        self._supplier_directory_factory = supplier_directory_factory or (
            lambda tenant_id: SupplierRepository(tenant_id=tenant_id)
        )

    # -- plumbing ------------------------------------------------------------

    def _now(self) -> datetime:
        return to_utc(self.clock())

    def _load(self, db, repository: RfqRepository, rfq_id: str) -> RequestForQuote:
        rfq = repository.get(db, rfq_id)
        if rfq is None:
            raise NotFoundError(code="rfq_not_found", details=f"rfq {rfq_id} not found")
        return rfq

    def _mutate(self, db, *, tenant_id: str, rfq_id: str, operation: str, mutation: Mutation) -> Tuple[RequestForQuote, ActivityEntry]:
        repository = self._rfq_repository_factory(tenant_id)
        attempt = 0
        while True:
            attempt += 1
            rfq = self._load(db, repository, rfq_id)
            expected_version = rfq.version
            now = self._now()
            try:
                entry = mutation(rfq, now)
                registry.validate_for_write(rfq)
            except AppError:
                observe_rfq_operation(operation, "rejected", attempt)
                raise
            rfq.updated_at = now

            try:
                repository.save(db, rfq, expected_version)
            except ConcurrencyConflict:
                observe_rfq_concurrency_conflict(operation)
                LOGGER.warning(
                    "rfq_write_conflict",
                    extra={
                        "tenant_id": tenant_id,
                        "rfq_id": rfq_id,
                        "operation": operation,
                        "attempt": attempt,
                        "expected_version": expected_version,
                    },
                )
                if attempt >= self.max_attempts:
                    observe_rfq_operation(operation, "conflict", attempt)
                    raise
                continue

            observe_rfq_operation(operation, "ok", attempt)
            self._announce(rfq, entry)
            return rfq, entry

    def _announce(self, rfq: RequestForQuote, entry: ActivityEntry) -> None:
        entry_payload = entry.to_dict()
        LOGGER.info(
            entry.action,
            extra={
                "tenant_id": rfq.tenant_id,
                "rfq_id": rfq.id,
                "rfq_number": rfq.rfq_number,
                "performed_by": entry.performed_by,
                "sequence": entry.sequence,
                "version": rfq.version,
            },
        )
        self.event_bus.publish(
            RfqActivityRecorded(
                tenant_id=rfq.tenant_id,
                occurred_at=entry.timestamp,
                rfq_id=rfq.id,
                rfq_number=rfq.rfq_number,
                action=entry.action,
                performed_by=entry.performed_by,
                sequence=entry.sequence,
                details=entry_payload["details"],
                version=rfq.version,
            )
        )

    def _mutation_output(
        self,
        rfq: RequestForQuote,
        entry: ActivityEntry,
        now: datetime,
        *,
        viewer_supplier_id: str | None = None,
        status_code: int = 200,
    ) -> ServiceOutput:
        return ServiceOutput(
            payload={
                "rfq": rfq_view(rfq, now, viewer_supplier_id=viewer_supplier_id),
                "activity": entry.to_dict(),
            },
            status_code=status_code,
        )

    # -- registry ------------------------------------------------------------

    def create_rfq(
        self,
        db,
        *,
        tenant_id: str,
        performed_by: str,
        buyer_company_id: str | None,
        data: Dict[str, Any],
    ) -> ServiceOutput:
        now = self._now()
        rfq = registry.build_rfq(
            data,
            tenant_id=tenant_id,
            buyer_id=performed_by,
            buyer_company_id=buyer_company_id,
            now=now,
        )
        repository = self._rfq_repository_factory(tenant_id)
        ensure_tenant(db, tenant_id)
        period = registry.number_period(now)
        sequence = repository.next_sequence(db, period)
        entry = registry.register_rfq(
            rfq,
            registry.format_rfq_number(self.number_prefix, period, sequence),
            now,
            performed_by,
        )
        repository.insert(db, rfq)
        observe_rfq_operation("create", "ok", 1)
        self._announce(rfq, entry)
        return self._mutation_output(rfq, entry, now, status_code=201)

    def list_rfqs(
        self,
        db,
        *,
        tenant_id: str,
        filters: RfqListFilters,
        viewer_supplier_id: str | None = None,
    ) -> ServiceOutput:
        statuses = [str(status).strip().lower() for status in filters.status if str(status).strip()]
        invalid = [status for status in statuses if status not in RFQ_STATUSES]
        if invalid:
            raise ValidationError(code="status_filter_invalid", payload={"status": invalid})

        page = max(1, int(filters.page or 1))
        limit = max(1, min(int(filters.limit or 20), self.list_max_limit))
        now = self._now()
        repository = self._rfq_repository_factory(tenant_id)
        rfqs = repository.list_documents(
            db,
            now=now,
            statuses=statuses or DEFAULT_LIST_STATUSES,
            category=(filters.category or "").strip() or None,
            due_from=filters.from_date,
            due_to=filters.to_date,
        )
        if viewer_supplier_id is not None:
            rfqs = [rfq for rfq in rfqs if visible_to_supplier(rfq, viewer_supplier_id)]

        offset = (page - 1) * limit
        return ServiceOutput(
            payload={
                "items": [rfq_summary(rfq, now) for rfq in rfqs[offset : offset + limit]],
                "page": page,
                "limit": limit,
                "total": len(rfqs),
            }
        )

    def get_rfq(self, db, *, tenant_id: str, rfq_id: str, viewer_supplier_id: str | None = None) -> ServiceOutput:
        repository = self._rfq_repository_factory(tenant_id)
        rfq = self._load(db, repository, rfq_id)
        if viewer_supplier_id is not None and not visible_to_supplier(rfq, viewer_supplier_id):
            raise NotFoundError(code="rfq_not_found", details=f"rfq {rfq_id} hidden from {viewer_supplier_id}")
        return ServiceOutput(payload={"rfq": rfq_view(rfq, self._now(), viewer_supplier_id=viewer_supplier_id)})

    def update_rfq(self, db, *, tenant_id: str, rfq_id: str, performed_by: str, changes: Dict[str, Any]) -> ServiceOutput:
        rfq, entry = self._mutate(
            db,
            tenant_id=tenant_id,
            rfq_id=rfq_id,
            operation="update",
            mutation=lambda rfq, now: registry.update_rfq(rfq, changes, now, performed_by),
        )
        return self._mutation_output(rfq, entry, entry.timestamp)

    def publish_rfq(self, db, *, tenant_id: str, rfq_id: str, performed_by: str) -> ServiceOutput:
        rfq, entry = self._mutate(
            db,
            tenant_id=tenant_id,
            rfq_id=rfq_id,
            operation="publish",
            mutation=lambda rfq, now: registry.publish(rfq, now, performed_by),
        )
        return self._mutation_output(rfq, entry, entry.timestamp)

    def expire_rfq(self, db, *, tenant_id: str, rfq_id: str, performed_by: str = "system") -> ActivityEntry | None:
        """Persist the expiry of a past-due RFQ. None when it is not past due anymore."""
        repository = self._rfq_repository_factory(tenant_id)
        rfq = self._load(db, repository, rfq_id)
        expected_version = rfq.version
        now = self._now()
        entry = registry.apply_lazy_expiry(rfq, now, performed_by)
        if entry is None:
            return None
        try:
            registry.validate_for_write(rfq)
        except AppError:
            observe_rfq_operation("expire", "rejected", 1)
            raise
        rfq.updated_at = now
        try:
            repository.save(db, rfq, expected_version)
        except ConcurrencyConflict:
            observe_rfq_concurrency_conflict("expire")
            observe_rfq_operation("expire", "conflict", 1)
            raise
        observe_rfq_operation("expire", "ok", 1)
        self._announce(rfq, entry)
        return entry

    # -- quote ledger --------------------------------------------------------

    def submit_quote(self, db, *, tenant_id: str, submission: QuoteSubmission, performed_by: str) -> ServiceOutput:
        supplier_id = _require_supplier(submission.supplier_id)
        draft = quote_ledger.draft_from_payload(supplier_id, submission.payload or {})
        rfq, entry = self._mutate(
            db,
            tenant_id=tenant_id,
            rfq_id=submission.rfq_id,
            operation="submit_quote",
            mutation=lambda rfq, now: quote_ledger.submit_quote(rfq, draft, now, performed_by),
        )
        return self._mutation_output(rfq, entry, entry.timestamp, viewer_supplier_id=supplier_id, status_code=201)

    def revise_quote(self, db, *, tenant_id: str, submission: QuoteSubmission, performed_by: str) -> ServiceOutput:
        supplier_id = _require_supplier(submission.supplier_id)
        draft = quote_ledger.draft_from_payload(supplier_id, submission.payload or {})
        rfq, entry = self._mutate(
            db,
            tenant_id=tenant_id,
            rfq_id=submission.rfq_id,
            operation="revise_quote",
            mutation=lambda rfq, now: quote_ledger.submit_quote(
                rfq,
                draft,
                now,
                performed_by,
                revise=True,
                quote_id=submission.quote_id,
            ),
        )
        return self._mutation_output(rfq, entry, entry.timestamp, viewer_supplier_id=supplier_id)

    def withdraw_quote(self, db, *, tenant_id: str, withdrawal: QuoteWithdrawal, performed_by: str) -> ServiceOutput:
        supplier_id = _require_supplier(withdrawal.supplier_id)
        rfq, entry = self._mutate(
            db,
            tenant_id=tenant_id,
            rfq_id=withdrawal.rfq_id,
            operation="withdraw_quote",
            mutation=lambda rfq, now: quote_ledger.withdraw_quote(
                rfq,
                supplier_id,
                withdrawal.quote_id,
                withdrawal.reason,
                now,
                performed_by,
            ),
        )
        return self._mutation_output(rfq, entry, entry.timestamp, viewer_supplier_id=supplier_id)

    # -- evaluation ----------------------------------------------------------

    def evaluate_quotes(self, db, *, tenant_id: str, rfq_id: str) -> ServiceOutput:
        """Score and rank the open quotes.

        A write that loses the version race is dropped rather than retried; the
        ranking is still returned with ``persisted`` set to False.
        """
        repository = self._rfq_repository_factory(tenant_id)
        rfq = self._load(db, repository, rfq_id)
        now = self._now()
        status = rfq.effective_status(now)
        if status in TERMINAL_STATUSES:
            raise StateError(code="rfq_terminal", details=f"evaluate: rfq {rfq_id} is {status}")
        if status != "published":
            raise StateError(code="rfq_not_published", details=f"evaluate: rfq {rfq_id} is {status}")

        expected_version = rfq.version
        supplier_ids = {quote.supplier_id for quote in rfq.open_quotes()}
        signals = self._supplier_directory_factory(tenant_id).scoring_signals(db, supplier_ids) if supplier_ids else {}
        result = evaluate_quotes(rfq, ScoringPolicy(signals))

        persisted = True
        if result.changed:
            try:
                registry.validate_for_write(rfq)
            except AppError:
                observe_rfq_operation("evaluate", "rejected", 1)
                raise
            rfq.updated_at = now
            try:
                repository.save(db, rfq, expected_version)
            except ConcurrencyConflict:
                persisted = False
                observe_rfq_concurrency_conflict("evaluate")
                LOGGER.warning(
                    "rfq_evaluation_discarded",
                    extra={"tenant_id": tenant_id, "rfq_id": rfq_id, "expected_version": expected_version},
                )
        observe_rfq_operation("evaluate", "ok" if persisted else "discarded", 1)
        return ServiceOutput(
            payload={
                "rfq_id": rfq.id,
                "rfq_number": rfq.rfq_number,
                "ranking": [row.to_dict() for row in result.ranking],
                "evaluated": len(result.ranking),
                "changed": result.changed,
                "persisted": persisted,
                "version": rfq.version,
            }
        )

    def get_ranking(self, db, *, tenant_id: str, rfq_id: str) -> ServiceOutput:
        repository = self._rfq_repository_factory(tenant_id)
        rfq = self._load(db, repository, rfq_id)
        status = rfq.effective_status(self._now())
        return ServiceOutput(
            payload={
                "rfq_id": rfq.id,
                "rfq_number": rfq.rfq_number,
                "status": status,
                # Once the RFQ left published the stored ranking is informational only.
                "advisory": status != "published",
                "ranking": ranked_list(rfq),
            }
        )

    # -- award coordinator ---------------------------------------------------

    def award_rfq(self, db, *, tenant_id: str, award_input: AwardInput, performed_by: str) -> ServiceOutput:
        supplier_id = _require_supplier(award_input.supplier_id)
        rfq, entry = self._mutate(
            db,
            tenant_id=tenant_id,
            rfq_id=award_input.rfq_id,
            operation="award",
            mutation=lambda rfq, now: award_coordinator.award_to_supplier(
                rfq,
                supplier_id,
                award_input.quote_id,
                award_input.reason,
                now,
                performed_by,
            ),
        )
        return self._mutation_output(rfq, entry, entry.timestamp)

    def cancel_rfq(self, db, *, tenant_id: str, rfq_id: str, reason: str | None, performed_by: str) -> ServiceOutput:
        rfq, entry = self._mutate(
            db,
            tenant_id=tenant_id,
            rfq_id=rfq_id,
            operation="cancel",
            mutation=lambda rfq, now: award_coordinator.cancel_rfq(rfq, reason, now, performed_by),
        )
        return self._mutation_output(rfq, entry, entry.timestamp)

    def extend_deadline(self, db, *, tenant_id: str, rfq_id: str, new_date: datetime, performed_by: str) -> ServiceOutput:
        rfq, entry = self._mutate(
            db,
            tenant_id=tenant_id,
            rfq_id=rfq_id,
            operation="extend_deadline",
            mutation=lambda rfq, now: award_coordinator.extend_deadline(rfq, new_date, now, performed_by),
        )
        return self._mutation_output(rfq, entry, entry.timestamp)

    # -- read models ---------------------------------------------------------

    def get_activity(self, db, *, tenant_id: str, rfq_id: str) -> ServiceOutput:
        repository = self._rfq_repository_factory(tenant_id)
        rfq = self._load(db, repository, rfq_id)
        entries = []
        for entry in rfq.activity_log:
            row = entry.to_dict()
            row["label"] = activity_label(entry.action)
            entries.append(row)
        return ServiceOutput(payload={"rfq_id": rfq.id, "rfq_number": rfq.rfq_number, "items": entries})

    def analytics(self, db, *, tenant_id: str, filters: AnalyticsFilters) -> ServiceOutput:
        now = self._now()
        repository = self._rfq_repository_factory(tenant_id)
        counts = repository.status_counts(
            db,
            now=now,
            created_from=filters.from_date,
            created_to=filters.to_date,
            buyer_company_id=filters.buyer_company_id,
        )
        awarded = repository.list_documents(
            db,
            now=now,
            statuses=["awarded"],
            buyer_company_id=filters.buyer_company_id,
        )
        savings = []
        for rfq in awarded:
            if filters.from_date is not None and rfq.created_at and rfq.created_at < to_utc(filters.from_date):
                continue
            if filters.to_date is not None and rfq.created_at and rfq.created_at > to_utc(filters.to_date):
                continue
            percent = savings_percent(rfq)
            if percent is not None:
                savings.append(percent)

        total = counts["total"]
        average_savings = sum(savings, Decimal(0)) / len(savings) if savings else Decimal(0)
        return ServiceOutput(
            payload={
                "overview": {
                    "total_rfqs": total,
                    "published_rfqs": counts["published"],
                    "expired_rfqs": counts["expired"],
                    "awarded_rfqs": counts["awarded"],
                    "cancelled_rfqs": counts["cancelled"],
                    "conversion_rate": round(counts["awarded"] * 100.0 / total, 2) if total else 0.0,
                },
                "performance": {
                    "average_quotes_per_rfq": round(counts["average_quotes"], 2),
                    "average_savings_percent": round(float(average_savings), 2),
                },
                "filters": {
                    "from_date": format_datetime(filters.from_date),
                    "to_date": format_datetime(filters.to_date),
                    "buyer_company_id": filters.buyer_company_id,
                },
            }
        )

    def rfq_analytics(self, db, *, tenant_id: str, rfq_id: str) -> ServiceOutput:
        """Per-RFQ figures: submissions, price spread, status breakdown and response time."""
        repository = self._rfq_repository_factory(tenant_id)
        rfq = self._load(db, repository, rfq_id)
        # Superseded revisions are closed as withdrawn; they count once through their original.
        submissions = [quote for quote in rfq.quotes if quote.supersedes is None]
        priced = [quote.total_amount for quote in rfq.quotes if quote.status != "withdrawn"]

        by_status = {status: 0 for status in QUOTE_STATUSES}
        for quote in rfq.quotes:
            by_status[quote.status] = by_status.get(quote.status, 0) + 1

        average_price = None
        price_range = None
        if priced:
            average_price = _money(sum(priced, Decimal(0)) / len(priced))
            price_range = {"min": _money(min(priced)), "max": _money(max(priced))}

        response_hours = 0.0
        if submissions and rfq.status != "draft" and rfq.issued_date is not None:
            elapsed = [
                (quote.submitted_at - rfq.issued_date).total_seconds()
                for quote in submissions
                if quote.submitted_at is not None
            ]
            if elapsed:
                response_hours = round(sum(elapsed) / len(elapsed) / 3600, 2)

        return ServiceOutput(
            payload={
                "rfq_id": rfq.id,
                "rfq_number": rfq.rfq_number,
                "status": rfq.effective_status(self._now()),
                "total_quotes": len(submissions),
                "average_price": average_price,
                "price_range": price_range,
                "quotes_by_status": by_status,
                "average_response_hours": response_hours,
            }
        )

    def supplier_quotes(self, db, *, tenant_id: str, supplier_id: str) -> ServiceOutput:
        supplier_id = _require_supplier(supplier_id)
        now = self._now()
        repository = self._rfq_repository_factory(tenant_id)
        items = []
        for rfq in repository.list_documents(db, now=now):
            for quote in rfq.quotes:
                if quote.supplier_id != supplier_id:
                    continue
                row = quote.to_document()
                row.pop("score", None)
                row.pop("ranking", None)
                row["rfq_id"] = rfq.id
                row["rfq_number"] = rfq.rfq_number
                row["rfq_title"] = rfq.title
                row["rfq_status"] = rfq.effective_status(now)
                row["awarded"] = rfq.awarded_quote == quote.id
                items.append((quote.submitted_at, row))
        items.sort(key=lambda pair: sortable_datetime(pair[0]) if pair[0] else "", reverse=True)
        return ServiceOutput(payload={"supplier_id": supplier_id, "items": [row for _, row in items]})

    def set_supplier_signals(self, db, *, tenant_id: str, supplier_id: str, signals: Dict[str, Any]) -> ServiceOutput:
        supplier_id = _require_supplier(supplier_id)
        ensure_tenant(db, tenant_id)
        stored = SupplierRepository(tenant_id=tenant_id).upsert_signals(db, supplier_id, signals)
        LOGGER.info("supplier_signals_updated", extra={"tenant_id": tenant_id, "supplier_id": supplier_id})
        return ServiceOutput(payload={"supplier": stored})


def _money(value: Decimal) -> str | None:
    return format_decimal(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _require_supplier(supplier_id: str | None) -> str:
    supplier_id = str(supplier_id or "").strip()
    if not supplier_id:
        raise ValidationError(code="supplier_required", payload={"field": "supplier_id"})
    return supplier_id


def visible_to_supplier(rfq: RequestForQuote, supplier_id: str) -> bool:
    if rfq.status == "draft" or rfq.visibility == "private":
        return False
    if supplier_id in rfq.excluded_suppliers:
        return False
    if rfq.visibility == "invited" and supplier_id not in rfq.invited_suppliers:
        return False
    return True


def rfq_view(rfq: RequestForQuote, now: datetime, *, viewer_supplier_id: str | None = None) -> Dict[str, Any]:
    document = rfq.to_document()
    document["status"] = rfq.effective_status(now)
    document["quote_count"] = sum(1 for quote in rfq.quotes if quote.supersedes is None)
    if viewer_supplier_id is None:
        return document

    own_quotes = []
    for quote in document["quotes"]:
        if quote["supplier_id"] != viewer_supplier_id:
            continue
        quote = dict(quote)
        quote.pop("score", None)
        quote.pop("ranking", None)
        own_quotes.append(quote)
    document["quotes"] = own_quotes
    for hidden in ("activity_log", "excluded_suppliers", "preferred_suppliers", "invited_suppliers", "award_reason"):
        document.pop(hidden, None)
    return document


def rfq_summary(rfq: RequestForQuote, now: datetime) -> Dict[str, Any]:
    status = rfq.effective_status(now)
    return {
        "id": rfq.id,
        "rfq_number": rfq.rfq_number,
        "title": rfq.title,
        "category": rfq.category,
        "status": status,
        "status_label": status_label("cotacao", status),
        "visibility": rfq.visibility,
        "due_date": format_datetime(rfq.due_date),
        "valid_until": format_datetime(rfq.valid_until),
        "buyer_company_id": rfq.buyer_company_id,
        "awarded_to": rfq.awarded_to,
        "created_at": format_datetime(rfq.created_at),
    }


def savings_percent(rfq: RequestForQuote) -> Decimal | None:
    """Target budget versus awarded amount; None when a target price is missing."""
    quote = rfq.quote_by_id(rfq.awarded_quote) if rfq.awarded_quote else None
    if quote is None or not rfq.items:
        return None
    if any(item.target_price is None for item in rfq.items):
        return None
    target_total = sum((item.target_price * item.quantity for item in rfq.items), Decimal(0))
    if target_total <= 0:
        return None
    return (target_total - quote.total_amount) * 100 / target_total


def build_rfq_service(config: Dict[str, Any], **overrides) -> RfqService:
    """Service wired from a Flask config mapping."""
    getter = config.get
    options: Dict[str, Any] = {
        "number_prefix": getter("RFQ_NUMBER_PREFIX", "RFQ"),
        "max_attempts": getter("RFQ_WRITE_MAX_ATTEMPTS", 3),
        "list_max_limit": getter("RFQ_LIST_MAX_LIMIT", 100),
    }
    options.update(overrides)
    return RfqService(**options)

