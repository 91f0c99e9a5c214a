import unittest
from datetime import timedelta
from decimal import Decimal

from rfq_platform.application.rfq_service import RfqService, build_rfq_service, savings_percent
from rfq_platform.core.event_bus import EventBus, RfqActivityRecorded
from rfq_platform.db import _init_db_sqlite
from rfq_platform.domain.contracts import (
    AnalyticsFilters,
    AwardInput,
    QuoteSubmission,
    QuoteWithdrawal,
    RfqListFilters,
)
from rfq_platform.domain.eligibility import DUPLICATE_QUOTE, RFQ_NOT_ACTIVE
from rfq_platform.errors import ConcurrencyConflict, EligibilityError, NotFoundError, StateError, ValidationError
from rfq_platform.infrastructure.repositories.rfq_repository import RfqRepository
from rfq_platform.infrastructure.repositories.supplier_repository import SupplierRepository
from rfq_platform.observability import metrics_snapshot, reset_metrics_for_tests
from tests.helpers.rfq_factory import FIXED_NOW, FrozenClock, quote_payload, rfq_payload
from tests.helpers.temp_db import TempDbSandbox


TENANT = "tenant-test"


class RacingRfqRepository(RfqRepository):
    """Runs ``rival`` right before the next save, as a competing writer would."""

    def __init__(self, *, tenant_id: str) -> None:
        super().__init__(tenant_id=tenant_id)
        self.rival = None
        self.save_calls = 0

    def save(self, db, rfq, expected_version):
        self.save_calls += 1
        rival, self.rival = self.rival, None
        if rival is not None:
            rival()
        return super().save(db, rfq, expected_version)


class AlwaysStaleRfqRepository(RfqRepository):
    def __init__(self, *, tenant_id: str) -> None:
        super().__init__(tenant_id=tenant_id)
        self.save_calls = 0

    def save(self, db, rfq, expected_version):
        self.save_calls += 1
        raise ConcurrencyConflict(details="forced")


class RfqServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        reset_metrics_for_tests()
        self.sandbox = TempDbSandbox()
        self.db = self.sandbox.connect()
        _init_db_sqlite(self.db)
        self.db.commit()
        self.clock = FrozenClock()
        self.bus = EventBus()
        self.service = RfqService(clock=self.clock, event_bus=self.bus)

    def tearDown(self) -> None:
        self.db.close()
        self.sandbox.cleanup()
        reset_metrics_for_tests()

    def _create(self, service: RfqService | None = None, tenant_id: str = TENANT, **overrides) -> dict:
        service = service or self.service
        result = service.create_rfq(
            self.db,
            tenant_id=tenant_id,
            performed_by="buyer-1",
            buyer_company_id="acme",
            data=rfq_payload(FIXED_NOW, **overrides),
        )
        return result.payload["rfq"]

    def _published(self, **overrides) -> dict:
        rfq = self._create(**overrides)
        return self.service.publish_rfq(self.db, tenant_id=TENANT, rfq_id=rfq["id"], performed_by="buyer-1").payload["rfq"]

    def _submit(self, rfq_id: str, supplier_id: str, price: str = "300", service: RfqService | None = None):
        service = service or self.service
        return service.submit_quote(
            self.db,
            tenant_id=TENANT,
            submission=QuoteSubmission(rfq_id=rfq_id, supplier_id=supplier_id, payload=quote_payload(price)),
            performed_by=supplier_id,
        )

    def _stored(self, rfq_id: str):
        return RfqRepository(tenant_id=TENANT).get(self.db, rfq_id)


class CreateAndNumberTest(RfqServiceTestCase):
    def test_create_assigns_sequential_numbers_per_tenant(self) -> None:
        first = self._create()
        second = self._create()
        other = self._create(tenant_id="tenant-other")

        self.assertEqual(first["rfq_number"], "RFQ-2603-00001")
        self.assertEqual(second["rfq_number"], "RFQ-2603-00002")
        self.assertEqual(other["rfq_number"], "RFQ-2603-00001")
        self.assertEqual(first["status"], "draft")
        self.assertEqual(first["version"], 1)
        self.assertEqual(first["activity_log"][0]["action"], "rfq_created")

    def test_configured_prefix(self) -> None:
        service = build_rfq_service({"RFQ_NUMBER_PREFIX": "cot"}, clock=self.clock, event_bus=self.bus)
        rfq = self._create(service=service)
        self.assertEqual(rfq["rfq_number"], "COT-2603-00001")

    def test_invalid_payload_reserves_nothing(self) -> None:
        with self.assertRaises(ValidationError):
            self._create(title="")
        self.assertEqual(self._create()["rfq_number"], "RFQ-2603-00001")

    def test_create_returns_201_and_persists(self) -> None:
        result = self.service.create_rfq(
            self.db,
            tenant_id=TENANT,
            performed_by="buyer-1",
            buyer_company_id="acme",
            data=rfq_payload(FIXED_NOW),
        )
        self.assertEqual(result.status_code, 201)
        stored = self._stored(result.payload["rfq"]["id"])
        self.assertEqual(stored.title, "Parafusos para linha de montagem")
        self.assertEqual(stored.buyer_id, "buyer-1")


class MutationTest(RfqServiceTestCase):
    def test_each_write_bumps_the_version(self) -> None:
        rfq = self._published()
        self.assertEqual(rfq["version"], 2)
        result = self._submit(rfq["id"], "sup-a")
        self.assertEqual(result.status_code, 201)
        self.assertEqual(result.payload["rfq"]["version"], 3)
        self.assertEqual(self._stored(rfq["id"]).version, 3)

    def test_rejected_mutation_is_not_written(self) -> None:
        rfq = self._published()
        with self.assertRaises(StateError):
            self.service.update_rfq(
                self.db,
                tenant_id=TENANT,
                rfq_id=rfq["id"],
                performed_by="buyer-1",
                changes={"title": "Outro"},
            )
        self.assertEqual(self._stored(rfq["id"]).version, 2)
        self.assertEqual(metrics_snapshot()["rfq"]["operations"]["update"], {"rejected": 1})

    def test_invalid_stored_document_is_never_rewritten(self) -> None:
        rfq = self._published()
        self._submit(rfq["id"], "sup-a")
        repository = RfqRepository(tenant_id=TENANT)
        stored = repository.get(self.db, rfq["id"])
        # Weights now total 70.
        stored.selection_criteria.price = Decimal("10")
        repository.save(self.db, stored, stored.version)
        version = self._stored(rfq["id"]).version

        with self.assertRaises(ValidationError) as ctx:
            self._submit(rfq["id"], "sup-b")
        self.assertEqual(ctx.exception.code, "weights_sum_invalid")
        with self.assertRaises(ValidationError):
            self.service.evaluate_quotes(self.db, tenant_id=TENANT, rfq_id=rfq["id"])

        after = self._stored(rfq["id"])
        self.assertEqual([quote.supplier_id for quote in after.quotes], ["sup-a"])
        self.assertIsNone(after.quotes[0].score)
        self.assertEqual(after.version, version)
        snapshot = metrics_snapshot()["rfq"]["operations"]
        self.assertEqual(snapshot["submit_quote"], {"ok": 1, "rejected": 1})
        self.assertEqual(snapshot["evaluate"], {"rejected": 1})

    def test_unknown_rfq_is_not_found(self) -> None:
        with self.assertRaises(NotFoundError) as ctx:
            self.service.publish_rfq(self.db, tenant_id=TENANT, rfq_id="missing", performed_by="buyer-1")
        self.assertEqual(ctx.exception.code, "rfq_not_found")

    def test_other_tenant_cannot_see_rfq(self) -> None:
        rfq = self._create()
        with self.assertRaises(NotFoundError):
            self.service.get_rfq(self.db, tenant_id="tenant-other", rfq_id=rfq["id"])

    def test_supplier_is_required(self) -> None:
        rfq = self._published()
        with self.assertRaises(ValidationError) as ctx:
            self._submit(rfq["id"], "  ")
        self.assertEqual(ctx.exception.code, "supplier_required")

    def test_revise_and_withdraw(self) -> None:
        rfq = self._published()
        quote_id = self._submit(rfq["id"], "sup-a", "300").payload["activity"]["details"]["quote_id"]

        revised = self.service.revise_quote(
            self.db,
            tenant_id=TENANT,
            submission=QuoteSubmission(
                rfq_id=rfq["id"],
                supplier_id="sup-a",
                payload=quote_payload("280"),
                quote_id=quote_id,
            ),
            performed_by="sup-a",
        )
        new_quote_id = revised.payload["activity"]["details"]["quote_id"]
        self.assertEqual(revised.payload["activity"]["details"]["previous_quote_id"], quote_id)

        self.service.withdraw_quote(
            self.db,
            tenant_id=TENANT,
            withdrawal=QuoteWithdrawal(rfq_id=rfq["id"], supplier_id="sup-a", quote_id=new_quote_id, reason="sem estoque"),
            performed_by="sup-a",
        )

        stored = self._stored(rfq["id"])
        self.assertEqual([quote.status for quote in stored.quotes], ["withdrawn", "withdrawn"])
        self.assertEqual(stored.activity_log[-1].details.reason, "sem estoque")


class ConcurrencyTest(RfqServiceTestCase):
    def test_concurrent_submissions_from_same_supplier(self) -> None:
        rfq = self._published()
        racing = RacingRfqRepository(tenant_id=TENANT)
        service = RfqService(clock=self.clock, event_bus=self.bus, rfq_repository_factory=lambda tenant_id: racing)
        rival_service = RfqService(clock=self.clock, event_bus=self.bus)
        racing.rival = lambda: self._submit(rfq["id"], "sup-a", "250", service=rival_service)

        with self.assertRaises(EligibilityError) as ctx:
            self._submit(rfq["id"], "sup-a", "240", service=service)

        self.assertEqual(ctx.exception.rule, DUPLICATE_QUOTE)
        self.assertEqual(racing.save_calls, 1)
        stored = self._stored(rfq["id"])
        self.assertEqual(len(stored.quotes), 1)
        self.assertEqual(stored.quotes[0].total_amount, Decimal("250"))
        self.assertEqual(metrics_snapshot()["rfq"]["concurrency_conflicts_total"], 1)

    def test_conflict_is_retried_against_fresh_state(self) -> None:
        rfq = self._published()
        racing = RacingRfqRepository(tenant_id=TENANT)
        service = RfqService(clock=self.clock, event_bus=self.bus, rfq_repository_factory=lambda tenant_id: racing)
        rival_service = RfqService(clock=self.clock, event_bus=self.bus)
        racing.rival = lambda: self._submit(rfq["id"], "sup-b", "250", service=rival_service)

        self._submit(rfq["id"], "sup-a", "240", service=service)

        self.assertEqual(racing.save_calls, 2)
        stored = self._stored(rfq["id"])
        self.assertEqual(sorted(quote.supplier_id for quote in stored.quotes), ["sup-a", "sup-b"])
        self.assertEqual(stored.version, 4)
        self.assertEqual([entry.sequence for entry in stored.activity_log], [1, 2, 3, 4])

    def test_retries_are_bounded(self) -> None:
        rfq = self._published()
        stale = AlwaysStaleRfqRepository(tenant_id=TENANT)
        service = RfqService(
            clock=self.clock,
            event_bus=self.bus,
            max_attempts=3,
            rfq_repository_factory=lambda tenant_id: stale,
        )

        with self.assertRaises(ConcurrencyConflict):
            self._submit(rfq["id"], "sup-a", service=service)

        self.assertEqual(stale.save_calls, 3)
        self.assertEqual(self._stored(rfq["id"]).quotes, [])
        snapshot = metrics_snapshot()["rfq"]
        self.assertEqual(snapshot["operations"]["submit_quote"], {"conflict": 1})
        self.assertEqual(snapshot["concurrency_conflicts_total"], 3)

    def test_evaluation_losing_the_race_is_not_persisted(self) -> None:
        rfq = self._published()
        self._submit(rfq["id"], "sup-a", "300")
        self._submit(rfq["id"], "sup-b", "320")
        racing = RacingRfqRepository(tenant_id=TENANT)
        service = RfqService(clock=self.clock, event_bus=self.bus, rfq_repository_factory=lambda tenant_id: racing)
        racing.rival = lambda: self._submit(rfq["id"], "sup-c", "310")

        result = service.evaluate_quotes(self.db, tenant_id=TENANT, rfq_id=rfq["id"])

        self.assertFalse(result.payload["persisted"])
        self.assertEqual(result.payload["evaluated"], 2)
        self.assertEqual(racing.save_calls, 1)
        stored = self._stored(rfq["id"])
        self.assertEqual(len(stored.quotes), 3)
        self.assertTrue(all(quote.score is None for quote in stored.quotes))


class EvaluationServiceTest(RfqServiceTestCase):
    def test_evaluate_uses_supplier_signals(self) -> None:
        rfq = self._published()
        self._submit(rfq["id"], "sup-cheap", "300")
        self._submit(rfq["id"], "sup-good", "310")
        # Price alone weighs 40; quality and delivery together weigh 45.
        self.service.set_supplier_signals(
            self.db,
            tenant_id=TENANT,
            supplier_id="sup-good",
            signals={"quality": 100, "delivery": 100},
        )
        self.service.set_supplier_signals(
            self.db,
            tenant_id=TENANT,
            supplier_id="sup-cheap",
            signals={"quality": 0, "delivery": 0},
        )

        result = self.service.evaluate_quotes(self.db, tenant_id=TENANT, rfq_id=rfq["id"])

        self.assertTrue(result.payload["persisted"])
        self.assertTrue(result.payload["changed"])
        self.assertEqual(result.payload["ranking"][0]["supplier_id"], "sup-good")
        ranking = self.service.get_ranking(self.db, tenant_id=TENANT, rfq_id=rfq["id"]).payload
        self.assertFalse(ranking["advisory"])
        self.assertEqual([row["supplier_id"] for row in ranking["ranking"]], ["sup-good", "sup-cheap"])

    def test_unchanged_evaluation_skips_the_write(self) -> None:
        rfq = self._published()
        self._submit(rfq["id"], "sup-a", "300")
        first = self.service.evaluate_quotes(self.db, tenant_id=TENANT, rfq_id=rfq["id"]).payload
        second = self.service.evaluate_quotes(self.db, tenant_id=TENANT, rfq_id=rfq["id"]).payload

        self.assertTrue(first["changed"])
        self.assertFalse(second["changed"])
        self.assertTrue(second["persisted"])
        self.assertEqual(first["version"], second["version"])

    def test_withdrawn_quotes_leave_the_ranking(self) -> None:
        rfq = self._published()
        quote_id = self._submit(rfq["id"], "sup-a", "300").payload["activity"]["details"]["quote_id"]
        self.service.evaluate_quotes(self.db, tenant_id=TENANT, rfq_id=rfq["id"])
        self.assertEqual(len(self.service.get_ranking(self.db, tenant_id=TENANT, rfq_id=rfq["id"]).payload["ranking"]), 1)

        self.service.withdraw_quote(
            self.db,
            tenant_id=TENANT,
            withdrawal=QuoteWithdrawal(rfq_id=rfq["id"], supplier_id="sup-a", quote_id=quote_id),
            performed_by="sup-a",
        )

        self.assertEqual(self.service.get_ranking(self.db, tenant_id=TENANT, rfq_id=rfq["id"]).payload["ranking"], [])
        withdrawn = self._stored(rfq["id"]).quotes[0]
        self.assertIsNone(withdrawn.score)
        self.assertIsNone(withdrawn.ranking)
        result = self.service.evaluate_quotes(self.db, tenant_id=TENANT, rfq_id=rfq["id"]).payload
        self.assertEqual(result["ranking"], [])
        self.assertFalse(result["changed"])

    def test_evaluate_draft_is_refused(self) -> None:
        rfq = self._create()
        with self.assertRaises(StateError) as ctx:
            self.service.evaluate_quotes(self.db, tenant_id=TENANT, rfq_id=rfq["id"])
        self.assertEqual(ctx.exception.code, "rfq_not_published")

    def test_signals_are_validated(self) -> None:
        with self.assertRaises(ValidationError):
            self.service.set_supplier_signals(self.db, tenant_id=TENANT, supplier_id="sup-a", signals={"price": 10})
        stored = self.service.set_supplier_signals(
            self.db, tenant_id=TENANT, supplier_id="sup-a", signals={"quality": 140}
        ).payload["supplier"]
        self.assertEqual(stored["scoring_signals"], {"quality": "100"})
        signals = SupplierRepository(tenant_id=TENANT).scoring_signals(self.db, ["sup-a"])
        self.assertEqual(signals, {"sup-a": {"quality": "100"}})


class AwardServiceTest(RfqServiceTestCase):
    def test_award_and_ranking_becomes_advisory(self) -> None:
        rfq = self._published()
        quote_id = self._submit(rfq["id"], "sup-a", "300").payload["activity"]["details"]["quote_id"]
        self._submit(rfq["id"], "sup-b", "320")
        self.service.evaluate_quotes(self.db, tenant_id=TENANT, rfq_id=rfq["id"])

        result = self.service.award_rfq(
            self.db,
            tenant_id=TENANT,
            award_input=AwardInput(rfq_id=rfq["id"], supplier_id="sup-a", quote_id=quote_id, reason="menor preco"),
            performed_by="buyer-1",
        )

        self.assertEqual(result.payload["rfq"]["status"], "awarded")
        self.assertEqual(result.payload["activity"]["details"]["amount"], "300")
        ranking = self.service.get_ranking(self.db, tenant_id=TENANT, rfq_id=rfq["id"]).payload
        self.assertTrue(ranking["advisory"])
        self.assertEqual(ranking["ranking"][0]["supplier_id"], "sup-a")

    def test_cancel_and_extend(self) -> None:
        rfq = self._published()
        stored = self._stored(rfq["id"])
        new_due = stored.due_date + timedelta(days=2)

        extended = self.service.extend_deadline(
            self.db, tenant_id=TENANT, rfq_id=rfq["id"], new_date=new_due, performed_by="buyer-1"
        )
        self.assertEqual(extended.payload["activity"]["action"], "deadline_extended")

        cancelled = self.service.cancel_rfq(
            self.db, tenant_id=TENANT, rfq_id=rfq["id"], reason="demanda suspensa", performed_by="buyer-1"
        )
        self.assertEqual(cancelled.payload["rfq"]["status"], "cancelled")
        with self.assertRaises(StateError):
            self.service.cancel_rfq(self.db, tenant_id=TENANT, rfq_id=rfq["id"], reason="de novo", performed_by="buyer-1")


class ExpiryTest(RfqServiceTestCase):
    def test_past_due_rfq_reads_expired_and_refuses_quotes(self) -> None:
        rfq = self._published()
        self.clock.advance(days=8)

        view = self.service.get_rfq(self.db, tenant_id=TENANT, rfq_id=rfq["id"]).payload["rfq"]
        self.assertEqual(view["status"], "expired")
        self.assertEqual(self._stored(rfq["id"]).status, "published")

        with self.assertRaises(EligibilityError) as ctx:
            self._submit(rfq["id"], "sup-a")
        self.assertEqual(ctx.exception.rule, RFQ_NOT_ACTIVE)

    def test_expire_persists_the_status(self) -> None:
        rfq = self._published()
        self.assertIsNone(self.service.expire_rfq(self.db, tenant_id=TENANT, rfq_id=rfq["id"]))

        self.clock.advance(days=8)
        entry = self.service.expire_rfq(self.db, tenant_id=TENANT, rfq_id=rfq["id"])

        self.assertEqual(entry.action, "rfq_expired")
        self.assertEqual(self._stored(rfq["id"]).status, "expired")
        self.assertIsNone(self.service.expire_rfq(self.db, tenant_id=TENANT, rfq_id=rfq["id"]))

    def test_invalid_document_is_not_expired(self) -> None:
        rfq = self._published()
        repository = RfqRepository(tenant_id=TENANT)
        stored = repository.get(self.db, rfq["id"])
        stored.selection_criteria.price = Decimal("10")
        repository.save(self.db, stored, stored.version)

        self.clock.advance(days=8)
        with self.assertRaises(ValidationError):
            self.service.expire_rfq(self.db, tenant_id=TENANT, rfq_id=rfq["id"])

        self.assertEqual(self._stored(rfq["id"]).status, "published")
        self.assertEqual(metrics_snapshot()["rfq"]["operations"]["expire"], {"rejected": 1})


class ListAndViewTest(RfqServiceTestCase):
    def test_default_list_hides_cancelled_and_expired(self) -> None:
        live = self._published()
        cancelled = self._create()
        self.service.cancel_rfq(self.db, tenant_id=TENANT, rfq_id=cancelled["id"], reason="duplicada", performed_by="buyer-1")

        listed = self.service.list_rfqs(self.db, tenant_id=TENANT, filters=RfqListFilters()).payload
        self.assertEqual([item["id"] for item in listed["items"]], [live["id"]])
        self.assertEqual(listed["total"], 1)

        only_cancelled = self.service.list_rfqs(
            self.db, tenant_id=TENANT, filters=RfqListFilters(status=["cancelled"])
        ).payload
        self.assertEqual([item["id"] for item in only_cancelled["items"]], [cancelled["id"]])

        self.clock.advance(days=8)
        expired = self.service.list_rfqs(self.db, tenant_id=TENANT, filters=RfqListFilters(status=["expired"])).payload
        self.assertEqual([item["status"] for item in expired["items"]], ["expired"])

    def test_list_pagination_and_filters(self) -> None:
        for _ in range(3):
            self._create()
        self._create(category="eletricos")

        page = self.service.list_rfqs(self.db, tenant_id=TENANT, filters=RfqListFilters(page=2, limit=2)).payload
        self.assertEqual((page["page"], page["limit"], page["total"], len(page["items"])), (2, 2, 4, 2))

        by_category = self.service.list_rfqs(
            self.db, tenant_id=TENANT, filters=RfqListFilters(category="eletricos")
        ).payload
        self.assertEqual(by_category["total"], 1)

        with self.assertRaises(ValidationError) as ctx:
            self.service.list_rfqs(self.db, tenant_id=TENANT, filters=RfqListFilters(status=["open"]))
        self.assertEqual(ctx.exception.code, "status_filter_invalid")

    def test_supplier_view_hides_competition(self) -> None:
        rfq = self._published()
        self._submit(rfq["id"], "sup-a", "300")
        self._submit(rfq["id"], "sup-b", "320")
        self.service.evaluate_quotes(self.db, tenant_id=TENANT, rfq_id=rfq["id"])

        view = self.service.get_rfq(self.db, tenant_id=TENANT, rfq_id=rfq["id"], viewer_supplier_id="sup-a").payload["rfq"]

        self.assertEqual([quote["supplier_id"] for quote in view["quotes"]], ["sup-a"])
        self.assertNotIn("score", view["quotes"][0])
        self.assertNotIn("ranking", view["quotes"][0])
        self.assertNotIn("activity_log", view)
        self.assertEqual(view["quote_count"], 2)

    def test_drafts_and_exclusions_are_hidden_from_suppliers(self) -> None:
        draft = self._create()
        excluded = self._published(excluded_suppliers=["sup-x"])
        for rfq_id in (draft["id"], excluded["id"]):
            with self.assertRaises(NotFoundError):
                self.service.get_rfq(self.db, tenant_id=TENANT, rfq_id=rfq_id, viewer_supplier_id="sup-x")

        listed = self.service.list_rfqs(
            self.db, tenant_id=TENANT, filters=RfqListFilters(), viewer_supplier_id="sup-y"
        ).payload
        self.assertEqual([item["id"] for item in listed["items"]], [excluded["id"]])

    def test_activity_has_labels(self) -> None:
        rfq = self._published()
        items = self.service.get_activity(self.db, tenant_id=TENANT, rfq_id=rfq["id"]).payload["items"]
        self.assertEqual([item["action"] for item in items], ["rfq_created", "rfq_published"])
        self.assertTrue(all(item["label"] for item in items))


class AnalyticsTest(RfqServiceTestCase):
    def test_overview_and_savings(self) -> None:
        awarded = self._published()
        quote_id = self._submit(awarded["id"], "sup-a", "300").payload["activity"]["details"]["quote_id"]
        self.service.award_rfq(
            self.db,
            tenant_id=TENANT,
            award_input=AwardInput(rfq_id=awarded["id"], supplier_id="sup-a", quote_id=quote_id),
            performed_by="buyer-1",
        )
        self._create()

        payload = self.service.analytics(self.db, tenant_id=TENANT, filters=AnalyticsFilters()).payload

        self.assertEqual(payload["overview"]["total_rfqs"], 2)
        self.assertEqual(payload["overview"]["awarded_rfqs"], 1)
        self.assertEqual(payload["overview"]["conversion_rate"], 50.0)
        self.assertEqual(payload["performance"]["average_quotes_per_rfq"], 0.5)
        # Target 2.50 * 100 + 1.00 * 100 = 350 against an award of 300.
        self.assertEqual(payload["performance"]["average_savings_percent"], 14.29)

    def test_company_scope(self) -> None:
        self._create()
        payload = self.service.analytics(
            self.db, tenant_id=TENANT, filters=AnalyticsFilters(buyer_company_id="other-co")
        ).payload
        self.assertEqual(payload["overview"]["total_rfqs"], 0)
        self.assertEqual(payload["overview"]["conversion_rate"], 0.0)

    def test_savings_needs_every_target_price(self) -> None:
        rfq = self._stored(self._create(items=[{"name": "Cabo", "quantity": 2, "unit": "m"}])["id"])
        self.assertIsNone(savings_percent(rfq))

    def test_rfq_figures(self) -> None:
        rfq = self._published()
        self.clock.advance(hours=2)
        self._submit(rfq["id"], "sup-a", "300")
        self.clock.advance(hours=2)
        self._submit(rfq["id"], "sup-b", "320")
        self.clock.advance(hours=2)
        late_id = self._submit(rfq["id"], "sup-c", "400").payload["activity"]["details"]["quote_id"]
        self.service.withdraw_quote(
            self.db,
            tenant_id=TENANT,
            withdrawal=QuoteWithdrawal(rfq_id=rfq["id"], supplier_id="sup-c", quote_id=late_id),
            performed_by="sup-c",
        )

        payload = self.service.rfq_analytics(self.db, tenant_id=TENANT, rfq_id=rfq["id"]).payload

        self.assertEqual(payload["rfq_number"], rfq["rfq_number"])
        self.assertEqual(payload["total_quotes"], 3)
        # The withdrawn 400 stays out of the price figures.
        self.assertEqual(payload["average_price"], "310.00")
        self.assertEqual(payload["price_range"], {"min": "300.00", "max": "320.00"})
        self.assertEqual(payload["quotes_by_status"]["submitted"], 2)
        self.assertEqual(payload["quotes_by_status"]["withdrawn"], 1)
        self.assertEqual(payload["quotes_by_status"]["accepted"], 0)
        self.assertEqual(payload["average_response_hours"], 4.0)

    def test_rfq_figures_without_quotes(self) -> None:
        rfq = self._create()
        payload = self.service.rfq_analytics(self.db, tenant_id=TENANT, rfq_id=rfq["id"]).payload
        self.assertEqual(payload["total_quotes"], 0)
        self.assertIsNone(payload["average_price"])
        self.assertIsNone(payload["price_range"])
        self.assertEqual(payload["average_response_hours"], 0.0)
        with self.assertRaises(NotFoundError):
            self.service.rfq_analytics(self.db, tenant_id=TENANT, rfq_id="missing")

    def test_revision_counts_once(self) -> None:
        rfq = self._published()
        quote_id = self._submit(rfq["id"], "sup-a", "300").payload["activity"]["details"]["quote_id"]
        self.service.revise_quote(
            self.db,
            tenant_id=TENANT,
            submission=QuoteSubmission(rfq_id=rfq["id"], supplier_id="sup-a", payload=quote_payload("280"), quote_id=quote_id),
            performed_by="sup-a",
        )
        payload = self.service.rfq_analytics(self.db, tenant_id=TENANT, rfq_id=rfq["id"]).payload
        self.assertEqual(payload["total_quotes"], 1)
        self.assertEqual(payload["average_price"], "280.00")


class SupplierQuotesTest(RfqServiceTestCase):
    def test_lists_only_that_supplier_newest_first(self) -> None:
        first = self._published()
        second = self._published(title="Arruelas")
        self._submit(first["id"], "sup-a", "300")
        self._submit(first["id"], "sup-b", "310")
        self.clock.advance(hours=1)
        self._submit(second["id"], "sup-a", "290")
        self.service.evaluate_quotes(self.db, tenant_id=TENANT, rfq_id=first["id"])

        payload = self.service.supplier_quotes(self.db, tenant_id=TENANT, supplier_id="sup-a").payload

        self.assertEqual(payload["supplier_id"], "sup-a")
        self.assertEqual([item["rfq_id"] for item in payload["items"]], [second["id"], first["id"]])
        self.assertEqual(payload["items"][0]["rfq_title"], "Arruelas")
        self.assertEqual(payload["items"][1]["rfq_status"], "published")
        self.assertTrue(all(item["supplier_id"] == "sup-a" for item in payload["items"]))
        self.assertTrue(all("score" not in item and "ranking" not in item for item in payload["items"]))

    def test_supplier_is_required(self) -> None:
        with self.assertRaises(ValidationError):
            self.service.supplier_quotes(self.db, tenant_id=TENANT, supplier_id=" ")
        self.assertEqual(self.service.supplier_quotes(self.db, tenant_id=TENANT, supplier_id="nobody").payload["items"], [])


class EventPublishingTest(RfqServiceTestCase):
    def test_every_committed_entry_is_published(self) -> None:
        received = []
        self.bus.subscribe(RfqActivityRecorded, received.append)

        rfq = self._published()
        self._submit(rfq["id"], "sup-a")

        self.assertEqual([event.action for event in received], ["rfq_created", "rfq_published", "quote_submitted"])
        self.assertEqual([event.sequence for event in received], [1, 2, 3])
        self.assertEqual({event.tenant_id for event in received}, {TENANT})
        self.assertEqual(received[-1].version, 3)

    def test_rejected_operations_publish_nothing(self) -> None:
        rfq = self._published()
        received = []
        self.bus.subscribe(RfqActivityRecorded, received.append)
        with self.assertRaises(StateError):
            self.service.publish_rfq(self.db, tenant_id=TENANT, rfq_id=rfq["id"], performed_by="buyer-1")
        self.assertEqual(received, [])


if __name__ == "__main__":
    unittest.main()
