import unittest

from rfq_platform.application.rfq_service import RfqService
from rfq_platform.db import close_db
from rfq_platform.errors import ConcurrencyConflict
from rfq_platform.infrastructure.repositories.rfq_repository import RfqRepository
from rfq_platform.observability import metrics_snapshot, reset_metrics_for_tests
from rfq_platform.scheduler import ExpirySweeper, start_expiry_sweeper
from tests.helpers.rfq_factory import FIXED_NOW, FrozenClock, rfq_payload
from tests.helpers.temp_db import TempDbSandbox


class _StaleRepository(RfqRepository):
    def save(self, db, rfq, expected_version):
        raise ConcurrencyConflict(details="forced")


class ExpirySweeperTest(unittest.TestCase):
    def setUp(self) -> None:
        reset_metrics_for_tests()
        self._temp_db = TempDbSandbox(prefix="expiry_sweeper")
        self.app = self._temp_db.build_app(EXPIRY_SWEEP_BATCH_LIMIT=50)
        self.clock = FrozenClock()
        self.service = RfqService(clock=self.clock)
        self.db = self._temp_db.connect()

    def tearDown(self) -> None:
        self.db.close()
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()
        reset_metrics_for_tests()

    def _rfq(self, tenant_id: str, *, publish: bool = True) -> str:
        rfq = self.service.create_rfq(
            self.db,
            tenant_id=tenant_id,
            performed_by="buyer-1",
            buyer_company_id="acme",
            data=rfq_payload(FIXED_NOW),
        ).payload["rfq"]
        if publish:
            self.service.publish_rfq(self.db, tenant_id=tenant_id, rfq_id=rfq["id"], performed_by="buyer-1")
        return rfq["id"]

    def _status(self, tenant_id: str, rfq_id: str) -> str:
        return RfqRepository(tenant_id=tenant_id).get(self.db, rfq_id).status

    def test_sweep_expires_past_due_rfqs_of_every_tenant(self) -> None:
        first = self._rfq("tenant-a")
        second = self._rfq("tenant-b")
        draft = self._rfq("tenant-a", publish=False)
        sweeper = ExpirySweeper(self.app, service=self.service)

        self.assertEqual(sweeper.run_once(), 0)

        self.clock.advance(days=8)
        self.assertEqual(sweeper.run_once(), 2)

        self.assertEqual(self._status("tenant-a", first), "expired")
        self.assertEqual(self._status("tenant-b", second), "expired")
        self.assertEqual(self._status("tenant-a", draft), "draft")
        stored = RfqRepository(tenant_id="tenant-a").get(self.db, first)
        self.assertEqual(stored.activity_log[-1].action, "rfq_expired")
        self.assertEqual(stored.activity_log[-1].performed_by, "system")
        self.assertEqual(metrics_snapshot()["rfq"]["expired_total"], 2)

        self.assertEqual(sweeper.run_once(), 0)

    def test_lost_race_is_skipped(self) -> None:
        rfq_id = self._rfq("tenant-a")
        stale_service = RfqService(
            clock=self.clock,
            rfq_repository_factory=lambda tenant_id: _StaleRepository(tenant_id=tenant_id),
        )
        sweeper = ExpirySweeper(self.app, service=stale_service)
        self.clock.advance(days=8)

        self.assertEqual(sweeper.run_once(), 0)
        self.assertEqual(self._status("tenant-a", rfq_id), "published")

    def test_config_is_clamped(self) -> None:
        self.app.config["EXPIRY_SWEEP_INTERVAL_SECONDS"] = 1
        sweeper = ExpirySweeper(self.app, service=self.service)
        self.assertEqual(sweeper.interval_seconds, 5)
        self.assertEqual(sweeper.batch_limit, 50)

    def test_sweeper_does_not_start_in_tests(self) -> None:
        self.app.config["EXPIRY_SWEEP_ENABLED"] = True
        self.assertIsNone(start_expiry_sweeper(self.app))
        self.assertNotIn("expiry_sweeper", self.app.extensions)


if __name__ == "__main__":
    unittest.main()
