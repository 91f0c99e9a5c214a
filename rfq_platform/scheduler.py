from __future__ import annotations

import logging
import os
import threading

from flask import Flask

from rfq_platform.application.rfq_service import RfqService
from rfq_platform.db import connect_database
from rfq_platform.errors import AppError, ConcurrencyConflict
from rfq_platform.infrastructure.repositories.rfq_repository import RfqRepository, tenants_with_published_rfqs
from rfq_platform.observability import bind_request_id, observe_rfq_expired


LOGGER = logging.getLogger("rfq_platform")


class ExpirySweeper:
    """Persists the expiry of published RFQs whose due date has passed.

    Reads already show such RFQs as expired; the sweep makes it durable and
    records the ``rfq_expired`` entry. A lost version race is skipped and picked
    up again on the next pass.
    """

    def __init__(self, app: Flask, service: RfqService | None = None) -> None:
        self.app = app
        self.service = service or app.extensions["rfq_service"]
        self.interval_seconds = _int_config(app, "EXPIRY_SWEEP_INTERVAL_SECONDS", 300, 5, 86_400)
        self.batch_limit = _int_config(app, "EXPIRY_SWEEP_BATCH_LIMIT", 200, 1, 5000)

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run_loop, name="rfq-expiry-sweeper", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:  # noqa: BLE001 - keeps the loop alive, next pass retries
                LOGGER.exception("rfq_expiry_sweep_failed")
            self._stop_event.wait(self.interval_seconds)

    def run_once(self) -> int:
        """One pass over every tenant. Returns how many RFQs were expired."""
        expired = 0
        db = connect_database(self.app.config["DB_PATH"])
        try:
            with bind_request_id("expiry-sweep"):
                for tenant_id in tenants_with_published_rfqs(db):
                    expired += self._sweep_tenant(db, tenant_id)
        finally:
            db.close()
        if expired:
            observe_rfq_expired(expired)
            LOGGER.info("rfq_expiry_sweep_finished", extra={"expired": expired})
        return expired

    def _sweep_tenant(self, db, tenant_id: str) -> int:
        repository = RfqRepository(tenant_id=tenant_id)
        expired = 0
        for rfq_id in repository.list_past_due_ids(db, self.service.clock(), limit=self.batch_limit):
            try:
                entry = self.service.expire_rfq(db, tenant_id=tenant_id, rfq_id=rfq_id)
            except ConcurrencyConflict:
                LOGGER.info("rfq_expiry_skipped", extra={"tenant_id": tenant_id, "rfq_id": rfq_id})
                continue
            except AppError:
                LOGGER.warning("rfq_expiry_rejected", extra={"tenant_id": tenant_id, "rfq_id": rfq_id})
                continue
            if entry is not None:
                expired += 1
        return expired


def start_expiry_sweeper(app: Flask) -> ExpirySweeper | None:
    if not _should_start_scheduler(app):
        return None
    sweeper = ExpirySweeper(app)
    sweeper.start()
    app.extensions["expiry_sweeper"] = sweeper
    app.logger.info("Expiry sweeper started: interval=%ss", sweeper.interval_seconds)
    return sweeper


def _should_start_scheduler(app: Flask) -> bool:
    if not app.config.get("EXPIRY_SWEEP_ENABLED", False):
        return False
    if app.config.get("TESTING"):
        return False
    if app.debug:
        run_main = os.environ.get("WERKZEUG_RUN_MAIN")
        if run_main and run_main.lower() != "true":
            return False
    return True


def _int_config(app: Flask, key: str, default: int, min_value: int, max_value: int) -> int:
    try:
        value = int(app.config.get(key, default))
    except (TypeError, ValueError):
        value = default
    return max(min_value, min(value, max_value))
