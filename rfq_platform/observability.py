from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import threading
import time
import uuid
from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Tuple

from flask import g, has_request_context, request


_HTTP_DURATION_BUCKETS_MS = (5.0, 10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0, 2500.0, 5000.0, 10000.0)
_RFQ_WRITE_ATTEMPT_BUCKETS = (1.0, 2.0, 3.0, 5.0, 10.0)

_LOG_REQUEST_ID_CTX: contextvars.ContextVar[str] = contextvars.ContextVar("log_request_id", default="")


def _normalize_request_id(value: str | None) -> str:
    return str(value or "").strip() or "n/a"


def set_log_request_id(request_id: str | None) -> None:
    _LOG_REQUEST_ID_CTX.set(_normalize_request_id(request_id))


@contextlib.contextmanager
def bind_request_id(request_id: str | None):
    token = _LOG_REQUEST_ID_CTX.set(_normalize_request_id(request_id))
    try:
        yield _LOG_REQUEST_ID_CTX.get()
    finally:
        _LOG_REQUEST_ID_CTX.reset(token)


def _background_request_id(default: str | None = None) -> str:
    request_id = str(_LOG_REQUEST_ID_CTX.get() or "").strip()
    if request_id:
        return request_id
    return default or "n/a"


# Attributes every LogRecord carries; anything else arrived through `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, object] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if has_request_context():
            payload["request_id"] = current_request_id(default="n/a")
            payload["path"] = request.path
            payload["method"] = request.method
            if request.url_rule is not None:
                payload["route"] = request.url_rule.rule
        else:
            record_request_id = str(getattr(record, "request_id", "") or "").strip()
            payload["request_id"] = record_request_id or _background_request_id(default="n/a")

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key in payload or key.startswith("_") or callable(value):
                continue
            payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, separators=(",", ":"))


def configure_json_logging(app) -> None:
    if not bool(app.config.get("LOG_JSON", True)):
        return
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).strip().upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)
    app.logger.handlers = []
    app.logger.propagate = True


def ensure_request_id() -> str:
    request_id = str(getattr(g, "request_id", "") or "").strip()
    if request_id:
        set_log_request_id(request_id)
        return request_id
    incoming = str(request.headers.get("X-Request-Id") or "").strip()
    request_id = incoming or str(uuid.uuid4())
    g.request_id = request_id
    set_log_request_id(request_id)
    return request_id


def current_request_id(default: str | None = None) -> str:
    if has_request_context():
        request_id = str(getattr(g, "request_id", "") or "").strip()
        if request_id:
            return request_id
    return _background_request_id(default=default)


class _Histogram:
    """Cumulative buckets in the Prometheus sense: each bucket counts values <= its bound."""

    def __init__(self, bounds: Tuple[float, ...]) -> None:
        self.bounds = bounds
        self.count = 0
        self.total = 0.0
        self.hits = [0] * len(bounds)

    def observe(self, value: float) -> None:
        value = max(0.0, float(value))
        self.count += 1
        self.total += value
        for index, bound in enumerate(self.bounds):
            if value <= bound:
                self.hits[index] += 1

    def buckets(self) -> List[Tuple[str, int]]:
        labeled = [(f"{bound:g}", hits) for bound, hits in zip(self.bounds, self.hits)]
        return labeled + [("+Inf", self.count)]


@dataclass
class _RouteStats:
    requests: int = 0
    errors: int = 0
    latency_sum_ms: float = 0.0
    latency_max_ms: float = 0.0

    def as_dict(self, route: str) -> dict:
        avg_ms = self.latency_sum_ms / self.requests if self.requests else 0.0
        return {
            "route": route,
            "requests": self.requests,
            "errors": self.errors,
            "avg_latency_ms": round(avg_ms, 2),
            "max_latency_ms": round(self.latency_max_ms, 2),
        }


def _label(value: str | None) -> str:
    return str(value or "").strip() or "unknown"


class MetricsRegistry:
    """Process-local counters for the HTTP layer, the RFQ store and the event bus."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._routes: Dict[str, _RouteStats] = defaultdict(_RouteStats)
            self._http_total: Counter = Counter()
            self._http_duration: Dict[Tuple[str, str], _Histogram] = {}
            self._rfq_operations: Counter = Counter()
            self._rfq_conflicts: Counter = Counter()
            self._rfq_write_attempts = _Histogram(_RFQ_WRITE_ATTEMPT_BUCKETS)
            self._rfq_expired = 0
            self._domain_events: Counter = Counter()

    def observe_http(self, method: str, route: str, status_code: int, duration_ms: float) -> None:
        method = _label(method).upper()
        route = _label(route)
        duration_ms = max(0.0, float(duration_ms))
        with self._lock:
            stats = self._routes[f"{method} {route}"]
            stats.requests += 1
            stats.latency_sum_ms += duration_ms
            stats.latency_max_ms = max(stats.latency_max_ms, duration_ms)
            if int(status_code) >= 400:
                stats.errors += 1
            self._http_total[(method, route, str(int(status_code)))] += 1
            histogram = self._http_duration.get((method, route))
            if histogram is None:
                histogram = self._http_duration[(method, route)] = _Histogram(_HTTP_DURATION_BUCKETS_MS)
            histogram.observe(duration_ms)

    def observe_rfq_operation(self, operation: str, result: str, attempts: int | None = None) -> None:
        with self._lock:
            self._rfq_operations[(_label(operation), _label(result))] += 1
            if attempts:
                self._rfq_write_attempts.observe(attempts)

    def observe_rfq_concurrency_conflict(self, operation: str) -> None:
        with self._lock:
            self._rfq_conflicts[_label(operation)] += 1

    def observe_rfq_expired(self, count: int = 1) -> None:
        with self._lock:
            self._rfq_expired += max(0, int(count or 0))

    def observe_domain_event_emitted(self, event_type: str) -> None:
        with self._lock:
            self._domain_events[_label(event_type)] += 1

    def snapshot(self) -> dict:
        with self._lock:
            routes = sorted(
                (stats.as_dict(route) for route, stats in self._routes.items()),
                key=lambda item: item["requests"],
                reverse=True,
            )
            operations: Dict[str, Dict[str, int]] = {}
            for (operation, result), value in sorted(self._rfq_operations.items()):
                operations.setdefault(operation, {})[result] = value
            return {
                "requests_total": sum(stats.requests for stats in self._routes.values()),
                "errors_total": sum(stats.errors for stats in self._routes.values()),
                "by_route": routes[:40],
                "rfq": {
                    "operations": operations,
                    "concurrency_conflicts_total": sum(self._rfq_conflicts.values()),
                    "expired_total": self._rfq_expired,
                },
                "domain_events": {
                    "emitted_total": sum(self._domain_events.values()),
                    "by_type": dict(sorted(self._domain_events.items())),
                },
            }

    def render_prometheus(self, open_by_status: Dict[str, int]) -> str:
        out = _PromWriter()
        with self._lock:
            out.family("http_request_total", "counter", "Total HTTP requests by method, route and status.")
            for (method, route, status), value in sorted(self._http_total.items()):
                out.sample("http_request_total", value, method=method, route=route, status=status)

            out.family("http_request_duration_ms", "histogram", "HTTP request duration in milliseconds.")
            for (method, route), histogram in sorted(self._http_duration.items()):
                out.histogram("http_request_duration_ms", histogram, method=method, route=route)

            out.family("rfq_operation_total", "counter", "RFQ operations by name and result.")
            for (operation, result), value in sorted(self._rfq_operations.items()):
                out.sample("rfq_operation_total", value, operation=operation, result=result)

            out.family("rfq_concurrency_conflict_total", "counter", "Stale-version writes detected, before retry.")
            for operation, value in sorted(self._rfq_conflicts.items()):
                out.sample("rfq_concurrency_conflict_total", value, operation=operation)

            out.family("rfq_write_attempts", "histogram", "Attempts needed by RFQ writes.")
            out.histogram("rfq_write_attempts", self._rfq_write_attempts)

            out.family("rfq_expired_total", "counter", "RFQs moved to expired by the sweeper.")
            out.sample("rfq_expired_total", self._rfq_expired)

            out.family("rfq_open_total", "gauge", "RFQs of the current tenant by stored status.")
            for status, value in sorted(open_by_status.items()):
                out.sample("rfq_open_total", int(value or 0), status=status)

            out.family("domain_event_emitted_total", "counter", "Domain events published on the in-process bus.")
            for event_type, value in sorted(self._domain_events.items()):
                out.sample("domain_event_emitted_total", value, event_type=event_type)
        return out.text()


class _PromWriter:
    def __init__(self) -> None:
        self._lines: List[str] = []

    @staticmethod
    def _escape(value: object) -> str:
        return str(value).replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')

    def family(self, name: str, kind: str, help_text: str) -> None:
        self._lines.append(f"# HELP {name} {help_text}")
        self._lines.append(f"# TYPE {name} {kind}")

    def sample(self, name: str, value: int | float, **labels: object) -> None:
        if labels:
            rendered = ",".join(f'{key}="{self._escape(val)}"' for key, val in sorted(labels.items()))
            name = f"{name}{{{rendered}}}"
        self._lines.append(f"{name} {value}")

    def histogram(self, name: str, histogram: _Histogram, **labels: object) -> None:
        for bound, hits in histogram.buckets():
            self.sample(f"{name}_bucket", hits, **labels, le=bound)
        self.sample(f"{name}_sum", float(histogram.total), **labels)
        self.sample(f"{name}_count", histogram.count, **labels)

    def text(self) -> str:
        return "\n".join(self._lines) + "\n"


_METRICS = MetricsRegistry()


def mark_request_start() -> None:
    g._request_started_at = time.perf_counter()


def observe_response(response):
    started = float(getattr(g, "_request_started_at", 0.0) or 0.0)
    elapsed_ms = (time.perf_counter() - started) * 1000.0 if started else 0.0
    route = request.url_rule.rule if request.url_rule is not None else request.path
    _METRICS.observe_http(request.method, route, int(response.status_code), elapsed_ms)
    response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"
    return response


def metrics_snapshot() -> dict:
    return _METRICS.snapshot()


def observe_rfq_operation(operation: str, result: str, attempts: int | None = None) -> None:
    _METRICS.observe_rfq_operation(operation, result, attempts)


def observe_rfq_concurrency_conflict(operation: str) -> None:
    _METRICS.observe_rfq_concurrency_conflict(operation)


def observe_rfq_expired(count: int = 1) -> None:
    _METRICS.observe_rfq_expired(count)


def observe_domain_event_emitted(event_type: str) -> None:
    _METRICS.observe_domain_event_emitted(event_type)


def prometheus_metrics_text(*, rfq_state: dict | None = None) -> str:
    by_status = (rfq_state or {}).get("by_status") or {}
    return _METRICS.render_prometheus(dict(by_status))


def reset_metrics_for_tests() -> None:
    _METRICS.reset()
    set_log_request_id(None)
