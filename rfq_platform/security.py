from __future__ import annotations

import threading
import time
from typing import Dict, Tuple

from flask import current_app, request

from rfq_platform.errors import ValidationError
from rfq_platform.identity import current_caller


_EXEMPT_PATHS = {"/health", "/metrics"}


class SimpleRateLimiter:
    """Fixed window counter per key, kept in process memory."""

    def __init__(self, max_keys: int = 10_000) -> None:
        self._lock = threading.Lock()
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._max_keys = max_keys

    def _prune(self, now: float, window_seconds: int) -> None:
        cutoff = now - window_seconds
        self._windows = {key: window for key, window in self._windows.items() if window[0] > cutoff}

    def allow(self, key: str, *, limit: int, window_seconds: int) -> Tuple[bool, int]:
        now = time.monotonic()
        with self._lock:
            opened_at, hits = self._windows.get(key, (now, 0))
            if now - opened_at >= window_seconds:
                opened_at, hits = now, 0
            hits += 1
            self._windows[key] = (opened_at, hits)
            if len(self._windows) > self._max_keys:
                self._prune(now, window_seconds)
            retry_after = max(0, int(window_seconds - (now - opened_at)))
        return hits <= limit, retry_after

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


_RATE_LIMITER = SimpleRateLimiter()


def _rate_limit_key() -> str:
    caller = current_caller()
    route = request.url_rule.rule if request.url_rule else request.path
    return "|".join(
        [
            caller.tenant_id,
            caller.user_id,
            str(request.remote_addr or "unknown"),
            request.method,
            route,
        ]
    )


def enforce_rate_limit() -> None:
    config = current_app.config
    if not bool(config.get("RATE_LIMIT_ENABLED", True)):
        return
    if request.method == "OPTIONS" or request.path in _EXEMPT_PATHS:
        return

    window_seconds = max(1, int(config.get("RATE_LIMIT_WINDOW_SECONDS", 60) or 60))
    max_requests = max(1, int(config.get("RATE_LIMIT_MAX_REQUESTS", 300) or 300))
    allowed, retry_after = _RATE_LIMITER.allow(
        _rate_limit_key(),
        limit=max_requests,
        window_seconds=window_seconds,
    )
    if not allowed:
        raise ValidationError(
            code="rate_limit_exceeded",
            http_status=429,
            payload={"retry_after": retry_after},
        )


def apply_security_headers(response):
    if not bool(current_app.config.get("SECURITY_HEADERS_ENABLED", True)):
        return response
    headers = response.headers
    headers.setdefault("X-Content-Type-Options", "nosniff")
    headers.setdefault("X-Frame-Options", "DENY")
    headers.setdefault("Referrer-Policy", "no-referrer")
    headers.setdefault("Cache-Control", "no-store")
    # JSON only; nothing here should ever be framed or load subresources.
    headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
    if request.is_secure:
        headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


def reset_rate_limiter_for_tests() -> None:
    _RATE_LIMITER.reset()
