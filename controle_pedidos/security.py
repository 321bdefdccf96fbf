from __future__ import annotations

import threading
import time
from collections import deque
from typing import Deque, Dict

from flask import current_app, request, session

from controle_pedidos.errors import ValidationError


LOGIN_PATH = "/api/auth/login"
_UNLIMITED_PATHS = {"/health", "/metrics"}
_MAX_TRACKED_KEYS = 10_000

_CONTENT_SECURITY_POLICY = "; ".join(
    [
        "default-src 'self'",
        # Logos travel as data URLs and quote PDFs open inline.
        "img-src 'self' data:",
        "object-src 'self'",
        "connect-src 'self'",
        "frame-ancestors 'none'",
        "base-uri 'self'",
    ]
)


class SlidingWindowLimiter:
    """Remembers the hit times per key and refuses once a window holds `limit` of them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hits: Dict[str, Deque[float]] = {}

    def hit(self, key: str, *, limit: int, window_seconds: int) -> int | None:
        """Record one hit. Returns None when allowed, else the seconds until a slot frees up."""
        now = time.monotonic()
        cutoff = now - window_seconds
        with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= limit:
                return max(1, int(hits[0] - cutoff + 0.999))
            hits.append(now)
            if len(self._hits) > _MAX_TRACKED_KEYS:
                self._forget_idle(cutoff)
            return None

    def _forget_idle(self, cutoff: float) -> None:
        self._hits = {key: hits for key, hits in self._hits.items() if hits and hits[-1] > cutoff}

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


_LIMITER = SlidingWindowLimiter()


def _client_ip() -> str:
    return str(request.remote_addr or "").strip() or "unknown"


def _bucket() -> tuple[str, int]:
    """Login attempts are counted per IP with their own budget; everything else per caller and route."""
    config = current_app.config
    if request.path == LOGIN_PATH:
        return f"login|{_client_ip()}", int(config.get("LOGIN_RATE_LIMIT_MAX_REQUESTS", 10) or 10)
    user = str(session.get("user_id") or "").strip() or "anon"
    route = request.url_rule.rule if request.url_rule else request.path
    key = f"api|{_client_ip()}|{user}|{request.method}|{route}"
    return key, int(config.get("RATE_LIMIT_MAX_REQUESTS", 300) or 300)


def enforce_rate_limit() -> None:
    if not bool(current_app.config.get("RATE_LIMIT_ENABLED", True)):
        return
    if request.method == "OPTIONS" or request.path in _UNLIMITED_PATHS:
        return

    key, limit = _bucket()
    window_seconds = max(1, int(current_app.config.get("RATE_LIMIT_WINDOW_SECONDS", 60) or 60))
    retry_after = _LIMITER.hit(key, limit=max(1, limit), window_seconds=window_seconds)
    if retry_after is None:
        return
    current_app.logger.warning(
        "rate_limit_exceeded",
        extra={"bucket": key.split("|", 1)[0], "retry_after": retry_after},
    )
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
    headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
    headers.setdefault("Content-Security-Policy", _CONTENT_SECURITY_POLICY)
    if request.path.startswith("/api/"):
        # Order lists change under other users; never serve them from cache.
        headers.setdefault("Cache-Control", "no-store")
    if request.is_secure:
        headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


def reset_rate_limiter_for_tests() -> None:
    _LIMITER.reset()
