from __future__ import annotations

import threading
import time
from urllib.parse import urlsplit

from flask import Flask, current_app, request, session

from stokstak.errors import PermissionError as AppPermissionError
from stokstak.errors import ValidationError


_SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})

_RESPONSE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}
_HSTS = "max-age=31536000; includeSubDomains"


def _origin_host(origin: str | None) -> str:
    raw = str(origin or "").strip()
    if not raw or raw == "null":
        return ""
    try:
        return urlsplit(raw).netloc.lower()
    except ValueError:
        return ""


def enforce_same_origin() -> None:
    """Blocks cross-site writes that ride on the session cookie.

    Callers that identify themselves through X-User-Id carry no cookie and
    are left alone.
    """
    if not current_app.config.get("SAME_ORIGIN_ENFORCED", True):
        return
    if request.method in _SAFE_METHODS or not session.get("user_id"):
        return

    host = str(request.host or "").strip().lower()
    if host and _origin_host(request.headers.get("Origin")) == host:
        return
    raise AppPermissionError(
        code="cross_origin_blocked",
        message_key="cross_origin_blocked",
        payload={"origin": str(request.headers.get("Origin") or "")},
    )


class FixedWindowRateLimiter:
    """Counts calls per key inside a window that restarts on the first call after it expires."""

    _MAX_KEYS = 10_000

    def __init__(self, clock=time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, list] = {}

    def hit(self, key: str, *, limit: int, window_seconds: int) -> tuple[bool, int]:
        """Registers one call; returns (allowed, seconds until the window resets)."""
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now - window[0] >= window_seconds:
                window = [now, 0]
                self._windows[key] = window
            window[1] += 1
            if len(self._windows) > self._MAX_KEYS:
                self._evict(now - window_seconds * 2)
            return window[1] <= limit, max(0, int(window_seconds - (now - window[0])))

    def _evict(self, cutoff: float) -> None:
        stale = [key for key, (started, _) in self._windows.items() if started < cutoff]
        for key in stale:
            del self._windows[key]

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


_RATE_LIMITER = FixedWindowRateLimiter()


def _rate_limit_key() -> str:
    actor = str(session.get("user_id") or request.headers.get("X-User-Id") or "").strip().lower() or "anon"
    route = request.url_rule.rule if request.url_rule else request.path
    return "|".join((request.remote_addr or "unknown", actor, request.method, route))


def enforce_rate_limit() -> None:
    config = current_app.config
    if not config.get("RATE_LIMIT_ENABLED", True):
        return
    if request.method == "OPTIONS" or not request.path.startswith("/api/"):
        return

    allowed, retry_after = _RATE_LIMITER.hit(
        _rate_limit_key(),
        limit=max(1, int(config.get("RATE_LIMIT_MAX_REQUESTS") or 300)),
        window_seconds=max(1, int(config.get("RATE_LIMIT_WINDOW_SECONDS") or 60)),
    )
    if not allowed:
        raise ValidationError(
            code="rate_limit_exceeded",
            message_key="rate_limit_exceeded",
            http_status=429,
            payload={"retry_after": retry_after},
        )


def apply_security_headers(response):
    if not current_app.config.get("SECURITY_HEADERS_ENABLED", True):
        return response
    for name, value in _RESPONSE_HEADERS.items():
        response.headers.setdefault(name, value)
    if request.is_secure:
        response.headers.setdefault("Strict-Transport-Security", _HSTS)
    return response


def install_security(app: Flask) -> None:
    app.before_request(enforce_rate_limit)
    app.before_request(enforce_same_origin)
    app.after_request(apply_security_headers)


def reset_rate_limiter_for_tests() -> None:
    _RATE_LIMITER.reset()
