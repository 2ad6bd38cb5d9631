"""
Request timing middleware.

Records request duration and logs slow requests.
Adds X-Request-Duration-Ms and X-Request-ID headers to all responses.

Metrics live in a RequestMetrics ring buffer owned by the app
(``app.extensions["request_metrics"]``), so each app instance, including
every test app, has its own.
"""

import logging
import threading
import time
import uuid
from collections import deque

from flask import Flask, current_app, g, request

logger = logging.getLogger(__name__)

# Endpoints excluded from timing logs (high frequency, low value)
_SKIP_LOG = frozenset({"/api/v1/health/live", "/api/v1/health/ready", "/api/v1/health/metrics"})

# Slow request threshold (ms)
SLOW_THRESHOLD_MS = 1000

EXTENSION_KEY = "request_metrics"


class RequestMetrics:
    """Bounded in-memory ring buffer of request timings."""

    def __init__(self, max_entries: int = 10_000):
        self._entries: deque[dict] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def record(self, method: str, path: str, status_code: int, duration_ms: float, *, case_id=None):
        entry = {
            "ts": time.time(),
            "method": method,
            "path": path,
            "status": status_code,
            "ms": round(duration_ms, 1),
            "case_id": case_id,
        }
        with self._lock:
            self._entries.append(entry)

    def recent(self, seconds: int = 3600) -> list[dict]:
        """Return metrics from the last N seconds."""
        cutoff = time.time() - seconds
        with self._lock:
            return [m for m in self._entries if m["ts"] >= cutoff]

    def summary(self, seconds: int = 3600) -> dict:
        entries = self.recent(seconds)
        durations = sorted(m["ms"] for m in entries)
        count = len(durations)
        return {
            "window_seconds": seconds,
            "requests": count,
            "errors": sum(1 for m in entries if m["status"] >= 500),
            "avg_ms": round(sum(durations) / count, 1) if count else 0.0,
            "p95_ms": durations[min(int(count * 0.95), count - 1)] if count else 0.0,
            "max_ms": durations[-1] if count else 0.0,
        }

    def reset(self):
        """Clear the buffer (for testing)."""
        with self._lock:
            self._entries.clear()


def get_request_metrics(app: Flask | None = None) -> RequestMetrics:
    return (app or current_app).extensions[EXTENSION_KEY]


def _case_id() -> int | None:
    view_args = request.view_args or {}
    value = view_args.get("case_id")
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def init_request_timing(app: Flask):
    """Register before/after hooks for request timing."""
    metrics = RequestMetrics()
    app.extensions[EXTENSION_KEY] = metrics

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex[:12])

    @app.after_request
    def _log_request(response):
        start = getattr(g, "request_start", None)
        if start is None:
            return response

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        response.headers["X-Request-ID"] = getattr(g, "request_id", "")

        case_id = _case_id()
        metrics.record(request.method, request.path, response.status_code, duration_ms, case_id=case_id)

        if request.path not in _SKIP_LOG and not request.path.startswith("/static"):
            extra = {
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": duration_ms,
                "remote_addr": request.remote_addr,
                "request_id": getattr(g, "request_id", ""),
                "case_id": case_id,
            }
            if duration_ms > SLOW_THRESHOLD_MS:
                logger.warning("Slow request: %s %s %d (%.0fms)",
                               request.method, request.path,
                               response.status_code, duration_ms, extra=extra)
            elif response.status_code >= 500:
                logger.error("Server error: %s %s %d (%.0fms)",
                             request.method, request.path,
                             response.status_code, duration_ms, extra=extra)
            else:
                logger.debug("Request: %s %s %d (%.0fms)",
                             request.method, request.path,
                             response.status_code, duration_ms, extra=extra)

        return response
