from __future__ import annotations

import contextvars
import json
import logging
import threading
import time
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Iterable

from flask import Flask, g, has_request_context, request


_LOG_REQUEST_ID: contextvars.ContextVar[str] = contextvars.ContextVar("stokstak_request_id", default="")

# Attributes every LogRecord carries; anything else on a record came from `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def set_log_request_id(request_id: str | None) -> None:
    _LOG_REQUEST_ID.set(str(request_id or "").strip())


def current_request_id(default: str | None = None) -> str:
    if has_request_context():
        bound = str(getattr(g, "request_id", "") or "").strip()
        if bound:
            return bound
    return _LOG_REQUEST_ID.get() or default or "n/a"


def ensure_request_id() -> str:
    """Returns the correlation id of the current request, adopting X-Request-Id when sent."""
    request_id = str(getattr(g, "request_id", "") or "").strip()
    if not request_id:
        request_id = str(request.headers.get("X-Request-Id") or "").strip() or str(uuid.uuid4())
        g.request_id = request_id
    set_log_request_id(request_id)
    return request_id


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line; `extra=` fields are flattened into the object."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, object] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if has_request_context():
            payload["request_id"] = current_request_id()
            payload["method"] = request.method
            payload["path"] = request.path
            if request.url_rule is not None:
                payload["route"] = request.url_rule.rule
        else:
            payload["request_id"] = str(getattr(record, "request_id", "") or "").strip() or current_request_id()

        for key, value in vars(record).items():
            if key in _RECORD_ATTRS or key in payload or key.startswith("_") or callable(value):
                continue
            payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, separators=(",", ":"), default=str)


def configure_json_logging(app: Flask) -> None:
    if not app.config.get("LOG_JSON", True):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).strip().upper(), logging.INFO))
    app.logger.handlers = []
    app.logger.propagate = True


def _prom_escape(value: object) -> str:
    return str(value).replace("\\", "\\\\").replace('"', '\\"').replace("\n", " ")


def _prom_line(name: str, value: int | float, labels: dict[str, object] | None = None) -> str:
    if not labels:
        return f"{name} {value}"
    rendered = ",".join(f'{key}="{_prom_escape(val)}"' for key, val in labels.items())
    return f"{name}{{{rendered}}} {value}"


class _Histogram:
    BUCKETS_MS = (5.0, 10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0, 2500.0, 5000.0, 10000.0)

    def __init__(self) -> None:
        self.count = 0
        self.total = 0.0
        self.maximum = 0.0
        self.bucket_counts = [0] * len(self.BUCKETS_MS)

    def observe(self, value: float) -> None:
        value = max(0.0, float(value))
        self.count += 1
        self.total += value
        self.maximum = max(self.maximum, value)
        for index, limit in enumerate(self.BUCKETS_MS):
            if value <= limit:
                self.bucket_counts[index] += 1

    def prometheus_lines(self, name: str, labels: dict[str, object]) -> Iterable[str]:
        for limit, count in zip(self.BUCKETS_MS, self.bucket_counts):
            yield _prom_line(f"{name}_bucket", count, {**labels, "le": f"{limit:g}"})
        yield _prom_line(f"{name}_bucket", self.count, {**labels, "le": "+Inf"})
        yield _prom_line(f"{name}_sum", round(self.total, 3), labels)
        yield _prom_line(f"{name}_count", self.count, labels)


class MetricsRegistry:
    """Process-local HTTP and workflow counters behind a single lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._http_requests: Counter = Counter()
            self._http_errors: Counter = Counter()
            self._http_latency: Dict[tuple[str, str], _Histogram] = {}
            self._transitions: Counter = Counter()
            self._conflicts = 0
            self._item_decisions: Counter = Counter()
            self._fulfillment_items: Counter = Counter()

    def observe_http(self, method: str, route: str, status_code: int, duration_ms: float) -> None:
        key = (str(method or "GET").upper(), str(route or "unknown"))
        with self._lock:
            self._http_requests[(*key, str(int(status_code)))] += 1
            if int(status_code) >= 400:
                self._http_errors[key] += 1
            self._http_latency.setdefault(key, _Histogram()).observe(duration_ms)

    def observe_workflow_transition(self, from_status: str, to_status: str) -> None:
        with self._lock:
            self._transitions[(str(from_status or "unknown"), str(to_status or "unknown"))] += 1

    def observe_workflow_conflict(self) -> None:
        with self._lock:
            self._conflicts += 1

    def observe_item_decision(self, decision: str) -> None:
        with self._lock:
            self._item_decisions[str(decision or "unknown")] += 1

    def observe_fulfillment_item(self, result: str) -> None:
        with self._lock:
            self._fulfillment_items[str(result or "unknown")] += 1

    def snapshot(self) -> dict:
        with self._lock:
            by_route = [
                {
                    "route": f"{method} {route}",
                    "requests": histogram.count,
                    "errors": self._http_errors[(method, route)],
                    "avg_latency_ms": round(histogram.total / histogram.count, 2) if histogram.count else 0.0,
                    "max_latency_ms": round(histogram.maximum, 2),
                }
                for (method, route), histogram in self._http_latency.items()
            ]
            by_route.sort(key=lambda entry: entry["requests"], reverse=True)
            return {
                "requests_total": sum(self._http_requests.values()),
                "errors_total": sum(self._http_errors.values()),
                "by_route": by_route[:40],
                "workflow": {
                    "transitions_total": sum(self._transitions.values()),
                    "transitions": {f"{src}->{dst}": count for (src, dst), count in sorted(self._transitions.items())},
                    "conflicts_total": self._conflicts,
                    "item_decisions": dict(sorted(self._item_decisions.items())),
                    "fulfillment_items": dict(sorted(self._fulfillment_items.items())),
                },
            }

    def prometheus_lines(self) -> list[str]:
        with self._lock:
            lines = ["# TYPE stokstak_http_requests_total counter"]
            for (method, route, status), count in sorted(self._http_requests.items()):
                labels = {"method": method, "route": route, "status": status}
                lines.append(_prom_line("stokstak_http_requests_total", count, labels))

            lines.append("# TYPE stokstak_http_request_duration_ms histogram")
            for (method, route), histogram in sorted(self._http_latency.items()):
                labels = {"method": method, "route": route}
                lines.extend(histogram.prometheus_lines("stokstak_http_request_duration_ms", labels))

            lines.append("# TYPE stokstak_workflow_transitions_total counter")
            for (src, dst), count in sorted(self._transitions.items()):
                labels = {"from_status": src, "to_status": dst}
                lines.append(_prom_line("stokstak_workflow_transitions_total", count, labels))

            lines.append("# TYPE stokstak_workflow_conflicts_total counter")
            lines.append(_prom_line("stokstak_workflow_conflicts_total", self._conflicts))

            lines.append("# TYPE stokstak_item_decisions_total counter")
            for decision, count in sorted(self._item_decisions.items()):
                lines.append(_prom_line("stokstak_item_decisions_total", count, {"decision": decision}))

            lines.append("# TYPE stokstak_fulfillment_items_total counter")
            for result, count in sorted(self._fulfillment_items.items()):
                lines.append(_prom_line("stokstak_fulfillment_items_total", count, {"result": result}))
            return lines


_METRICS = MetricsRegistry()


def install_request_tracking(app: Flask) -> None:
    """Correlation id and latency tracking for every request served by `app`."""

    @app.before_request
    def _start_request_clock() -> None:
        ensure_request_id()
        g._request_started_at = time.perf_counter()

    @app.after_request
    def _record_response(response):
        started = getattr(g, "_request_started_at", None)
        elapsed_ms = (time.perf_counter() - started) * 1000.0 if started else 0.0
        route = request.url_rule.rule if request.url_rule is not None else request.path
        _METRICS.observe_http(request.method, route, response.status_code, elapsed_ms)
        response.headers["X-Request-Id"] = ensure_request_id()
        response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"
        return response


def metrics_snapshot() -> dict:
    return _METRICS.snapshot()


def prometheus_metrics_text() -> str:
    return "\n".join(_METRICS.prometheus_lines()) + "\n"


def observe_workflow_transition(from_status: str, to_status: str) -> None:
    _METRICS.observe_workflow_transition(from_status, to_status)


def observe_workflow_conflict() -> None:
    _METRICS.observe_workflow_conflict()


def observe_item_decision(decision: str) -> None:
    _METRICS.observe_item_decision(decision)


def observe_fulfillment_item(result: str) -> None:
    _METRICS.observe_fulfillment_item(result)


def reset_metrics_for_tests() -> None:
    _METRICS.reset()
    set_log_request_id(None)
