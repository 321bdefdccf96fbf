from __future__ import annotations

import contextvars
import json
import logging
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Tuple

from flask import g, has_request_context, request


_HTTP_DURATION_BUCKETS_MS = (5.0, 10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0, 2500.0, 5000.0, 10000.0)

_LOG_REQUEST_ID_CTX: contextvars.ContextVar[str] = contextvars.ContextVar("log_request_id", default="")


def _normalize_request_id(value: str | None) -> str:
    return str(value or "").strip() or "n/a"


def set_log_request_id(request_id: str | None) -> None:
    _LOG_REQUEST_ID_CTX.set(_normalize_request_id(request_id))


def _background_request_id(default: str | None = None) -> str:
    request_id = str(_LOG_REQUEST_ID_CTX.get() or "").strip()
    if request_id:
        return request_id
    return default or "n/a"


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line, tagged with the request id when there is one."""

    _base_keys = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    }

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
            if key in self._base_keys or key.startswith("_"):
                continue
            if key in payload:
                continue
            if callable(value):
                continue
            payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, separators=(",", ":"), default=str)


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


class _LabelledCounter:
    """A Prometheus-style counter: one integer per label tuple."""

    def __init__(self, name: str, help_text: str, labels: Tuple[str, ...]) -> None:
        self.name = name
        self.help_text = help_text
        self.labels = labels
        self.values: Dict[Tuple[str, ...], int] = {}

    def inc(self, label_values: Tuple[str, ...], amount: int = 1) -> None:
        self.values[label_values] = self.values.get(label_values, 0) + amount

    def samples(self) -> List[Tuple[Dict[str, str], int]]:
        return [(dict(zip(self.labels, key)), value) for key, value in sorted(self.values.items())]


class _Histogram:
    def __init__(self, limits: Tuple[float, ...]) -> None:
        self.limits = limits
        self.count = 0
        self.total = 0.0
        self.bucket_counts = [0] * len(limits)

    def observe(self, value: float) -> None:
        value = max(0.0, float(value))
        self.count += 1
        self.total += value
        for idx, limit in enumerate(self.limits):
            if value <= limit:
                self.bucket_counts[idx] += 1

    def cumulative(self) -> List[Tuple[str, int]]:
        pairs = [(f"{limit:g}", count) for limit, count in zip(self.limits, self.bucket_counts)]
        return pairs + [("+Inf", self.count)]


# Domain counters, in the order /metrics prints them.
_COUNTER_SPECS = (
    ("domain_event_emitted_total", "Domain events published on the event bus.", ("event_type",)),
    ("edit_lease_conflict_total", "Order edit attempts refused by the edit lease.", ("reason",)),
    ("client_error_total", "Browser errors reported to the error boundary.", ("kind",)),
    ("csv_rows_total", "CSV import rows by kind and outcome.", ("kind", "outcome")),
)


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._http_total = _LabelledCounter(
                "http_request_total",
                "Total HTTP requests by method, route and status.",
                ("method", "route", "status"),
            )
            self._http_duration: Dict[Tuple[str, str], _Histogram] = {}
            self._counters = {
                name: _LabelledCounter(name, help_text, labels) for name, help_text, labels in _COUNTER_SPECS
            }

    def observe_http(self, method: str, route: str, status_code: int, duration_ms: float) -> None:
        method_key = str(method or "GET").strip().upper() or "GET"
        route_key = str(route or "unknown").strip() or "unknown"
        with self._lock:
            self._http_total.inc((method_key, route_key, str(int(status_code))))
            histogram = self._http_duration.get((method_key, route_key))
            if histogram is None:
                histogram = self._http_duration[(method_key, route_key)] = _Histogram(_HTTP_DURATION_BUCKETS_MS)
            histogram.observe(duration_ms)

    def inc(self, name: str, *label_values: str, amount: int = 1) -> None:
        if amount <= 0:
            return
        key = tuple(str(value or "unknown").strip() or "unknown" for value in label_values)
        with self._lock:
            self._counters[name].inc(key, amount)

    def snapshot(self) -> dict:
        """Compact view for /health: totals plus the busiest routes."""
        with self._lock:
            per_route: Dict[str, Dict[str, int]] = {}
            requests_total = errors_total = 0
            for (method, route, status), value in self._http_total.values.items():
                entry = per_route.setdefault(f"{method} {route}", {"requests": 0, "errors": 0})
                entry["requests"] += value
                requests_total += value
                if int(status) >= 400:
                    entry["errors"] += value
                    errors_total += value
            by_route = []
            for key, entry in per_route.items():
                method, route = key.split(" ", 1)
                histogram = self._http_duration.get((method, route))
                avg_ms = histogram.total / histogram.count if histogram and histogram.count else 0.0
                by_route.append(dict(entry, route=key, avg_latency_ms=round(avg_ms, 2)))
            by_route.sort(key=lambda item: item["requests"], reverse=True)
            return {
                "requests_total": requests_total,
                "errors_total": errors_total,
                "by_route": by_route[:40],
                "counters": {
                    name: {"|".join(labels): value for labels, value in sorted(counter.values.items())}
                    for name, counter in self._counters.items()
                },
            }

    def prometheus_lines(self) -> List[str]:
        with self._lock:
            lines = _counter_lines(self._http_total)
            lines.append("# HELP http_request_duration_ms HTTP request duration in milliseconds.")
            lines.append("# TYPE http_request_duration_ms histogram")
            for (method, route), histogram in sorted(self._http_duration.items()):
                labels = {"method": method, "route": route}
                for le, value in histogram.cumulative():
                    lines.append(_prom_line("http_request_duration_ms_bucket", value, labels | {"le": le}))
                lines.append(_prom_line("http_request_duration_ms_sum", histogram.total, labels))
                lines.append(_prom_line("http_request_duration_ms_count", histogram.count, labels))
            for counter in self._counters.values():
                lines.extend(_counter_lines(counter))
            return lines


def _prom_label(value: object) -> str:
    return str(value).replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _prom_line(name: str, value: int | float, labels: Dict[str, object] | None = None) -> str:
    if labels:
        labels_blob = ",".join(f'{key}="{_prom_label(val)}"' for key, val in sorted(labels.items()))
        return f"{name}{{{labels_blob}}} {value}"
    return f"{name} {value}"


def _counter_lines(counter: _LabelledCounter) -> List[str]:
    lines = [f"# HELP {counter.name} {counter.help_text}", f"# TYPE {counter.name} counter"]
    lines.extend(_prom_line(counter.name, value, labels) for labels, value in counter.samples())
    return lines


_METRICS = MetricsRegistry()


def mark_request_start() -> None:
    g._request_started_at = time.perf_counter()


def observe_response(response):
    started = float(getattr(g, "_request_started_at", 0.0) or 0.0)
    elapsed_ms = (time.perf_counter() - started) * 1000.0 if started > 0.0 else 0.0
    route = request.url_rule.rule if request.url_rule is not None else request.path
    _METRICS.observe_http(request.method, route, int(response.status_code), elapsed_ms)
    response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"
    return response


def metrics_snapshot() -> dict:
    return _METRICS.snapshot()


def observe_domain_event_emitted(event_type: str) -> None:
    _METRICS.inc("domain_event_emitted_total", event_type)


def observe_edit_lease_conflict(reason: str) -> None:
    _METRICS.inc("edit_lease_conflict_total", reason)


def observe_client_error(kind: str) -> None:
    _METRICS.inc("client_error_total", str(kind or "").lower())


def observe_csv_rows(kind: str, outcome: str, count: int = 1) -> None:
    _METRICS.inc("csv_rows_total", kind, outcome, amount=max(0, int(count or 0)))


def prometheus_metrics_text() -> str:
    return "\n".join(_METRICS.prometheus_lines()) + "\n"


def reset_metrics_for_tests() -> None:
    _METRICS.reset()
    set_log_request_id(None)
