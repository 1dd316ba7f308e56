from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from app.cashclose.core.config import settings


@dataclass
class MetricsSnapshot:
    content: bytes
    content_type: str


class Metrics:
    def __init__(self) -> None:
        self.enabled = settings.METRICS_ENABLED
        self._registry = None
        if self.enabled:
            self._initialize_registry()

    def _initialize_registry(self) -> None:
        self._registry = CollectorRegistry()
        self._http_requests_total = Counter(
            "http_requests_total",
            "HTTP requests by route/method/status.",
            ["route", "method", "status"],
            registry=self._registry,
        )
        self._http_request_duration_ms = Histogram(
            "http_request_duration_ms",
            "HTTP request latency in milliseconds.",
            ["route", "method", "status"],
            buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
            registry=self._registry,
        )
        self._idempotency_replay_total = Counter(
            "idempotency_replay_total",
            "Idempotent replay responses.",
            registry=self._registry,
        )
        self._lock_wait_timeout_total = Counter(
            "lock_wait_timeout_total",
            "Lock wait timeout occurrences.",
            registry=self._registry,
        )
        self._closures_submitted_total = Counter(
            "cash_closures_submitted_total",
            "Cash closures submitted by scope type.",
            ["scope_type"],
            registry=self._registry,
        )
        self._closure_transitions_total = Counter(
            "cash_closure_transitions_total",
            "Cash closure review transitions by resulting status.",
            ["status"],
            registry=self._registry,
        )
        self._significant_discrepancy_total = Counter(
            "cash_closure_significant_discrepancy_total",
            "Submitted closures flagged with a significant difference.",
            registry=self._registry,
        )

    def reset(self) -> None:
        if self.enabled:
            self._initialize_registry()

    def record_http_request(self, *, route: str, method: str, status_code: int, latency_ms: float) -> None:
        if not self.enabled:
            return
        labels = {"route": route, "method": method, "status": str(status_code)}
        self._http_requests_total.labels(**labels).inc()
        self._http_request_duration_ms.labels(**labels).observe(latency_ms)

    def increment_idempotency_replay(self) -> None:
        if self.enabled:
            self._idempotency_replay_total.inc()

    def increment_lock_wait_timeout(self) -> None:
        if self.enabled:
            self._lock_wait_timeout_total.inc()

    def record_closure_submitted(self, *, scope_type: str, significant: bool) -> None:
        if not self.enabled:
            return
        self._closures_submitted_total.labels(scope_type=scope_type).inc()
        if significant:
            self._significant_discrepancy_total.inc()

    def record_closure_transition(self, status: str) -> None:
        if self.enabled:
            self._closure_transitions_total.labels(status=status).inc()

    def render(self) -> MetricsSnapshot:
        if not self.enabled:
            return MetricsSnapshot(content=b"metrics_disabled\n", content_type="text/plain")
        return MetricsSnapshot(content=generate_latest(self._registry), content_type=CONTENT_TYPE_LATEST)


metrics = Metrics()
