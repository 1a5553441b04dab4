from __future__ import annotations

import threading
from typing import Any, Dict

from prometheus_client import Counter, Histogram


class StorageMetrics:
    """Prometheus metrics for secondary storage operations."""

    # prometheus_client refuses to register the same metric name twice, so
    # the collectors are created once per process and shared by all instances.
    _metrics_cache: Dict[str, Any] = {}
    _metrics_lock = threading.Lock()

    def __init__(self, backend: str = "redis"):
        self.backend = backend

        with self._metrics_lock:
            if not self._metrics_cache:
                self._metrics_cache["operations"] = Counter(
                    "ccache_remote_operations_total",
                    "Secondary storage operations by outcome",
                    ["backend", "operation", "outcome"],
                )
                self._metrics_cache["latency"] = Histogram(
                    "ccache_remote_latency_seconds",
                    "Secondary storage operation latency",
                    ["backend", "operation"],
                )
        self.operations = self._metrics_cache["operations"]
        self.latency = self._metrics_cache["latency"]

    def record(self, operation: str, outcome: str, seconds: float) -> None:
        self.operations.labels(backend=self.backend, operation=operation, outcome=outcome).inc()
        self.latency.labels(backend=self.backend, operation=operation).observe(seconds)
