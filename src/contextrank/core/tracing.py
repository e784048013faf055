"""
Local observability.

Spans and counters for debugging the engine, without external telemetry.
"""

import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from contextrank.core.id_generator import generate_id
from contextrank.core.logging import AsyncLogger


class LocalTracer:
    """
    Simple local tracing system.

    LocalTracer vs MetricsCollector:
    - LocalTracer: individual operations with duration and attributes,
      useful for "why is this search slow"
    - MetricsCollector: aggregated counters and gauges, no per-operation context

    COMPLEMENTARY USE EXAMPLE:
    - metrics.increment("search.requests")
    - tracer.span("search", {"mode": "hybrid", "candidates": 120})
    """

    def __init__(self, service_name: str = "contextrank") -> None:
        self.service_name = service_name
        self.logger = AsyncLogger("tracing")

    @contextmanager
    def span(self, name: str, attributes: Optional[Dict[str, Any]] = None) -> Iterator[None]:
        """
        Create a span to measure an operation.

        Usage:
        ```
        with tracer.span("resolve_candidates", {"filters": 2}):
            ids = resolver.resolve(request)
        ```
        """
        span_id = generate_id()
        start = time.perf_counter()

        try:
            yield
        finally:
            duration = time.perf_counter() - start
            self.logger.debug(
                f"Span completed: {name}",
                span_id=span_id,
                duration_ms=duration * 1000,
                **(attributes or {}),
            )


class MetricsCollector:
    """
    Local metrics collector.

    Safe to update from the worker pool threads.
    """

    def __init__(self) -> None:
        self.metrics: Dict[str, float] = {}
        self._lock = threading.Lock()
        self.logger = AsyncLogger("metrics")

    def increment(self, name: str, value: float = 1.0) -> None:
        """Increments counter."""
        with self._lock:
            self.metrics[name] = self.metrics.get(name, 0) + value

    def gauge(self, name: str, value: float) -> None:
        """Sets current value."""
        with self._lock:
            self.metrics[name] = value

    def record(self, name: str, value: float) -> None:
        """Records a measurement (alias of gauge)."""
        self.gauge(name, value)

    def get_metrics(self) -> Dict[str, float]:
        """Gets all metrics."""
        with self._lock:
            return self.metrics.copy()


# Global instance
tracer = LocalTracer()
