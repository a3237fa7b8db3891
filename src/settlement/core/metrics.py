"""Request metrics for the exchange endpoint.

The recorder is a passive observer: it is called after the exchange response
has been sent and never influences the result. Metric names mirror a StatsD
layout under the ``exchange.`` prefix.
"""

import logging
import threading
from collections import Counter
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class MetricsRecorder(Protocol):
    """Observer notified once per exchange request."""

    def record_exchange(self, status_code: int, duration_ms: float) -> None: ...

    def snapshot(self) -> dict[str, Any]: ...


class InMemoryMetrics:
    """Counters and timing aggregates kept in process memory.

    Recorded per request:
    - ``exchange.requests.total``
    - ``exchange.requests.ok`` for 2xx, ``exchange.requests.error`` otherwise
    - ``exchange.requests.code.<status>``
    - ``exchange.request.exchange`` timing (count, total, max in ms)
    """

    def __init__(self, prefix: str = "exchange.") -> None:
        self._prefix = prefix
        self._counters: Counter[str] = Counter()
        self._timing_count = 0
        self._timing_total_ms = 0.0
        self._timing_max_ms = 0.0
        self._lock = threading.Lock()

    def record_exchange(self, status_code: int, duration_ms: float) -> None:
        outcome = "ok" if 200 <= status_code < 300 else "error"
        with self._lock:
            self._counters[f"{self._prefix}requests.total"] += 1
            self._counters[f"{self._prefix}requests.{outcome}"] += 1
            self._counters[f"{self._prefix}requests.code.{status_code}"] += 1
            self._timing_count += 1
            self._timing_total_ms += duration_ms
            self._timing_max_ms = max(self._timing_max_ms, duration_ms)

        logger.debug(f"Recorded exchange request: {status_code} in {duration_ms:.1f}ms")

    def snapshot(self) -> dict[str, Any]:
        """Return counters and timing statistics as a JSON-compatible dict."""
        with self._lock:
            count = self._timing_count
            return {
                "counters": dict(self._counters),
                "timings": {
                    f"{self._prefix}request.exchange": {
                        "count": count,
                        "total_ms": round(self._timing_total_ms, 3),
                        "avg_ms": round(self._timing_total_ms / count, 3) if count else 0.0,
                        "max_ms": round(self._timing_max_ms, 3),
                    }
                },
            }
