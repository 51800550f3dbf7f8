"""Lightweight in-process metrics for the aggregator service.

Kept dependency-free: request latencies for the API and counters for
aggregation runs, exposed through ``/api/metrics``.
"""

from __future__ import annotations

from collections import defaultdict, deque
from threading import Lock

from govsignals.models.signal import RunSummary
from govsignals.utils.time import utc_now


class InMemoryMetrics:
    def __init__(self, latency_window: int = 2000) -> None:
        self._lock = Lock()
        self._requests_total = 0
        self._status_counts: dict[str, int] = defaultdict(int)
        self._path_counts: dict[str, int] = defaultdict(int)
        self._latencies_ms = deque(maxlen=latency_window)

        self._runs_total = 0
        self._runs_failed = 0
        self._items_processed = 0
        self._signals_grouped = 0
        self._signals_stored = 0
        self._run_errors = 0
        self._last_run: dict | None = None

    def observe_request(self, path: str, status_code: int, duration_ms: float) -> None:
        bucket = f"{status_code // 100}xx"
        with self._lock:
            self._requests_total += 1
            self._status_counts[bucket] += 1
            self._path_counts[path] += 1
            self._latencies_ms.append(float(duration_ms))

    def observe_run(self, summary: RunSummary, duration_ms: float) -> None:
        with self._lock:
            self._runs_total += 1
            self._items_processed += summary.processed
            self._signals_grouped += summary.grouped
            self._signals_stored += summary.stored
            self._run_errors += len(summary.errors)
            self._last_run = {
                "finished_at": utc_now().isoformat(),
                "duration_ms": round(duration_ms, 2),
                **summary.model_dump(exclude={"errors"}),
                "errors": len(summary.errors),
            }

    def observe_failed_run(self) -> None:
        with self._lock:
            self._runs_total += 1
            self._runs_failed += 1

    def snapshot(self) -> dict:
        with self._lock:
            sorted_latencies = sorted(self._latencies_ms)

            def percentile(p: float) -> float:
                if not sorted_latencies:
                    return 0.0
                idx = int((len(sorted_latencies) - 1) * p)
                return round(sorted_latencies[idx], 2)

            return {
                "requests_total": self._requests_total,
                "status_counts": dict(self._status_counts),
                "path_counts": dict(self._path_counts),
                "latency_ms": {
                    "samples": len(sorted_latencies),
                    "p50": percentile(0.50),
                    "p95": percentile(0.95),
                    "p99": percentile(0.99),
                },
                "aggregation": {
                    "runs_total": self._runs_total,
                    "runs_failed": self._runs_failed,
                    "items_processed": self._items_processed,
                    "signals_grouped": self._signals_grouped,
                    "signals_stored": self._signals_stored,
                    "errors": self._run_errors,
                    "last_run": dict(self._last_run) if self._last_run else None,
                },
            }


metrics = InMemoryMetrics()
