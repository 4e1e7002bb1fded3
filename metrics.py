"""Thread-safe in-memory counters for the static file server."""

from __future__ import annotations

import threading
from collections import Counter

LATENCY_BUCKETS_MS = (1, 5, 10, 25, 50, 100, 250, 500, 1000)


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connections_accepted = 0
        self._accept_errors = 0
        self._rejected_submissions = 0
        self._total_responses = 0
        self._inflight_requests = 0
        self._status_counts: Counter[str] = Counter()
        self._latency_buckets: Counter[str] = Counter()
        self._bytes_sent_total = 0
        self._read_errors_by_type: Counter[str] = Counter()
        self._write_errors_by_type: Counter[str] = Counter()

    def connection_accepted(self) -> None:
        with self._lock:
            self._connections_accepted += 1

    def record_accept_error(self) -> None:
        with self._lock:
            self._accept_errors += 1

    def record_rejected_submission(self) -> None:
        with self._lock:
            self._rejected_submissions += 1

    def request_started(self) -> None:
        with self._lock:
            self._inflight_requests += 1

    def request_finished(self) -> None:
        with self._lock:
            self._inflight_requests = max(0, self._inflight_requests - 1)

    def record_response(self, status_code: int, duration_ms: float, bytes_sent: int) -> None:
        with self._lock:
            self._total_responses += 1
            self._status_counts[str(status_code)] += 1
            self._bytes_sent_total += bytes_sent
            self._latency_buckets[self._bucket_label(duration_ms)] += 1

    def record_read_error(self, error_type: str) -> None:
        with self._lock:
            self._read_errors_by_type[error_type] += 1

    def record_write_error(self, error_type: str) -> None:
        with self._lock:
            self._write_errors_by_type[error_type] += 1

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            return {
                "connections_accepted": self._connections_accepted,
                "accept_errors": self._accept_errors,
                "rejected_submissions": self._rejected_submissions,
                "total_responses": self._total_responses,
                "inflight_requests": self._inflight_requests,
                "status_counts": dict(self._status_counts),
                "latency_buckets_ms": dict(self._latency_buckets),
                "bytes_sent_total": self._bytes_sent_total,
                "read_errors_by_type": dict(self._read_errors_by_type),
                "write_errors_by_type": dict(self._write_errors_by_type),
            }

    def _bucket_label(self, duration_ms: float) -> str:
        for limit in LATENCY_BUCKETS_MS:
            if duration_ms <= limit:
                return f"<= {limit}ms"
        return f"> {LATENCY_BUCKETS_MS[-1]}ms"
