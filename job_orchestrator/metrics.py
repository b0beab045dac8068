"""In-process request metrics."""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict

from fastapi import Request

logger = logging.getLogger(__name__)


@dataclass
class LatencyStats:
    count: int = 0
    total_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0

    def record(self, duration_ms: float):
        if self.count == 0 or duration_ms < self.min_ms:
            self.min_ms = duration_ms
        if duration_ms > self.max_ms:
            self.max_ms = duration_ms
        self.count += 1
        self.total_ms += duration_ms

    def as_dict(self) -> Dict[str, Any]:
        avg = self.total_ms / self.count if self.count else 0.0
        return {
            "count": self.count,
            "avg_ms": round(avg, 2),
            "min_ms": round(self.min_ms, 2),
            "max_ms": round(self.max_ms, 2),
        }


class Metrics:
    """
    Request counters and per-endpoint latency.

    Tracks:
    - Total, active, failed (status >= 400) and streaming requests
    - Latency per ``METHOD path``
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.start_time = clock()
        self.total_requests = 0
        self.active_requests = 0
        self.failed_requests = 0
        self.stream_requests = 0
        self._latency: Dict[str, LatencyStats] = {}
        self._lock = threading.Lock()

    def request_started(self):
        with self._lock:
            self.total_requests += 1
            self.active_requests += 1

    def request_finished(self, endpoint: str, status_code: int, duration_ms: float, streaming: bool):
        with self._lock:
            self.active_requests -= 1
            if status_code >= 400:
                self.failed_requests += 1
            if streaming:
                self.stream_requests += 1
            self._latency.setdefault(endpoint, LatencyStats()).record(duration_ms)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            uptime = max(self.clock() - self.start_time, 1e-9)
            return {
                "requests": {
                    "total": self.total_requests,
                    "active": self.active_requests,
                    "failed": self.failed_requests,
                    "stream": self.stream_requests,
                },
                "qps": round(self.total_requests / uptime, 3),
                "uptime_seconds": round(uptime, 1),
                "latency": {k: v.as_dict() for k, v in self._latency.items()},
            }


def metrics_middleware(metrics: Metrics):
    """HTTP middleware recording every request in ``metrics``."""

    async def middleware(request: Request, call_next):
        started = time.perf_counter()
        metrics.request_started()
        status_code = 500
        streaming = False
        try:
            response = await call_next(request)
            status_code = response.status_code
            streaming = response.headers.get("content-type", "").startswith("text/event-stream")
            return response
        finally:
            duration_ms = (time.perf_counter() - started) * 1000
            metrics.request_finished(
                f"{request.method} {request.url.path}", status_code, duration_ms, streaming,
            )

    return middleware
