import logging
import threading
import time
from collections import deque
from dataclasses import dataclass

ERROR_RATE_UNHEALTHY = 10.0
ERROR_RATE_DEGRADED = 5.0
RESPONSE_MS_UNHEALTHY = 5000.0
RESPONSE_MS_DEGRADED = 2000.0
HEALTH_WINDOW_MINUTES = 5
TOP_ENDPOINTS = 10


@dataclass
class RequestRecord:
    method: str
    path: str
    status_code: int
    duration_ms: float
    request_id: str
    timestamp: float  # epoch seconds
    ip: str | None = None
    user_agent: str | None = None


class RequestLog:
    """Keep the last N request records and summarize them over a time window."""

    def __init__(self, capacity: int = 10000):
        self.capacity = capacity
        self._records: deque[RequestRecord] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._log = logging.getLogger(__name__)

    def record(self, rec: RequestRecord) -> None:
        with self._lock:
            self._records.append(rec)
        self._log.debug(
            "request recorded",
            extra={
                "event": "metrics.request",
                "extra_fields": {
                    "method": rec.method,
                    "path": rec.path,
                    "status": rec.status_code,
                    "duration_ms": rec.duration_ms,
                },
            },
        )

    def recent(self, window_minutes: float, now: float | None = None) -> list[RequestRecord]:
        cutoff = (time.time() if now is None else now) - window_minutes * 60
        with self._lock:
            return [r for r in self._records if r.timestamp > cutoff]

    def request_stats(self, window_minutes: float = 60, now: float | None = None) -> dict[str, object]:
        recs = self.recent(window_minutes, now)
        total = len(recs)
        avg = sum(r.duration_ms for r in recs) / total if total else 0
        errors = sum(1 for r in recs if r.status_code >= 400)
        error_rate = errors / total * 100 if total else 0

        by_method: dict[str, int] = {}
        by_status: dict[str, int] = {}
        endpoints: dict[str, list[float]] = {}  # path -> [count, total_ms]
        for r in recs:
            by_method[r.method] = by_method.get(r.method, 0) + 1
            group = str(r.status_code // 100 * 100)
            by_status[group] = by_status.get(group, 0) + 1
            ep = endpoints.setdefault(r.path, [0, 0.0])
            ep[0] += 1
            ep[1] += r.duration_ms

        top = sorted(
            (
                {"path": path, "count": int(n), "avgDuration": ms / n}
                for path, (n, ms) in endpoints.items()
            ),
            key=lambda e: e["count"],
            reverse=True,
        )[:TOP_ENDPOINTS]

        return {
            "totalRequests": total,
            "averageResponseTime": avg,
            "errorRate": error_rate,
            "requestsByMethod": by_method,
            "requestsByStatus": by_status,
            "topEndpoints": top,
        }

    def system_health(self, now: float | None = None) -> dict[str, object]:
        stats = self.request_stats(HEALTH_WINDOW_MINUTES, now)
        error_rate = stats["errorRate"]
        avg = stats["averageResponseTime"]
        alerts: list[str] = []
        status = "healthy"

        if error_rate > ERROR_RATE_UNHEALTHY:
            alerts.append(f"High error rate: {error_rate:.2f}%")
            status = "unhealthy"
        elif error_rate > ERROR_RATE_DEGRADED:
            alerts.append(f"Elevated error rate: {error_rate:.2f}%")
            status = "degraded"

        if avg > RESPONSE_MS_UNHEALTHY:
            alerts.append(f"High average response time: {avg:.2f}ms")
            status = "unhealthy"
        elif avg > RESPONSE_MS_DEGRADED:
            alerts.append(f"Elevated average response time: {avg:.2f}ms")
            if status == "healthy":
                status = "degraded"

        return {
            "status": status,
            "alerts": alerts,
            "metrics": {
                "requestErrorRate": error_rate,
                "averageResponseTime": avg,
            },
        }
