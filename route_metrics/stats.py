import math
import threading
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

MAX_LATENCIES = 512
SMALL_LATENCIES = 50


def _json_number(v: float | None) -> float | None:
    # JSON has no NaN or Infinity.
    if v is None or math.isfinite(v):
        return v
    return None


@dataclass
class Counters:
    total: int = 0
    s2xx: int = 0
    s3xx: int = 0
    s4xx: int = 0
    s5xx: int = 0
    s429: int = 0


@dataclass
class RouteReport:
    counters: Counters
    p50: float | None
    p95: float | None
    p99: float | None
    latencies_small: list[float]

    def to_dict(self) -> dict[str, object]:
        return {
            "counters": {
                "total": self.counters.total,
                "s2xx": self.counters.s2xx,
                "s3xx": self.counters.s3xx,
                "s4xx": self.counters.s4xx,
                "s5xx": self.counters.s5xx,
                "s429": self.counters.s429,
            },
            "p50": _json_number(self.p50),
            "p95": _json_number(self.p95),
            "p99": _json_number(self.p99),
            "latenciesSmall": [_json_number(v) for v in self.latencies_small],
        }


@dataclass
class MetricsSnapshot:
    generated_at: str
    routes: dict[str, RouteReport] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "generatedAt": self.generated_at,
            "routes": {key: r.to_dict() for key, r in self.routes.items()},
        }


class _RouteMetrics:
    __slots__ = ("lock", "counters", "latencies")

    def __init__(self, capacity: int):
        self.lock = threading.Lock()
        self.counters = Counters()
        self.latencies: deque[float] = deque(maxlen=capacity)


def route_key(method: str, path: str) -> str:
    return f"{method.upper()} {path}"


def _sort_key(v: float) -> float:
    # NaN would break ordering; it sorts last.
    return math.inf if v != v else v


def percentile(samples, p: float) -> float | None:
    """Nearest-rank percentile: ``sorted[floor(p/100 * n)]``, clamped to the last index."""
    if not samples:
        return None
    arr = sorted(samples, key=_sort_key)
    n = len(arr)
    idx = min(n - 1, max(0, math.floor((p / 100) * n)))
    return arr[idx]


def iso_now(ts: float | None = None) -> str:
    dt = datetime.now(timezone.utc) if ts is None else datetime.fromtimestamp(ts, timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class MetricsAggregator:
    """Per-route request counters and a sliding window of recent latencies.

    Every ``"METHOD path"`` key gets its own lock, so concurrent requests on
    different routes never contend. The map lock is only held to add a new
    route or to copy the route list for a snapshot.
    """

    def __init__(self, capacity: int = MAX_LATENCIES):
        self.capacity = capacity
        self._routes: dict[str, _RouteMetrics] = {}
        self._lock = threading.Lock()

    def _get_route(self, key: str) -> _RouteMetrics:
        rm = self._routes.get(key)
        if rm is None:
            with self._lock:
                rm = self._routes.setdefault(key, _RouteMetrics(self.capacity))
        return rm

    def record(self, method: str, path: str, status: int, latency_ms: float) -> None:
        rm = self._get_route(route_key(method, path))
        with rm.lock:
            c = rm.counters
            c.total += 1
            if 200 <= status < 300:
                c.s2xx += 1
            elif 300 <= status < 400:
                c.s3xx += 1
            elif status == 429:
                c.s4xx += 1
                c.s429 += 1
            elif 400 <= status < 500:
                c.s4xx += 1
            elif 500 <= status < 600:
                c.s5xx += 1
            rm.latencies.append(latency_ms)

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            items = list(self._routes.items())
        routes: dict[str, RouteReport] = {}
        for key, rm in items:
            with rm.lock:
                counters = replace(rm.counters)
                samples = list(rm.latencies)
            routes[key] = RouteReport(
                counters=counters,
                p50=percentile(samples, 50),
                p95=percentile(samples, 95),
                p99=percentile(samples, 99),
                latencies_small=samples[-SMALL_LATENCIES:],
            )
        return MetricsSnapshot(generated_at=iso_now(), routes=routes)

    def __len__(self) -> int:
        return len(self._routes)
