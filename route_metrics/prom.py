import math

from .stats import MetricsSnapshot

CONTENT_TYPE = "text/plain; version=0.0.4"

_HEADER = [
    "# HELP route_requests_total Total HTTP requests by route",
    "# TYPE route_requests_total counter",
    "# HELP route_requests_status_total HTTP requests by route and status group",
    "# TYPE route_requests_status_total counter",
    "# HELP route_requests_latency_ms_p50 Route latency p50 in milliseconds",
    "# TYPE route_requests_latency_ms_p50 gauge",
    "# HELP route_requests_latency_ms_p95 Route latency p95 in milliseconds",
    "# TYPE route_requests_latency_ms_p95 gauge",
    "# HELP route_requests_latency_ms_p99 Route latency p99 in milliseconds",
    "# TYPE route_requests_latency_ms_p99 gauge",
]


def escape_label(v: str) -> str:
    return v.replace("\\", "\\\\").replace('"', '\\"')


def format_value(v: float | None) -> str:
    if v is None:
        return "0"
    if isinstance(v, float):
        if math.isnan(v):
            return "NaN"
        if math.isinf(v):
            return "+Inf" if v > 0 else "-Inf"
        if v.is_integer():
            return str(int(v))
    return str(v)


def split_route_key(key: str) -> tuple[str, str]:
    method, sep, path = key.partition(" ")
    if not sep or not method:
        return "", key
    return method, path


def render_prometheus_text(snap: MetricsSnapshot) -> str:
    lines = list(_HEADER)
    for key, stats in snap.routes.items():
        method, path = split_route_key(key)
        labels = f'method="{escape_label(method)}",path="{escape_label(path)}"'
        c = stats.counters
        lines.append(f"route_requests_total{{{labels}}} {c.total}")
        for group, value in (
            ("2xx", c.s2xx),
            ("3xx", c.s3xx),
            ("4xx", c.s4xx),
            ("5xx", c.s5xx),
            ("429", c.s429),
        ):
            lines.append(f'route_requests_status_total{{{labels},status_group="{group}"}} {value}')
        lines.append(f"route_requests_latency_ms_p50{{{labels}}} {format_value(stats.p50)}")
        lines.append(f"route_requests_latency_ms_p95{{{labels}}} {format_value(stats.p95)}")
        lines.append(f"route_requests_latency_ms_p99{{{labels}}} {format_value(stats.p99)}")
    return "\n".join(lines) + "\n"
