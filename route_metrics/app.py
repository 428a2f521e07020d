import logging
import time
import uuid

from fastapi import FastAPI, Query, Request
from fastapi.responses import PlainTextResponse

from . import config
from .errors import install_error_handlers
from .logging import setup_logging
from .prom import CONTENT_TYPE, render_prometheus_text
from .request_log import RequestLog, RequestRecord
from .stats import MetricsAggregator, iso_now

log = logging.getLogger(__name__)


def _client_ip(request: Request) -> str | None:
    ip = request.headers.get("cf-connecting-ip") or request.headers.get("x-real-ip")
    if ip:
        return ip
    return request.client.host if request.client else None


def create_app(
    aggregator: MetricsAggregator | None = None,
    request_log: RequestLog | None = None,
) -> FastAPI:
    setup_logging("route-metrics", config.LOG_LEVEL)
    app = FastAPI(title="Route Metrics")

    metrics = aggregator if aggregator is not None else MetricsAggregator()
    requests_log = request_log if request_log is not None else RequestLog(config.REQUEST_LOG_CAPACITY)
    app.state.metrics = metrics
    app.state.request_log = requests_log
    started_at = time.time()

    install_error_handlers(app)

    # Request id + per-route metrics + access log
    @app.middleware("http")
    async def record_request(request: Request, call_next):
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = req_id
        t0 = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            response.headers["X-Request-Id"] = req_id
            return response
        finally:
            latency_ms = (time.perf_counter() - t0) * 1000
            path = request.url.path
            metrics.record(request.method, path, status, latency_ms)
            requests_log.record(
                RequestRecord(
                    method=request.method,
                    path=path,
                    status_code=status,
                    duration_ms=latency_ms,
                    request_id=req_id,
                    timestamp=time.time(),
                    ip=_client_ip(request),
                    user_agent=request.headers.get("user-agent"),
                )
            )
            log.info(
                "access",
                extra={
                    "event": "http.access",
                    "extra_fields": {
                        "path": path,
                        "method": request.method,
                        "status": status,
                        "latency_ms": round(latency_ms, 1),
                        "request_id": req_id,
                    },
                },
            )

    @app.on_event("startup")
    async def _startup():
        log.info(
            "starting route metrics",
            extra={
                "event": "startup",
                "extra_fields": {"request_log_capacity": requests_log.capacity},
            },
        )

    # Endpoints
    @app.get("/metrics")
    def metrics_json():
        return {"data": metrics.snapshot().to_dict(), "success": True}

    @app.get("/metrics/prom")
    def metrics_prom():
        body = render_prometheus_text(metrics.snapshot())
        return PlainTextResponse(body, headers={"Content-Type": CONTENT_TYPE})

    @app.get("/metrics/requests")
    def request_stats(
        window_minutes: int = Query(60, ge=1, le=1440, description="Look-back window in minutes"),
    ):
        return {"data": requests_log.request_stats(window_minutes), "success": True}

    @app.get("/health")
    def health():
        now = time.time()
        system = requests_log.system_health(now)
        return {
            "data": {
                "status": system["status"],
                "timestamp": iso_now(now),
                "uptime_s": int(now - started_at),
                "metrics": {
                    "requests": requests_log.request_stats(5, now),
                    "system": system,
                },
            },
            "status": "success",
            "success": True,
        }

    @app.get("/health/live")
    def liveness():
        now = time.time()
        return {
            "data": {
                "alive": True,
                "timestamp": iso_now(now),
                "uptime_s": int(now - started_at),
            },
            "status": "success",
            "success": True,
        }

    return app


app = create_app()
