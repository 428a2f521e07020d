from route_metrics.request_log import RequestLog, RequestRecord

NOW = 1_700_000_000.0


def _rec(path="/games", status=200, ms=100.0, method="GET", age_s=10.0):
    return RequestRecord(
        method=method,
        path=path,
        status_code=status,
        duration_ms=ms,
        request_id="req",
        timestamp=NOW - age_s,
    )


def test_empty_log_stats():
    stats = RequestLog().request_stats(60, now=NOW)
    assert stats == {
        "totalRequests": 0,
        "averageResponseTime": 0,
        "errorRate": 0,
        "requestsByMethod": {},
        "requestsByStatus": {},
        "topEndpoints": [],
    }


def test_request_stats_aggregates_window():
    rl = RequestLog()
    rl.record(_rec("/games", 200, 100.0))
    rl.record(_rec("/games", 201, 300.0))
    rl.record(_rec("/coins", 404, 50.0, method="POST"))
    rl.record(_rec("/coins", 500, 150.0, method="POST"))
    rl.record(_rec("/old", 200, 999.0, age_s=2 * 3600))

    stats = rl.request_stats(60, now=NOW)
    assert stats["totalRequests"] == 4
    assert stats["averageResponseTime"] == 150.0
    assert stats["errorRate"] == 50.0
    assert stats["requestsByMethod"] == {"GET": 2, "POST": 2}
    assert stats["requestsByStatus"] == {"200": 2, "400": 1, "500": 1}
    assert stats["topEndpoints"] == [
        {"path": "/games", "count": 2, "avgDuration": 200.0},
        {"path": "/coins", "count": 2, "avgDuration": 100.0},
    ]


def test_capacity_drops_oldest():
    rl = RequestLog(capacity=3)
    for i in range(5):
        rl.record(_rec(f"/p{i}"))
    assert [r.path for r in rl.recent(60, now=NOW)] == ["/p2", "/p3", "/p4"]


def test_top_endpoints_limited_to_ten():
    rl = RequestLog()
    for i in range(12):
        for _ in range(i + 1):
            rl.record(_rec(f"/e{i}"))
    top = rl.request_stats(60, now=NOW)["topEndpoints"]
    assert len(top) == 10
    assert top[0]["path"] == "/e11"
    assert top[-1]["path"] == "/e2"


def test_system_health_healthy():
    rl = RequestLog()
    rl.record(_rec(ms=20.0))
    health = rl.system_health(now=NOW)
    assert health["status"] == "healthy"
    assert health["alerts"] == []


def test_system_health_error_rates():
    rl = RequestLog()
    for _ in range(15):
        rl.record(_rec(status=200, ms=10.0))
    rl.record(_rec(status=500, ms=10.0))
    health = rl.system_health(now=NOW)
    assert health["status"] == "degraded"
    assert health["alerts"] == ["Elevated error rate: 6.25%"]

    for _ in range(2):
        rl.record(_rec(status=503, ms=10.0))
    health = rl.system_health(now=NOW)
    assert health["status"] == "unhealthy"
    assert health["alerts"] == ["High error rate: 16.67%"]


def test_slow_responses_do_not_downgrade_unhealthy():
    rl = RequestLog()
    rl.record(_rec(status=500, ms=2500.0))
    health = rl.system_health(now=NOW)
    assert health["status"] == "unhealthy"
    assert health["alerts"] == [
        "High error rate: 100.00%",
        "Elevated average response time: 2500.00ms",
    ]


def test_system_health_only_looks_at_last_five_minutes():
    rl = RequestLog()
    rl.record(_rec(status=500, ms=6000.0, age_s=600))
    rl.record(_rec(status=200, ms=5100.0, age_s=30))
    health = rl.system_health(now=NOW)
    assert health["status"] == "unhealthy"
    assert health["alerts"] == ["High average response time: 5100.00ms"]
    assert health["metrics"] == {"requestErrorRate": 0.0, "averageResponseTime": 5100.0}
