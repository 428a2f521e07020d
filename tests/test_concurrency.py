import threading

from route_metrics.stats import MetricsAggregator


def test_concurrent_records_are_not_lost():
    agg = MetricsAggregator()
    n_threads, per_thread = 8, 500

    def worker(i: int):
        path = "/shared" if i % 2 == 0 else f"/own/{i}"
        for _ in range(per_thread):
            agg.record("GET", path, 200, 1.0)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(n_threads)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    snap = agg.snapshot()
    assert snap.routes["GET /shared"].counters.total == per_thread * (n_threads // 2)
    assert sum(r.counters.total for r in snap.routes.values()) == n_threads * per_thread
    assert len(snap.routes) == 1 + n_threads // 2
