import pytest
from fastapi.testclient import TestClient

from route_metrics.app import create_app
from route_metrics.request_log import RequestLog
from route_metrics.stats import MetricsAggregator


@pytest.fixture
def aggregator():
    return MetricsAggregator()


@pytest.fixture
def request_log():
    return RequestLog(capacity=100)


@pytest.fixture
def app(aggregator, request_log):
    return create_app(aggregator=aggregator, request_log=request_log)


@pytest.fixture
def client(app):
    return TestClient(app)
