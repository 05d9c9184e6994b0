"""
Pytest configuration and fixtures for the Mars Rover API tests.

Apps are built with in-memory OpenTelemetry exporters so no test talks to a
collector. Contract cases are generated from the routes the app registers
(see pytest_generate_tests).
"""

import random
from typing import Iterator, Optional

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
try:
    from opentelemetry.sdk._logs.export import InMemoryLogRecordExporter
except ImportError:  # SDK releases before the LogRecord rename
    from opentelemetry.sdk._logs.export import InMemoryLogExporter as InMemoryLogRecordExporter
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from mars_rover import OpenTelemetryOptions, create_app, get_endpoints
from mars_rover.config import Settings
from mars_rover.observability import TelemetryExporters

TEST_SEED = 42

# Routes the service must expose; generated cases fail to collect without them.
REQUIRED_GET_PATHS = ("/hello", "/weatherforecast")


def valid_configuration() -> dict:
    return {
        "OpenTelemetry": {
            "OtlpEndpoint": "http://localhost:4317",
            "ServiceName": "mars-rover-test",
            "ServiceVersion": "1.2.3",
        }
    }


def in_memory_exporters() -> TelemetryExporters:
    return TelemetryExporters(
        span_exporter=InMemorySpanExporter(),
        metric_reader=InMemoryMetricReader(),
        log_exporter=InMemoryLogRecordExporter(),
    )


def build_app(
    exporters: Optional[TelemetryExporters] = None,
    rng: Optional[random.Random] = None,
) -> FastAPI:
    """Create an app from the test configuration."""
    return create_app(
        configuration=valid_configuration(),
        settings=Settings(app_env="test", config_file="does-not-exist.yml"),
        rng=rng or random.Random(TEST_SEED),
        exporters=exporters or in_memory_exporters(),
    )


# Built once per session, lazily, only to enumerate routes at collection time.
_discovery_app: Optional[FastAPI] = None


def discovery_app() -> FastAPI:
    global _discovery_app
    if _discovery_app is None:
        _discovery_app = build_app()
    return _discovery_app


def pytest_generate_tests(metafunc):
    """
    One case per discovered GET route for tests asking for `get_endpoint`.

    Discovery raises NoEndpointsDiscoveredError on an empty route table, and a
    table missing /hello or /weatherforecast is rejected here; both turn into
    a collection error instead of a silently thin suite.
    """
    if "get_endpoint" in metafunc.fixturenames:
        endpoints = get_endpoints(discovery_app(), "GET")
        missing = [path for path in REQUIRED_GET_PATHS if path not in {e.path for e in endpoints}]
        if missing:
            raise RuntimeError(f"Route discovery did not find {missing}; generated API cases would be incomplete")
        metafunc.parametrize(
            "get_endpoint",
            endpoints,
            ids=[f"{endpoint.http_method} {endpoint.path}" for endpoint in endpoints],
        )


def pytest_sessionfinish(session, exitstatus):
    if _discovery_app is not None:
        _discovery_app.state.telemetry.shutdown()


@pytest.fixture
def otel_options() -> OpenTelemetryOptions:
    return OpenTelemetryOptions.model_validate(valid_configuration()["OpenTelemetry"])


@pytest.fixture
def exporters() -> TelemetryExporters:
    return in_memory_exporters()


@pytest.fixture
def app(exporters) -> Iterator[FastAPI]:
    application = build_app(exporters=exporters)
    yield application
    application.state.telemetry.shutdown()


@pytest.fixture
def client(app) -> Iterator[TestClient]:
    """Client with lifespan running; exiting shuts telemetry down."""
    with TestClient(app) as test_client:
        yield test_client
