"""
Contract tests for every GET route the application registers.

Paths are not hard-coded: `get_endpoint` is parametrized from the app's own
route table (see conftest.pytest_generate_tests).
"""
import datetime as dt
import random
import time

from fastapi.testclient import TestClient

from mars_rover.weather import MAX_TEMPERATURE_C, MIN_TEMPERATURE_C, SUMMARIES
from tests.conftest import build_app

ALLOWED_CONTENT_TYPES = {"application/json", "text/plain", "text/html"}
MAX_LATENCY_SECONDS = 5.0


class TestDiscoveredGetEndpoints:
    """Generated cases: one per discovered GET route."""

    def test_endpoint_returns_success(self, client: TestClient, get_endpoint) -> None:
        response = client.get(get_endpoint.path)

        assert 200 <= response.status_code < 300, \
            f"{get_endpoint.path} returned {response.status_code}"

    def test_endpoint_responds_within_latency_budget(self, client: TestClient, get_endpoint) -> None:
        start = time.perf_counter()
        client.get(get_endpoint.path)
        elapsed = time.perf_counter() - start

        assert elapsed < MAX_LATENCY_SECONDS, \
            f"{get_endpoint.path} took {elapsed:.3f}s"

    def test_endpoint_returns_known_content_type(self, client: TestClient, get_endpoint) -> None:
        response = client.get(get_endpoint.path)

        assert "content-type" in response.headers
        media_type = response.headers["content-type"].split(";")[0].strip()
        assert media_type in ALLOWED_CONTENT_TYPES

    def test_endpoint_sets_security_headers(self, client: TestClient, get_endpoint) -> None:
        response = client.get(get_endpoint.path)

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-XSS-Protection"] == "1; mode=block"
        assert "server" not in response.headers
        assert response.headers["X-Request-ID"]


def test_hello_returns_plain_text_greeting(client: TestClient) -> None:
    response = client.get("/hello")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text == "Hello World!"


def test_weather_forecast_has_five_valid_entries(client: TestClient) -> None:
    response = client.get("/weatherforecast")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")

    forecast = response.json()
    assert len(forecast) == 5

    tomorrow = dt.date.today() + dt.timedelta(days=1)
    for offset, entry in enumerate(forecast):
        assert set(entry) == {"date", "temperatureC", "temperatureF", "summary"}
        assert MIN_TEMPERATURE_C <= entry["temperatureC"] < MAX_TEMPERATURE_C
        assert entry["temperatureF"] == 32 + int(entry["temperatureC"] / 0.5556)
        assert entry["summary"] in SUMMARIES
        assert dt.date.fromisoformat(entry["date"]) == tomorrow + dt.timedelta(days=offset)


def test_weather_forecast_is_reproducible_with_seeded_rng() -> None:
    first_app = build_app(rng=random.Random(7))
    second_app = build_app(rng=random.Random(7))

    with TestClient(first_app) as first, TestClient(second_app) as second:
        assert first.get("/weatherforecast").json() == second.get("/weatherforecast").json()


def test_openapi_document_describes_api(client: TestClient) -> None:
    response = client.get("/swagger/v1/swagger.json")

    assert response.status_code == 200
    document = response.json()
    assert document["info"]["title"] == "Mars Rover API"
    assert document["info"]["version"] == "v1"
    assert document["info"]["description"] == "API for Mars Rover"

    operation = document["paths"]["/weatherforecast"]["get"]
    assert operation["operationId"] == "GetWeatherForecast"
    assert operation["summary"] == "Get weather forecast"
    assert operation["tags"] == ["Weather"]
    assert "/hello" in document["paths"]


def test_swagger_ui_is_served(client: TestClient) -> None:
    response = client.get("/swagger")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "/swagger/v1/swagger.json" in response.text


def test_unknown_route_still_gets_security_headers(client: TestClient) -> None:
    response = client.get("/does-not-exist")

    assert response.status_code == 404
    assert response.headers["X-Frame-Options"] == "DENY"


def test_unhandled_error_returns_json_500_with_security_headers() -> None:
    app = build_app()

    @app.get("/explode")
    async def explode() -> dict:
        raise RuntimeError("rover fault")

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/explode")
    app.state.telemetry.shutdown()

    assert response.status_code == 500
    assert response.json()["error"] == "Internal server error"
    assert "rover fault" not in response.text
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-XSS-Protection"] == "1; mode=block"
    assert "server" not in response.headers
