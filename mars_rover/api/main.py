"""
Main FastAPI application.

Mars Rover API with:
- Swagger UI at /swagger, OpenAPI document at /swagger/v1/swagger.json
- Security headers on every response, no Server header
- Request ID tracking and structured request logging
- OpenTelemetry traces, metrics and logs (mandatory, validated at startup)
"""
import random
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Mapping, Optional

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse

from ..config import (
    OpenTelemetryOptions,
    Settings,
    get_settings,
    get_validated_options,
    load_configuration,
)
from ..observability import FORECASTS_COUNTER, TelemetryExporters, initialize_observability
from .routes import greeting_router, weather_router

logger = structlog.get_logger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
    """
    Application lifespan manager.

    Telemetry is already running when the app is built; shutdown flushes it.
    """
    options: OpenTelemetryOptions = app.state.telemetry.options
    logger.info(
        "application_startup",
        service_name=options.service_name,
        service_version=options.service_version,
        env=app.state.settings.app_env,
    )

    yield

    logger.info("application_shutdown")
    app.state.telemetry.shutdown()


async def add_security_headers(request: Request, call_next: Any) -> Response:
    """Harden every response, including errors and the Swagger UI."""
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value
    if "server" in response.headers:
        del response.headers["server"]
    return response


async def add_request_id_middleware(request: Request, call_next: Any) -> Response:
    """
    Add request ID to all requests for tracing.

    Also adds timing information and structured logging context.
    """
    request_id = str(uuid.uuid4())
    start_time = time.perf_counter()

    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )

    try:
        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id

        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_seconds=time.perf_counter() - start_time,
        )
        return response

    except Exception as e:
        logger.error(
            "request_failed",
            error=str(e),
            duration_seconds=time.perf_counter() - start_time,
        )
        raise

    finally:
        structlog.contextvars.clear_contextvars()


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.
    """
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please try again later.",
        },
        headers=SECURITY_HEADERS,
    )


def create_app(
    options: Optional[OpenTelemetryOptions] = None,
    *,
    settings: Optional[Settings] = None,
    configuration: Optional[Mapping[str, Any]] = None,
    rng: Optional[random.Random] = None,
    exporters: Optional[TelemetryExporters] = None,
    set_global_telemetry: bool = False,
) -> FastAPI:
    """
    Build the Mars Rover application.

    Telemetry options come from `options`, else from `configuration`, else
    from the configuration file and environment. Invalid options raise
    TelemetryConfigurationError before anything is registered, so a
    misconfigured process never serves a request.

    Args:
        options: Already validated OpenTelemetry section
        settings: Process settings (defaults to get_settings())
        configuration: Raw configuration mapping to validate
        rng: Random source for sample data (unseeded if omitted)
        exporters: Telemetry destinations (OTLP if omitted)
        set_global_telemetry: Install providers as OTel globals
    """
    settings = settings or get_settings()
    if options is None:
        if configuration is None:
            configuration = load_configuration(settings.config_file)
        options = get_validated_options(configuration)

    app = FastAPI(
        title="Mars Rover API",
        description="API for Mars Rover",
        version="v1",
        lifespan=lifespan,
        docs_url="/swagger",
        redoc_url=None,
        openapi_url="/swagger/v1/swagger.json",
        swagger_ui_oauth2_redirect_url="/swagger/oauth2-redirect",
    )

    app.state.settings = settings
    app.state.rng = rng or random.Random()

    # Last added runs first: security headers wrap the request logger.
    app.middleware("http")(add_request_id_middleware)
    app.middleware("http")(add_security_headers)
    app.add_exception_handler(Exception, global_exception_handler)

    app.include_router(greeting_router)
    app.include_router(weather_router)

    telemetry = initialize_observability(
        app,
        options,
        exporters=exporters,
        settings=settings,
        set_global=set_global_telemetry,
    )
    app.state.telemetry = telemetry
    app.state.forecast_counter = telemetry.meter.create_counter(
        FORECASTS_COUNTER,
        unit="{forecast}",
        description="Weather forecast entries generated",
    )

    return app
