"""
OpenTelemetry Instrumentation Setup

Wires the three pillars to an OTLP collector:
- TRACES: FastAPI request spans (exceptions recorded) via BatchSpanProcessor
- METRICS: FastAPI HTTP metrics plus a meter named after the service
- LOGS: stdlib logging records shipped through an OTel LoggingHandler

Every signal carries the same Resource (service.name, service.version,
deployment.environment) taken from the validated OpenTelemetry section.

FAILURE MODE:
Export runs in SDK background threads. If the collector is unreachable the
exporters retry with backoff and then drop data; requests are never blocked
and nothing here retries on top of that.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

from fastapi import FastAPI
from opentelemetry import metrics, trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor, LogExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter

from ..config import OpenTelemetryOptions, Settings

logger = logging.getLogger(__name__)

FORECASTS_COUNTER = "mars_rover.forecasts.generated"


def create_resource(options: OpenTelemetryOptions, environment: str = "development") -> Resource:
    """
    Creates an OpenTelemetry Resource with service metadata.

    These attributes appear on every span, metric point and log record, which
    is how a backend tells this service apart from its neighbours.
    """
    return Resource.create({
        SERVICE_NAME: options.service_name,
        SERVICE_VERSION: options.service_version,
        "deployment.environment": environment,
    })


@dataclass
class TelemetryExporters:
    """
    Where each signal goes.

    Production uses TelemetryExporters.otlp(endpoint). Tests pass in-memory
    exporters from the SDK so nothing leaves the process.
    """

    span_exporter: SpanExporter
    metric_reader: MetricReader
    log_exporter: LogExporter

    @classmethod
    def otlp(cls, endpoint: str, export_interval_ms: int = 10000) -> "TelemetryExporters":
        # gRPC exporters take the scheme as the TLS switch
        insecure = urlparse(endpoint).scheme == "http"
        return cls(
            span_exporter=OTLPSpanExporter(endpoint=endpoint, insecure=insecure),
            metric_reader=PeriodicExportingMetricReader(
                OTLPMetricExporter(endpoint=endpoint, insecure=insecure),
                export_interval_millis=export_interval_ms,
            ),
            log_exporter=OTLPLogExporter(endpoint=endpoint, insecure=insecure),
        )


@dataclass
class Telemetry:
    """Handle on the providers created for one application instance."""

    options: OpenTelemetryOptions
    tracer_provider: TracerProvider
    meter_provider: MeterProvider
    logger_provider: LoggerProvider
    logging_handler: LoggingHandler
    _shut_down: bool = field(default=False, init=False, repr=False)

    @property
    def tracer(self) -> trace.Tracer:
        return self.tracer_provider.get_tracer(self.options.service_name, self.options.service_version)

    @property
    def meter(self) -> metrics.Meter:
        return self.meter_provider.get_meter(self.options.service_name, self.options.service_version)

    def force_flush(self) -> None:
        self.tracer_provider.force_flush()
        self.meter_provider.force_flush()
        self.logger_provider.force_flush()

    def shutdown(self) -> None:
        """Detach the log handler and flush/stop every provider. Safe to call twice."""
        if self._shut_down:
            return
        self._shut_down = True
        logging.getLogger().removeHandler(self.logging_handler)
        self.tracer_provider.shutdown()
        self.meter_provider.shutdown()
        self.logger_provider.shutdown()


def setup_tracing(resource: Resource, exporter: SpanExporter) -> TracerProvider:
    """
    Initializes distributed tracing.

    BatchSpanProcessor buffers spans in memory and exports them from a
    background thread, so a slow collector never adds latency to a request.
    """
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    return provider


def setup_metrics(resource: Resource, reader: MetricReader) -> MeterProvider:
    """Initializes metrics export through the given reader (push model)."""
    return MeterProvider(resource=resource, metric_readers=[reader])


def setup_log_export(resource: Resource, exporter: LogExporter, level: int = logging.NOTSET) -> tuple[LoggerProvider, LoggingHandler]:
    """
    Ships stdlib log records to the collector.

    The returned handler is attached to the root logger; the caller owns
    removing it again (Telemetry.shutdown does).
    """
    provider = LoggerProvider(resource=resource)
    provider.add_log_record_processor(BatchLogRecordProcessor(exporter))
    handler = LoggingHandler(level=level, logger_provider=provider)
    logging.getLogger().addHandler(handler)
    return provider, handler


def get_trace_context() -> dict:
    """
    Extract current trace ID and span ID for correlation.

    Example:
        logger.error("Forecast failed", extra=get_trace_context())

    Returns:
        Dict with trace_id and span_id (or empty if no active trace)
    """
    span = trace.get_current_span()
    ctx = span.get_span_context()

    if ctx.is_valid:
        return {
            "trace_id": format(ctx.trace_id, "032x"),
            "span_id": format(ctx.span_id, "016x"),
        }
    return {}


def initialize_observability(
    app: FastAPI,
    options: OpenTelemetryOptions,
    exporters: Optional[TelemetryExporters] = None,
    settings: Optional[Settings] = None,
    set_global: bool = False,
) -> Telemetry:
    """
    One-call setup for traces, metrics and logs of a FastAPI app.

    Args:
        app: Application to instrument
        options: Validated OpenTelemetry section
        exporters: Signal destinations (defaults to OTLP at options.otlp_endpoint)
        settings: Process settings, used for deployment.environment
        set_global: Also install the providers as the process-wide defaults.
            Only the production entry point does this; the OTel API allows
            setting global providers once per process.

    Returns:
        Telemetry handle for custom spans/metrics and shutdown
    """
    exporters = exporters or TelemetryExporters.otlp(options.otlp_endpoint)
    environment = settings.app_env if settings is not None else "development"
    resource = create_resource(options, environment)

    tracer_provider = setup_tracing(resource, exporters.span_exporter)
    meter_provider = setup_metrics(resource, exporters.metric_reader)
    logger_provider, logging_handler = setup_log_export(resource, exporters.log_exporter)

    if set_global:
        trace.set_tracer_provider(tracer_provider)
        metrics.set_meter_provider(meter_provider)
        set_logger_provider(logger_provider)

    FastAPIInstrumentor.instrument_app(
        app,
        tracer_provider=tracer_provider,
        meter_provider=meter_provider,
    )

    logger.info(
        f"✓ Observability initialized: {options.service_name} {options.service_version} → {options.otlp_endpoint}"
    )
    return Telemetry(
        options=options,
        tracer_provider=tracer_provider,
        meter_provider=meter_provider,
        logger_provider=logger_provider,
        logging_handler=logging_handler,
    )
