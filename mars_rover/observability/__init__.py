"""
Observability Package

Centralized configuration for the three pillars of observability:
1. TRACES: OpenTelemetry spans exported over OTLP
2. METRICS: OpenTelemetry metrics exported over OTLP
3. LOGS: Structured JSON logs on stdout, mirrored to OTLP

Telemetry is not optional for this service: the OpenTelemetry section is
validated before the app is built and an invalid section stops startup.
"""

from .instrumentation import (
    FORECASTS_COUNTER,
    Telemetry,
    TelemetryExporters,
    create_resource,
    get_trace_context,
    initialize_observability,
)
from .logging_config import CorrelationJsonFormatter, get_logger, setup_logging

__all__ = [
    "FORECASTS_COUNTER",
    "Telemetry",
    "TelemetryExporters",
    "create_resource",
    "get_trace_context",
    "initialize_observability",
    "CorrelationJsonFormatter",
    "get_logger",
    "setup_logging",
]
