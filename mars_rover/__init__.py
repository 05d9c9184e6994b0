"""
Mars Rover API

A small FastAPI service (greeting + weather forecast) with Swagger docs and
OpenTelemetry export of traces, metrics and logs.
"""

__version__ = "1.0.0"

from .api.discovery import EndpointInfo, NoEndpointsDiscoveredError, discover_endpoints, get_endpoints
from .api.main import create_app
from .config import (
    ConfigurationError,
    OpenTelemetryOptions,
    TelemetryConfigurationError,
    get_validated_options,
    load_configuration,
    validate_telemetry_options,
)

__all__ = [
    "__version__",
    "EndpointInfo",
    "NoEndpointsDiscoveredError",
    "discover_endpoints",
    "get_endpoints",
    "create_app",
    "ConfigurationError",
    "OpenTelemetryOptions",
    "TelemetryConfigurationError",
    "get_validated_options",
    "load_configuration",
    "validate_telemetry_options",
]
