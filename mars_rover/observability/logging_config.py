"""
Structured Logging Configuration

Every log line is a JSON object on stdout carrying the active trace_id and
span_id, so a log entry can be joined to the request trace that produced it.

Application code logs events through structlog; structlog hands the event to
the stdlib logging tree, where two handlers pick it up:
1. The stdout handler installed here (JSON or console)
2. The OpenTelemetry LoggingHandler installed by instrumentation.py (OTLP)
"""

import logging
import sys
from typing import Any, Dict

import structlog
from opentelemetry import trace
from pythonjsonlogger import jsonlogger


class CorrelationJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that injects trace_id and span_id into every log.

    Output: {"msg": "request_completed", "trace_id": "abc...", "span_id": "...", ...}
    """

    SENSITIVE_KEYS = ("password", "api_key", "secret", "token", "authorization")

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        span = trace.get_current_span()
        ctx = span.get_span_context()
        if ctx.is_valid:
            log_record['trace_id'] = format(ctx.trace_id, '032x')
            log_record['span_id'] = format(ctx.span_id, '016x')

        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['timestamp'] = self.formatTime(record, self.datefmt)

        self.scrub_sensitive_data(log_record)

    def scrub_sensitive_data(self, log_record: Dict[str, Any]) -> Dict[str, Any]:
        """Mask secrets, keeping the last 4 characters of long string values."""
        for key in self.SENSITIVE_KEYS:
            if key in log_record:
                if isinstance(log_record[key], str) and len(log_record[key]) > 4:
                    log_record[key] = f"***{log_record[key][-4:]}"
                else:
                    log_record[key] = "***REDACTED***"

        return log_record


# Marker so repeated setup_logging() calls replace our handler instead of stacking.
_HANDLER_NAME = "mars_rover.stdout"


def setup_logging(level: str = "INFO", service_name: str = "unknown", fmt: str = "json") -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Service name to include in the startup line
        fmt: "json" for CorrelationJsonFormatter, "console" for plain text

    Example output:
        {
            "timestamp": "2024-01-15 10:23:45,123",
            "level": "INFO",
            "logger": "mars_rover.api.main",
            "msg": "request_completed",
            "trace_id": "abc123...",
            "span_id": "xyz789...",
            "path": "/hello"
        }
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)

    if fmt == "console":
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    else:
        handler.setFormatter(CorrelationJsonFormatter(
            fmt='%(timestamp)s %(level)s %(logger)s %(message)s',
            rename_fields={'message': 'msg'},
        ))

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        if existing.get_name() == _HANDLER_NAME:
            root_logger.removeHandler(existing)
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.render_to_log_kwargs,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Request logging is done by our middleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    root_logger.info(f"Structured logging initialized for {service_name}")


def get_logger(name: str, **context) -> structlog.stdlib.BoundLogger:
    """
    Create a structlog logger with pre-bound context.

        rover_logger = get_logger(__name__, component="weather")
        rover_logger.info("forecast_generated", entries=5)
    """
    return structlog.get_logger(name).bind(**context)
