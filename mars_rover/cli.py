"""
Command line entry point: validate configuration, then serve.

    mars-rover --port 8080 --config appsettings.yml

Configuration problems are reported once, as log lines, and the process
exits with status 1 before the server binds a port.
"""
import argparse
from typing import List, Optional

import structlog
import uvicorn

from .api.main import create_app
from .config import (
    ConfigurationError,
    Settings,
    get_settings,
    load_configuration,
    validate_telemetry_options,
)
from .observability import setup_logging

logger = structlog.get_logger(__name__)


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mars-rover", description="Run the Mars Rover API")
    parser.add_argument("--host", default=settings.api_host, help="Interface to bind (default: %(default)s)")
    parser.add_argument("--port", type=int, default=settings.api_port, help="Port to bind (default: %(default)s)")
    parser.add_argument(
        "--config",
        default=settings.config_file,
        help="YAML configuration file holding the OpenTelemetry section (default: %(default)s)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    settings = get_settings()
    args = build_parser(settings).parse_args(argv)

    setup_logging(level=settings.log_level, service_name=settings.app_name, fmt=settings.log_format)

    try:
        configuration = load_configuration(args.config)
    except ConfigurationError as e:
        logger.critical("configuration_unreadable", config_file=args.config, error=str(e))
        return 1

    result = validate_telemetry_options(configuration)
    if not result.ok:
        for error in result.errors:
            logger.critical("configuration_invalid", config_file=args.config, error=error)
        return 1

    app = create_app(result.options, settings=settings, set_global_telemetry=True)

    logger.info("server_starting", host=args.host, port=args.port)
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        server_header=False,
        log_config=None,
    )
    return 0
