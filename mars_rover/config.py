"""
Configuration management for the Mars Rover API.

Two layers:
1. Settings: process-level knobs (log level, host, port) read from
   MARS_ROVER_* environment variables and .env via pydantic-settings.
2. Configuration file: appsettings.yml holding the OpenTelemetry section,
   overlaid by environment variables using "__" as the hierarchy delimiter
   (e.g. OpenTelemetry__OtlpEndpoint=http://collector:4317).

FAILURE MODE:
The OpenTelemetry section has no defaults. A missing section or a blank
field stops the process at startup. Falling back to a default collector
would ship telemetry to the wrong place without anyone noticing.
"""
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Union
import os

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_pascal
from pydantic_settings import BaseSettings, SettingsConfigDict


OPENTELEMETRY_SECTION = "OpenTelemetry"
ENV_HIERARCHY_DELIMITER = "__"


class ConfigurationError(Exception):
    """Raised when the configuration source itself cannot be read."""


class TelemetryConfigurationError(ConfigurationError):
    """Raised when the OpenTelemetry section is missing or invalid."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = Field(default="mars-rover", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log output format (json/console)")
    config_file: str = Field(default="appsettings.yml", description="Path to the YAML configuration file")

    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8080, description="API port")

    model_config = SettingsConfigDict(
        env_prefix="MARS_ROVER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in ("json", "console"):
            raise ValueError("Invalid log format. Must be 'json' or 'console'")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


class OpenTelemetryOptions(BaseModel):
    """
    The OpenTelemetry configuration section.

    Keys are PascalCase in configuration (OtlpEndpoint, ServiceName,
    ServiceVersion) and snake_case in Python.
    """

    model_config = ConfigDict(
        alias_generator=to_pascal,
        populate_by_name=True,
        frozen=True,
        coerce_numbers_to_str=True,
    )

    otlp_endpoint: str = ""
    service_name: str = ""
    service_version: str = ""


# Order matters: errors are reported in this order.
REQUIRED_TELEMETRY_FIELDS = ("otlp_endpoint", "service_name", "service_version")


@dataclass
class OptionsValidationResult:
    """Outcome of validating the OpenTelemetry section."""

    options: Optional[OpenTelemetryOptions] = None
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.options is not None and not self.errors


def _lookup(mapping: Mapping[str, Any], key: str) -> Optional[str]:
    """Find the actual key in mapping that matches key case-insensitively."""
    if key in mapping:
        return key
    folded = key.casefold()
    for candidate in mapping:
        if isinstance(candidate, str) and candidate.casefold() == folded:
            return candidate
    return None


def _normalize_section(section: Mapping[str, Any]) -> Dict[str, Any]:
    """Map configuration keys onto canonical PascalCase field aliases."""
    normalized: Dict[str, Any] = {}
    for name in OpenTelemetryOptions.model_fields:
        alias = to_pascal(name)
        actual = _lookup(section, alias)
        if actual is not None:
            value = section[actual]
            # A YAML key with no value (`ServiceName:`) loads as None
            normalized[alias] = "" if value is None else value
    return normalized


def validate_telemetry_options(configuration: Mapping[str, Any]) -> OptionsValidationResult:
    """
    Validate the OpenTelemetry section of a configuration mapping.

    Returns a result carrying either the validated options or an itemized
    list of problems, one message per missing or invalid piece. All blank
    fields are reported, not only the first one.
    """
    section_key = _lookup(configuration, OPENTELEMETRY_SECTION)
    if section_key is None:
        return OptionsValidationResult(
            errors=[f"Configuration section '{OPENTELEMETRY_SECTION}' is missing"]
        )

    section = configuration[section_key]
    if not isinstance(section, Mapping):
        return OptionsValidationResult(
            errors=[
                f"Failed to bind configuration section '{OPENTELEMETRY_SECTION}': "
                f"expected a mapping, got {type(section).__name__}"
            ]
        )

    try:
        options = OpenTelemetryOptions.model_validate(_normalize_section(section))
    except ValidationError as e:
        details = ", ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        return OptionsValidationResult(
            errors=[f"Failed to bind configuration section '{OPENTELEMETRY_SECTION}': {details}"]
        )

    errors = [
        f"{OPENTELEMETRY_SECTION}:{to_pascal(name)} is required and cannot be empty"
        for name in REQUIRED_TELEMETRY_FIELDS
        if not getattr(options, name).strip()
    ]
    if errors:
        return OptionsValidationResult(errors=errors)

    return OptionsValidationResult(options=options)


def get_validated_options(configuration: Mapping[str, Any]) -> OpenTelemetryOptions:
    """Return validated OpenTelemetry options or raise TelemetryConfigurationError."""
    result = validate_telemetry_options(configuration)
    if not result.ok:
        raise TelemetryConfigurationError(result.errors)
    return result.options


def _overlay(target: MutableMapping[str, Any], path: List[str], value: str) -> None:
    head, rest = path[0], path[1:]
    key = _lookup(target, head) or head
    if not rest:
        target[key] = value
        return
    child = target.get(key)
    if not isinstance(child, MutableMapping):
        child = {}
        target[key] = child
    _overlay(child, rest, value)


def load_configuration(
    path: Union[str, Path, None] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """
    Load the configuration file and overlay hierarchical environment variables.

    Only environment variables containing the "__" delimiter are treated as
    configuration keys; a missing file yields an empty base mapping.

    Args:
        path: YAML file to read (defaults to Settings.config_file)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Nested dict of configuration values
    """
    cfg_path = Path(path) if path is not None else Path(get_settings().config_file)
    environ = os.environ if environ is None else environ

    configuration: Dict[str, Any] = {}
    if cfg_path.exists():
        try:
            raw = yaml.safe_load(cfg_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Could not parse configuration file {cfg_path}: {e}") from e
        if raw is not None and not isinstance(raw, dict):
            raise ConfigurationError(
                f"Configuration file {cfg_path} must contain a mapping at the top level"
            )
        configuration = raw or {}

    for name, value in environ.items():
        if ENV_HIERARCHY_DELIMITER not in name:
            continue
        parts = [part for part in name.split(ENV_HIERARCHY_DELIMITER) if part]
        if len(parts) < 2:
            continue
        _overlay(configuration, parts, value)

    return configuration
