"""Controller configuration loaded from environment variables."""

import os
import re
from collections.abc import Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator

from ingress_dns.exceptions import ConfigurationError
from ingress_dns.models.node import DEFAULT_ADDRESS_ATTRIBUTE

# field name -> environment variable
ENV_VARS = {
    "nomad_address": "NOMAD_ADDR",
    "nomad_token": "NOMAD_TOKEN",
    "nomad_namespace": "NOMAD_NAMESPACE",
    "cloudflare_api_token": "CLOUDFLARE_API_TOKEN",
    "cloudflare_zone_id": "CLOUDFLARE_ZONE_ID",
    "traefik_job_name": "TRAEFIK_JOB_NAME",
    "dns_record_name": "DNS_RECORD_NAME",
    "dns_record_ttl": "DNS_RECORD_TTL",
    "dns_record_proxied": "DNS_RECORD_PROXIED",
    "node_address_attribute": "NODE_ADDRESS_ATTRIBUTE",
    "log_level": "LOG_LEVEL",
    "metrics_port": "METRICS_PORT",
    "sync_interval_seconds": "SYNC_INTERVAL_SECONDS",
    "debounce_seconds": "DEBOUNCE_SECONDS",
    "event_queue_size": "EVENT_QUEUE_SIZE",
    "watch_max_failures": "WATCH_MAX_FAILURES",
    "watch_retry_delay_seconds": "WATCH_RETRY_DELAY_SECONDS",
    "request_timeout_seconds": "REQUEST_TIMEOUT_SECONDS",
}

REQUIRED_FIELDS = ("nomad_token", "cloudflare_api_token", "cloudflare_zone_id", "dns_record_name")

HOSTNAME_PATTERN = re.compile(
    r"^(\*\.)?[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*\.?$", re.IGNORECASE
)


class ControllerConfig(BaseModel):
    """Configuration for the controller and its Nomad/Cloudflare clients."""

    # Nomad
    nomad_address: str = "http://localhost:8686"
    nomad_token: str = Field(repr=False)
    nomad_namespace: str = "default"

    # Cloudflare
    cloudflare_api_token: str = Field(repr=False)
    cloudflare_zone_id: str

    # What to watch and what to publish
    traefik_job_name: str = "ingress"
    dns_record_name: str
    dns_record_ttl: int = Field(default=1, ge=0)
    dns_record_proxied: bool = False
    node_address_attribute: str = DEFAULT_ADDRESS_ATTRIBUTE

    # Runtime
    log_level: str = "info"
    metrics_port: int = Field(default=8080, ge=0, le=65535)
    sync_interval_seconds: float = Field(default=300.0, gt=0)
    debounce_seconds: float = Field(default=2.0, ge=0)
    event_queue_size: int = Field(default=64, ge=1)
    watch_max_failures: int = Field(default=1, ge=1)
    watch_retry_delay_seconds: float = Field(default=5.0, ge=0)
    request_timeout_seconds: float = Field(default=10.0, gt=0)

    @field_validator("nomad_token", "cloudflare_api_token", "cloudflare_zone_id", "traefik_job_name")
    @classmethod
    def validate_not_empty(cls, v: str, info) -> str:
        """Validate required text values are not empty."""
        if not v or not v.strip():
            raise ValueError(f"{info.field_name} cannot be empty")
        return v.strip()

    @field_validator("nomad_address")
    @classmethod
    def validate_nomad_address(cls, v: str) -> str:
        """Validate the Nomad address is an http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"nomad_address '{v}' must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("dns_record_name")
    @classmethod
    def validate_dns_record_name(cls, v: str) -> str:
        """Validate the record name follows DNS naming conventions."""
        if not v:
            raise ValueError("dns_record_name cannot be empty")
        if len(v) > 253:
            raise ValueError("dns_record_name cannot exceed 253 characters")
        if not HOSTNAME_PATTERN.match(v):
            raise ValueError(f"dns_record_name '{v}' is not a valid hostname")
        return v.lower().rstrip(".")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known level name."""
        allowed = ["debug", "info", "warn", "warning", "error", "fatal", "critical"]
        if v.lower() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got '{v}'")
        return v.lower()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ControllerConfig":
        """Load configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)

        Returns:
            Validated configuration

        Raises:
            ConfigurationError: If required variables are missing or values are invalid
        """
        environ = os.environ if environ is None else environ

        values = {}
        for field_name, env_var in ENV_VARS.items():
            raw = environ.get(env_var)
            # Empty values fall back to defaults, like unset ones
            if raw is not None and raw.strip() != "":
                values[field_name] = raw.strip()

        missing = [ENV_VARS[name] for name in REQUIRED_FIELDS if name not in values]
        if missing:
            raise ConfigurationError(
                f"Required environment variables are not set: {', '.join(missing)}",
                "Export the missing variables before starting the controller.",
            )

        try:
            return cls(**values)
        except ValidationError as e:
            problems = []
            for error in e.errors():
                field = ".".join(str(x) for x in error["loc"])
                env_var = ENV_VARS.get(field, field)
                problems.append(f"{env_var}: {error['msg']}")
            raise ConfigurationError("Invalid configuration", "\n".join(problems))
