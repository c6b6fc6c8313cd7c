"""Telemetry configuration helpers."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Dict, NamedTuple

from pydantic import BaseModel, Field

_TRUTHY = {"1", "true", "yes", "on"}


class _Signal(NamedTuple):
    enable_field: str
    endpoint_field: str
    flag_vars: tuple[str, ...]
    endpoint_var: str
    path: str


_SIGNALS = (
    _Signal(
        "enable_tracing",
        "otlp_traces_endpoint",
        ("MIDWAY_ENABLE_TRACING", "OTEL_TRACES_ENABLED"),
        "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT",
        "v1/traces",
    ),
    _Signal(
        "enable_metrics",
        "otlp_metrics_endpoint",
        ("MIDWAY_ENABLE_METRICS", "OTEL_METRICS_ENABLED"),
        "OTEL_EXPORTER_OTLP_METRICS_ENDPOINT",
        "v1/metrics",
    ),
    _Signal(
        "enable_logging",
        "otlp_logs_endpoint",
        ("MIDWAY_ENABLE_LOGGING", "OTEL_LOGS_ENABLED"),
        "OTEL_EXPORTER_OTLP_LOGS_ENDPOINT",
        "v1/logs",
    ),
)


def env_flag(*names: str) -> bool | None:
    """Return the first boolean found among ``names`` or None when all are unset."""
    for name in names:
        value = os.getenv(name)
        if value is not None:
            return value.strip().lower() in _TRUTHY
    return None


def _signal_endpoint(signal: _Signal) -> str | None:
    explicit = os.getenv(signal.endpoint_var)
    if explicit:
        return explicit
    base = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not base:
        return None
    return f"{base.rstrip('/')}/{signal.path}"


def _parse_resource_attributes(raw: str) -> dict[str, str]:
    """Parse ``key=value,key=value``; entries without ``=`` are ignored."""
    attributes: dict[str, str] = {}
    for part in raw.split(","):
        key, sep, value = part.partition("=")
        if sep:
            attributes[key.strip()] = value.strip()
    return attributes


class TelemetryConfig(BaseModel):
    """Runtime configuration for telemetry exporters."""

    enable_tracing: bool = False
    enable_metrics: bool = False
    enable_logging: bool = False
    otlp_traces_endpoint: str | None = None
    otlp_metrics_endpoint: str | None = None
    otlp_logs_endpoint: str | None = None
    metrics_export_interval_ms: int = Field(default=5000, ge=100)
    service_name: str = "midway"
    service_namespace: str = "game"
    resource_attributes: dict[str, str] = Field(default_factory=dict)

    def resource_dict(self) -> dict[str, str]:
        """Attributes attached to every exported span, metric and log record."""
        attributes = {
            "service.name": self.service_name,
            "service.namespace": self.service_namespace,
        }
        attributes.update(self.resource_attributes)
        return attributes

    @classmethod
    def from_env(cls, **overrides: Any) -> "TelemetryConfig":
        """Build a config from `MIDWAY_*` and `OTEL_*` variables; ``overrides`` win."""
        data: Dict[str, Any] = {}
        for signal in _SIGNALS:
            flag = env_flag(*signal.flag_vars)
            if flag is not None:
                data[signal.enable_field] = flag
            endpoint = _signal_endpoint(signal)
            if endpoint:
                data[signal.endpoint_field] = endpoint

        interval = os.getenv("OTEL_METRIC_EXPORT_INTERVAL", "").strip()
        if interval.isdigit():
            data["metrics_export_interval_ms"] = int(interval)
        for field, env_name in (
            ("service_name", "OTEL_SERVICE_NAME"),
            ("service_namespace", "OTEL_SERVICE_NAMESPACE"),
        ):
            value = os.getenv(env_name)
            if value:
                data[field] = value
        attributes = _parse_resource_attributes(os.getenv("OTEL_RESOURCE_ATTRIBUTES", ""))
        if attributes:
            data["resource_attributes"] = attributes

        data.update(overrides)
        # Configuring an endpoint switches its exporter on.
        for signal in _SIGNALS:
            if data.get(signal.endpoint_field):
                data[signal.enable_field] = True
        return cls(**data)


@lru_cache(maxsize=1)
def load_telemetry_config() -> TelemetryConfig:
    """Load and cache telemetry config from the environment."""
    return TelemetryConfig.from_env()


def init_telemetry(config: TelemetryConfig | None = None) -> TelemetryConfig:
    """Initialise telemetry subsystems lazily."""
    from .logger import init_logging
    from .metrics import init_metrics
    from .tracer import init_tracing

    resolved = config or load_telemetry_config()

    if resolved.enable_tracing:
        init_tracing(resolved)
    if resolved.enable_metrics:
        init_metrics(resolved)
    if resolved.enable_logging:
        init_logging(resolved)
    return resolved
