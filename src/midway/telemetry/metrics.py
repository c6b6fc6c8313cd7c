"""Metrics helper utilities."""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping, Union

from opentelemetry import metrics as otel_metrics
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.metrics import Counter, Histogram, Meter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

if TYPE_CHECKING:  # pragma: no cover
    from .config import TelemetryConfig

_METER_PROVIDER: MeterProvider | None = None
_METER: Meter | None = None
_INSTRUMENTS: dict[str, Union[Counter, Histogram]] = {}

MetricAttributes = Mapping[str, Union[str, bool, int, float]]

# Metric names ending in one of these suffixes are recorded as histograms.
_HISTOGRAM_SUFFIXES = ("_seconds", "_ms", "_turns")


def get_meter(name: str = "midway") -> Meter:
    global _METER
    if _METER is None:
        _METER = otel_metrics.get_meter(name)
    return _METER


def init_metrics(config: TelemetryConfig) -> Meter:
    global _METER_PROVIDER, _METER, _INSTRUMENTS

    readers = []
    if config.otlp_metrics_endpoint:
        exporter = OTLPMetricExporter(endpoint=config.otlp_metrics_endpoint, insecure=True)
        readers.append(
            PeriodicExportingMetricReader(
                exporter, export_interval_millis=config.metrics_export_interval_ms
            )
        )

    provider = MeterProvider(
        resource=Resource.create(config.resource_dict()), metric_readers=readers
    )
    otel_metrics.set_meter_provider(provider)

    _METER_PROVIDER = provider
    _METER = provider.get_meter(config.service_name)
    _INSTRUMENTS = {}
    return _METER


def _is_histogram(name: str) -> bool:
    return name.endswith(_HISTOGRAM_SUFFIXES)


def _instrument_for(name: str) -> Union[Counter, Histogram]:
    instrument = _INSTRUMENTS.get(name)
    if instrument is None:
        meter = get_meter()
        if _is_histogram(name):
            instrument = meter.create_histogram(name)
        else:
            instrument = meter.create_counter(name)
        _INSTRUMENTS[name] = instrument
    return instrument


def record_game_metric(name: str, value: float, attrs: MetricAttributes | None = None) -> None:
    """Record ``value`` under ``name``; durations become histograms, the rest counters."""
    instrument = _instrument_for(name)
    if _is_histogram(name):
        instrument.record(value, attributes=attrs or {})
    else:
        instrument.add(value, attributes=attrs or {})
