"""Telemetry instrumentation unit tests."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from midway.engine.errors import InvalidArgumentError
from midway.engine.fleet import ShipClass
from midway.engine.instrumented_match import InstrumentedMatch
from midway.engine.match import MatchPhase, Side, SpecialWeapon, Team
from midway.engine.targeting import Difficulty
from midway.telemetry import config as telemetry_config_module
from midway.telemetry import logger as logger_module
from midway.telemetry import metrics as metrics_module
from midway.telemetry import tracer as tracer_module
from midway.telemetry.config import TelemetryConfig

ESCORT_ONLY = (ShipClass("escort", 2, "Escort", "Picket Escort", "Escort"),)


class DummySpan:
    def __init__(self, names: list[str], span_name: str) -> None:
        self._names = names
        self._names.append(span_name)
        self.attributes: dict[str, object] = {}
        self.ended = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def set_attribute(self, key, value):
        self.attributes[key] = value

    def record_exception(self, exc):
        self.attributes["exception"] = exc

    def end(self):
        self.ended = True


class DummyTracer:
    def __init__(self) -> None:
        self.span_names: list[str] = []
        self.spans: list[DummySpan] = []

    def start_as_current_span(self, name: str):
        span = DummySpan(self.span_names, name)
        self.spans.append(span)
        return span

    def start_span(self, name: str):
        return self.start_as_current_span(name)


def reset_singletons() -> None:
    tracer_module._TRACERS.clear()
    tracer_module._TRACER_PROVIDER = None
    metrics_module._METER = None
    metrics_module._METER_PROVIDER = None
    metrics_module._INSTRUMENTS = {}
    logger_module._LOGGERS.clear()


@pytest.fixture
def instrumented(monkeypatch: pytest.MonkeyPatch):
    tracer = DummyTracer()
    metrics_calls: list[tuple[str, float, dict | None]] = []
    logger = MagicMock()

    monkeypatch.setattr("midway.engine.instrumented_match.get_tracer", lambda *_: tracer)
    monkeypatch.setattr("midway.engine.instrumented_match.get_logger", lambda *_: logger)
    monkeypatch.setattr(
        "midway.engine.instrumented_match.record_game_metric",
        lambda name, value, attrs=None: metrics_calls.append((name, value, attrs)),
    )
    return tracer, metrics_calls, logger


def test_lazy_init_tracer(monkeypatch: pytest.MonkeyPatch) -> None:
    reset_singletons()
    assert tracer_module.get_tracer() is tracer_module.get_tracer()
    assert tracer_module.get_tracer("a") is not tracer_module.get_tracer("b")

    provider_instance = MagicMock()
    provider_instance.get_tracer.return_value = MagicMock()
    monkeypatch.setattr(tracer_module, "TracerProvider", MagicMock(return_value=provider_instance))
    monkeypatch.setattr(tracer_module, "OTLPSpanExporter", MagicMock(return_value=MagicMock()))
    monkeypatch.setattr(tracer_module.trace, "set_tracer_provider", MagicMock())
    tracer = tracer_module.init_tracing(
        TelemetryConfig(enable_tracing=True, otlp_traces_endpoint="http://example")
    )
    assert tracer is provider_instance.get_tracer.return_value
    assert tracer_module.get_tracer("midway") is tracer

    tracer_module.shutdown_tracing()
    provider_instance.shutdown.assert_called_once()
    assert tracer_module._TRACER_PROVIDER is None


def test_init_metrics_installs_provider(monkeypatch: pytest.MonkeyPatch) -> None:
    reset_singletons()
    meter_provider = MagicMock()
    meter_provider.get_meter.return_value = MagicMock()
    monkeypatch.setattr(metrics_module, "MeterProvider", MagicMock(return_value=meter_provider))
    monkeypatch.setattr(metrics_module, "OTLPMetricExporter", MagicMock(return_value=MagicMock()))
    monkeypatch.setattr(metrics_module, "PeriodicExportingMetricReader", MagicMock())
    monkeypatch.setattr(metrics_module.otel_metrics, "set_meter_provider", MagicMock())
    metrics_module.init_metrics(
        TelemetryConfig(enable_metrics=True, otlp_metrics_endpoint="http://example")
    )
    assert metrics_module._METER is meter_provider.get_meter.return_value
    reset_singletons()


def test_record_game_metric_picks_instrument_kind(monkeypatch: pytest.MonkeyPatch) -> None:
    reset_singletons()
    meter = MagicMock()
    monkeypatch.setattr(metrics_module, "_METER", meter)

    metrics_module.record_game_metric("midway_shots_total", 1, {"side": "human"})
    metrics_module.record_game_metric("midway_shots_total", 2)
    metrics_module.record_game_metric("midway_match_duration_seconds", 1.5)

    meter.create_counter.assert_called_once_with("midway_shots_total")
    meter.create_histogram.assert_called_once_with("midway_match_duration_seconds")
    assert meter.create_counter.return_value.add.call_count == 2
    meter.create_histogram.return_value.record.assert_called_once_with(1.5, attributes={})
    reset_singletons()


def test_logging_init_noop() -> None:
    reset_singletons()
    logger = logger_module.get_logger("test")
    assert logger_module.init_logging(TelemetryConfig(service_name="test")) is logger


def test_init_telemetry_noop(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    monkeypatch.setattr("midway.telemetry.tracer.init_tracing", lambda cfg: calls.append("tr"))
    monkeypatch.setattr("midway.telemetry.metrics.init_metrics", lambda cfg: calls.append("me"))
    monkeypatch.setattr("midway.telemetry.logger.init_logging", lambda cfg: calls.append("lo"))

    telemetry_config_module.init_telemetry(TelemetryConfig())
    assert calls == []


def test_init_telemetry_respects_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    monkeypatch.setattr("midway.telemetry.tracer.init_tracing", lambda cfg: calls.append("tr"))
    monkeypatch.setattr("midway.telemetry.metrics.init_metrics", lambda cfg: calls.append("me"))
    monkeypatch.setattr("midway.telemetry.logger.init_logging", lambda cfg: calls.append("lo"))

    config = TelemetryConfig(enable_tracing=True, enable_logging=True)
    telemetry_config_module.init_telemetry(config)
    assert calls == ["tr", "lo"]


def test_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://collector:4317/")
    monkeypatch.setenv("OTEL_SERVICE_NAME", "midway-test")
    monkeypatch.setenv("OTEL_RESOURCE_ATTRIBUTES", "env=ci, team = blue,broken")
    monkeypatch.setenv("MIDWAY_ENABLE_LOGGING", "off")
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", raising=False)

    config = TelemetryConfig.from_env()
    assert config.otlp_traces_endpoint == "http://collector:4317/v1/traces"
    assert config.enable_tracing
    assert config.service_name == "midway-test"
    assert config.resource_attributes == {"env": "ci", "team": "blue"}
    assert config.resource_dict()["service.name"] == "midway-test"


def test_config_defaults_without_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "OTEL_EXPORTER_OTLP_ENDPOINT",
        "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT",
        "OTEL_EXPORTER_OTLP_METRICS_ENDPOINT",
        "OTEL_EXPORTER_OTLP_LOGS_ENDPOINT",
        "MIDWAY_ENABLE_TRACING",
        "OTEL_TRACES_ENABLED",
    ):
        monkeypatch.delenv(name, raising=False)
    config = TelemetryConfig.from_env()
    assert not config.enable_tracing
    assert config.otlp_traces_endpoint is None


def test_load_telemetry_config_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    telemetry_config_module.load_telemetry_config.cache_clear()
    calls = {"count": 0}

    def fake_from_env(cls, **overrides):
        calls["count"] += 1
        return TelemetryConfig(enable_tracing=True)

    monkeypatch.setattr(
        telemetry_config_module.TelemetryConfig, "from_env", classmethod(fake_from_env)
    )

    first = telemetry_config_module.load_telemetry_config()
    second = telemetry_config_module.load_telemetry_config()
    assert first is second
    assert calls["count"] == 1
    telemetry_config_module.load_telemetry_config.cache_clear()


def test_instrumented_match_emits_spans(instrumented) -> None:
    tracer, metrics_calls, _ = instrumented

    match = InstrumentedMatch(fleet=ESCORT_ONLY, rng_seed=0)
    match.start(Team.USA, Difficulty.EASY)
    assert "midway.engine.match" in tracer.span_names
    assert "midway.engine.start" in tracer.span_names
    match.randomize_human_fleet()

    tracer.span_names.clear()
    metrics_calls.clear()
    targets = [coord for ship in match.ai_board.ships for coord in ship.cells()]
    for coord in targets:
        match.attack(coord.x, coord.y)

    assert match.phase is MatchPhase.OVER
    assert match.winner is Side.HUMAN
    assert "midway.engine.attack" in tracer.span_names
    assert "midway.engine.match_complete" in tracer.span_names
    metric_names = {name for name, _, _ in metrics_calls}
    assert "midway_shots_total" in metric_names
    assert "midway_match_completed_total" in metric_names
    assert "midway_match_duration_seconds" in metric_names
    match_span = next(span for span in tracer.spans if span.attributes.get("match.id") == 1)
    assert match_span.ended


def test_instrumented_match_records_rejections(instrumented) -> None:
    tracer, metrics_calls, logger = instrumented
    match = InstrumentedMatch(fleet=ESCORT_ONLY, rng_seed=1)
    match.attack(0, 0)
    assert ("midway_invalid_actions_total", 1, {"reason": "wrong_phase"}) in metrics_calls
    logger.warning.assert_called_once()

    match.start(Team.JAPAN, Difficulty.MEDIUM)
    match.randomize_human_fleet()
    metrics_calls.clear()
    match.special_attack(SpecialWeapon.TORPEDO, 4, 4)
    names = [name for name, _, _ in metrics_calls]
    assert "midway_special_attacks_total" in names
    assert "midway.engine.special_attack" in tracer.span_names


def test_instrumented_match_records_setup_failure(instrumented) -> None:
    tracer, metrics_calls, _ = instrumented
    match = InstrumentedMatch(board_size=3, rng_seed=1, placement_attempts=10)
    with pytest.raises(RuntimeError):
        match.start(Team.USA, Difficulty.EASY)
    assert ("midway_match_setup_failures_total", 1, None) in metrics_calls
    assert all(span.ended for span in tracer.spans if span.attributes.get("match.id"))


def test_instrumented_match_reset_ends_match_span(instrumented) -> None:
    tracer, _, _ = instrumented
    match = InstrumentedMatch(fleet=ESCORT_ONLY, rng_seed=2)
    match.start(Team.USA, Difficulty.EASY)
    match_span = tracer.spans[0]
    assert not match_span.ended

    match.reset()
    assert match_span.ended
    assert match.phase is MatchPhase.SETUP


def test_instrumented_match_bad_arguments_are_not_setup_failures(instrumented) -> None:
    tracer, metrics_calls, _ = instrumented
    match = InstrumentedMatch(fleet=ESCORT_ONLY, rng_seed=3)
    with pytest.raises(InvalidArgumentError):
        match.start("france", Difficulty.EASY)
    assert not [call for call in metrics_calls if call[0] == "midway_match_setup_failures_total"]
    assert tracer.spans[0].ended


def test_config_endpoint_precedence(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://collector:4317")
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_METRICS_ENDPOINT", "http://metrics:4317")
    monkeypatch.setenv("OTEL_METRIC_EXPORT_INTERVAL", "250")

    config = TelemetryConfig.from_env(otlp_logs_endpoint="http://override:4317")
    assert config.otlp_metrics_endpoint == "http://metrics:4317"
    assert config.otlp_logs_endpoint == "http://override:4317"
    assert config.metrics_export_interval_ms == 250
    assert config.enable_metrics and config.enable_logging
