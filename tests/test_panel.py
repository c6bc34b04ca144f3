import datetime as dt
import math
import threading

import pytest

from skycheck.config import Settings
from skycheck.data_sources.base import CallableProviderClient, ProviderError, ProviderErrorKind
from skycheck.domain import AlertLevel, DashboardQuery, InvalidInputError, Location, Mode
from skycheck.metrics import (
    AIR_QUALITY_COMPONENTS,
    PRECIP_1H,
    PRECIP_24H,
    PROB_PRECIP_1H,
    REL_HUMIDITY,
    T_2M,
    UV,
    WIND_DIR,
    WIND_GUST,
    WIND_SPEED,
)
from skycheck.panel import PanelAssembler
from skycheck.series import ParameterSeries, SeriesPoint

NOW = dt.datetime(2026, 10, 18, 12, 0, tzinfo=dt.timezone.utc)
MAZATLAN = Location(lat=23.2494, lon=-106.4111)


class FakeProvider:
    """Deterministic provider: temperatures climb 0.5 °C per hour from 15 °C, repeating daily."""

    def __init__(self, aq_error=None):
        self.aq_error = aq_error
        self.instant_calls = []
        self.range_calls = []
        self._lock = threading.Lock()

    def fetch_instant(self, location, instant, parameters):
        with self._lock:
            self.instant_calls.append(list(parameters))
        if self.aq_error is not None and any(p.startswith("air_quality") for p in parameters):
            raise self.aq_error
        values = {
            WIND_SPEED: 10.0,
            WIND_DIR: 90.0,
            WIND_GUST: 12.0,
            REL_HUMIDITY: 40.0,
            PRECIP_24H: 1.5,
        }
        values.update({p: 1.0 for p in AIR_QUALITY_COMPONENTS.values()})
        values["air_quality_o3:idx"] = 2.0
        return {p: values.get(p, math.nan) for p in parameters}

    def fetch_range(self, location, start, end, timestep, parameters):
        with self._lock:
            self.range_calls.append((start, end, timestep, list(parameters)))
        out = []
        for p in parameters:
            points = []
            t, i = start, 0
            while t <= end:
                value = {
                    T_2M: 15.0 + 0.5 * (i % 24),
                    PROB_PRECIP_1H: 10.0,
                    PRECIP_1H: 0.0,
                    UV: 2.0,
                    REL_HUMIDITY: 55.0,
                    WIND_SPEED: 3.0,
                }.get(p, math.nan)
                points.append(SeriesPoint(t, value))
                t += dt.timedelta(hours=1)
                i += 1
            out.append(ParameterSeries(p, points))
        return out

    def client(self):
        return CallableProviderClient(instant=self.fetch_instant, range=self.fetch_range)


def make_assembler(provider: FakeProvider, **overrides) -> PanelAssembler:
    settings = Settings(
        default_timezone="America/Mazatlan",
        max_forecast_days=14,
        max_air_quality_days=4,
        climatology_years_back=2,
        climatology_half_window_days=1,
        **overrides,
    )
    return PanelAssembler(provider.client(), settings, clock=lambda: NOW)


def test_forecast_three_days_ahead():
    provider = FakeProvider()
    result = make_assembler(provider).assemble(
        DashboardQuery(location=MAZATLAN, target="2026-10-21T12:00", timezone="America/Mazatlan")
    )

    assert result.mode == Mode.FORECAST
    assert result.target_utc == dt.datetime(2026, 10, 21, 19, 0, tzinfo=dt.timezone.utc)
    assert result.local_date == "Oct 21, 2026"
    assert len(result.hourly) == 24
    assert result.hourly[0].time_local == "00:00"

    panel = result.panel
    assert panel.hi_c == 26.5
    assert panel.lo_c == 15.0
    assert panel.hi_c >= panel.lo_c
    assert panel.temp_now_c == 21.0
    assert panel.precip_last_1h_mm == 0.0
    assert panel.precip_last_24h_mm == 1.5
    assert panel.humidity_pct == 40.0
    assert panel.uv_level == "Low"
    assert panel.wind.speed_kmh == 36.0
    assert panel.wind.gust_kmh == 43.0
    assert panel.wind.direction_cardinal == "E"

    assert result.air_quality.overall_idx == 2.0
    assert result.air_quality.overall_text == "Moderate"
    assert result.alerts == []

    assert result.meta.horizon_days == 3.3
    assert result.meta.generated_at == NOW
    assert "air_quality_pm10:idx" in result.meta.params["instant"]
    assert result.meta.params["series"] == [T_2M, PRECIP_1H, PROB_PRECIP_1H, UV]

    start, end, timestep, _ = provider.range_calls[0]
    assert timestep == "PT1H"
    assert start == dt.datetime(2026, 10, 21, 7, 0, tzinfo=dt.timezone.utc)
    assert end - start == dt.timedelta(hours=23, minutes=59, seconds=59, milliseconds=999)


def test_forecast_beyond_air_quality_horizon_skips_air_quality():
    provider = FakeProvider()
    result = make_assembler(provider).assemble(
        DashboardQuery(location=MAZATLAN, target="2026-10-25T12:00")
    )
    assert result.mode == Mode.FORECAST
    assert not any(p.startswith("air_quality") for p in provider.instant_calls[0])
    assert result.air_quality.overall_text == "N/A"
    assert any("air-quality horizon" in n for n in result.meta.notes)


def test_air_quality_unavailable_retries_without_it():
    provider = FakeProvider(
        aq_error=ProviderError(400, "Parameter air_quality_pm10:idx not available", ProviderErrorKind.PARAMETER_UNAVAILABLE)
    )
    result = make_assembler(provider).assemble(
        DashboardQuery(location=MAZATLAN, target="2026-10-19T12:00")
    )
    assert len(provider.instant_calls) == 2
    assert not any(p.startswith("air_quality") for p in provider.instant_calls[1])
    assert result.air_quality.overall_idx is None
    assert result.panel.wind.speed_kmh == 36.0
    assert "Air quality unavailable from the provider at this time." in result.meta.notes


@pytest.mark.parametrize("kind", [ProviderErrorKind.AUTHENTICATION, ProviderErrorKind.UPSTREAM])
def test_other_provider_errors_propagate(kind):
    provider = FakeProvider(aq_error=ProviderError(500, "boom", kind))
    with pytest.raises(ProviderError) as exc:
        make_assembler(provider).assemble(DashboardQuery(location=MAZATLAN, target="2026-10-19T12:00"))
    assert exc.value.kind == kind
    assert len(provider.instant_calls) == 1


def test_climatology_beyond_forecast_horizon():
    provider = FakeProvider()
    result = make_assembler(provider).assemble(
        DashboardQuery(location=MAZATLAN, target="2026-11-07T12:00", timezone="America/Mazatlan")
    )
    assert result.mode == Mode.CLIMATOLOGY
    assert provider.instant_calls == []
    assert len(provider.range_calls) == 2
    assert result.air_quality.overall_idx is None
    assert result.meta.params == {"climatology": [T_2M, PRECIP_1H, REL_HUMIDITY, WIND_SPEED, UV]}
    assert len(result.hourly) == 24
    assert result.panel.hi_c >= result.panel.lo_c
    assert [(a.level, a.text) for a in result.alerts] == [
        (AlertLevel.INFO, "No significant weather alerts for Nov 7, 2026.")
    ]


def test_no_alert_notice_can_be_disabled():
    provider = FakeProvider()
    result = make_assembler(provider, no_alerts_notice="never").assemble(
        DashboardQuery(location=MAZATLAN, target="2026-11-07T12:00")
    )
    assert result.alerts == []


def test_history_mode_for_past_targets():
    provider = FakeProvider()
    result = make_assembler(provider).assemble(
        DashboardQuery(location=MAZATLAN, target="2026-10-10T12:00")
    )
    assert result.mode == Mode.HISTORY
    assert result.meta.horizon_days < 0
    assert len(provider.range_calls) == 1


def test_default_timezone_and_target():
    provider = FakeProvider()
    result = make_assembler(provider).assemble(DashboardQuery(location=MAZATLAN))
    assert result.timezone == "America/Mazatlan"
    assert result.target_utc == NOW
    assert result.mode == Mode.FORECAST


def test_invalid_timezone_raises_before_any_fetch():
    provider = FakeProvider()
    with pytest.raises(InvalidInputError):
        make_assembler(provider).assemble(DashboardQuery(location=MAZATLAN, timezone="Mars/Olympus"))
    assert provider.range_calls == []
    assert provider.instant_calls == []


def test_alerts_fire_on_assembled_panel():
    provider = FakeProvider()
    original = provider.fetch_instant

    def windy(location, instant, parameters):
        values = original(location, instant, parameters)
        values[WIND_GUST] = 25.0  # 90 km/h
        return values

    provider.fetch_instant = windy
    result = make_assembler(provider).assemble(DashboardQuery(location=MAZATLAN, target="2026-10-19T12:00"))
    assert [(a.level, a.text) for a in result.alerts] == [(AlertLevel.DANGER, "Damaging wind gusts 90 km/h.")]
