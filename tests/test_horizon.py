import datetime as dt

import pytest

from skycheck.domain import Mode
from skycheck.horizon import classify_horizon, horizon_days

NOW = dt.datetime(2026, 10, 18, 12, 0, tzinfo=dt.timezone.utc)


def _classify(days: float):
    return classify_horizon(
        NOW + dt.timedelta(days=days),
        NOW,
        max_forecast_days=10,
        max_air_quality_days=4,
    )


def test_horizon_days_is_signed():
    assert horizon_days(NOW + dt.timedelta(hours=36), NOW) == pytest.approx(1.5)
    assert horizon_days(NOW - dt.timedelta(hours=12), NOW) == pytest.approx(-0.5)


@pytest.mark.parametrize(
    "days, mode, include_aq",
    [
        (-3.0, Mode.HISTORY, True),
        (-0.5, Mode.FORECAST, True),
        (0.0, Mode.FORECAST, True),
        (4.0, Mode.FORECAST, True),
        (5.0, Mode.FORECAST, False),
        (10.0, Mode.FORECAST, False),
        (10.01, Mode.CLIMATOLOGY, False),
        (60.0, Mode.CLIMATOLOGY, False),
    ],
)
def test_classify_boundaries(days, mode, include_aq):
    decision = _classify(days)
    assert decision.mode == mode
    assert decision.include_air_quality is include_aq


def test_climatology_never_includes_air_quality():
    decision = classify_horizon(
        NOW + dt.timedelta(days=3),
        NOW,
        max_forecast_days=2,
        max_air_quality_days=5,
    )
    assert decision.mode == Mode.CLIMATOLOGY
    assert decision.include_air_quality is False
