"""Decide whether a target instant is served as forecast, climatology or history."""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass

from skycheck.domain import Mode

SECONDS_PER_DAY = 86_400.0
HISTORY_CUTOFF_DAYS = -0.5


@dataclass(frozen=True)
class HorizonDecision:
    mode: Mode
    horizon_days: float
    include_air_quality: bool


def horizon_days(target: dt.datetime, now: dt.datetime) -> float:
    """Signed distance target - now in fractional days."""
    return (target - now).total_seconds() / SECONDS_PER_DAY


def classify_horizon(
    target: dt.datetime,
    now: dt.datetime,
    *,
    max_forecast_days: float,
    max_air_quality_days: float,
) -> HorizonDecision:
    """
    Pure classification of one request.

    history:     horizon < -0.5 days
    forecast:    -0.5 <= horizon <= max_forecast_days
    climatology: horizon > max_forecast_days

    Air quality is only requested for live modes within the provider's
    (shorter) air-quality horizon.
    """
    days = horizon_days(target, now)
    if days < HISTORY_CUTOFF_DAYS:
        mode = Mode.HISTORY
    elif days <= max_forecast_days:
        mode = Mode.FORECAST
    else:
        mode = Mode.CLIMATOLOGY

    include_aq = mode != Mode.CLIMATOLOGY and days <= max_air_quality_days
    return HorizonDecision(mode=mode, horizon_days=days, include_air_quality=include_aq)
