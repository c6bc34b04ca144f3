"""Unit conversions, labels and flag computations shared by the forecast and climatology paths."""
from __future__ import annotations

import math
from typing import Callable, List, Sequence
from zoneinfo import ZoneInfo

from skycheck.config import FlagThresholds
from skycheck.domain import AirQuality, HourPoint, ProbabilityFlags
from skycheck.series import MISSING, SeriesIndex, finite_or_none, is_finite, round_half_up
from skycheck.time_resolver import format_local_label

# Meteomatics parameter names (name:unit).
T_2M = "t_2m:C"
PRECIP_1H = "precip_1h:mm"
PROB_PRECIP_1H = "prob_precip_1h:p"
UV = "uv:idx"
WIND_SPEED = "wind_speed_10m:ms"
WIND_DIR = "wind_dir_10m:d"
WIND_GUST = "wind_gusts_10m_1h:ms"
REL_HUMIDITY = "relative_humidity_2m:p"
PRECIP_24H = "precip_24h:mm"

AIR_QUALITY_COMPONENTS = {
    "pm2p5_idx": "air_quality_pm2p5:idx",
    "pm10_idx": "air_quality_pm10:idx",
    "no2_idx": "air_quality_no2:idx",
    "o3_idx": "air_quality_o3:idx",
    "so2_idx": "air_quality_so2:idx",
}

HOURLY_PARAMS = [T_2M, PRECIP_1H, PROB_PRECIP_1H, UV]
INSTANT_PARAMS = [WIND_SPEED, WIND_DIR, WIND_GUST, REL_HUMIDITY, PRECIP_24H]

_CARDINALS = ["N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
              "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW"]
_AIR_QUALITY_TEXT = ["Great", "Good", "Moderate", "Poor", "Very Poor", "Extremely Poor"]


def ms_to_kmh(ms: float) -> float:
    """m/s -> km/h rounded to a whole number; NaN stays NaN."""
    if not is_finite(ms):
        return MISSING
    return round_half_up(ms * 3.6)


def cardinal(deg: float) -> str | None:
    """16-point compass label for a direction in degrees."""
    if not is_finite(deg):
        return None
    return _CARDINALS[int(math.floor((deg % 360.0) / 22.5 + 0.5)) % 16]


def uv_level(uv: float) -> str:
    if not is_finite(uv):
        return "N/A"
    if uv < 3:
        return "Low"
    if uv < 6:
        return "Moderate"
    if uv < 8:
        return "High"
    if uv < 11:
        return "Very High"
    return "Extreme"


def air_quality_text(idx: float) -> str:
    if not is_finite(idx):
        return "N/A"
    return _AIR_QUALITY_TEXT[min(5, max(0, int(math.floor(idx + 0.5))))]


def build_air_quality(values: dict) -> AirQuality:
    """Overall index = worst finite component; all-missing -> N/A."""
    components = {name: values.get(param, MISSING) for name, param in AIR_QUALITY_COMPONENTS.items()}
    finite = [v for v in components.values() if is_finite(v)]
    overall = max(finite) if finite else MISSING
    return AirQuality(
        overall_idx=finite_or_none(overall),
        overall_text=air_quality_text(overall),
        components={k: finite_or_none(v) for k, v in components.items()},
    )


def _rounded_pct(value: float) -> float | None:
    return round_half_up(value) if is_finite(value) else None


def build_hour_points(index: SeriesIndex, tz: ZoneInfo) -> List[HourPoint]:
    """One HourPoint per temperature timestamp; other parameters aligned by exact time."""
    out: List[HourPoint] = []
    for point in index.points(T_2M):
        out.append(
            HourPoint(
                time_local=format_local_label(point.time, tz),
                temp_c=finite_or_none(point.value),
                prob_precip_1h_pct=_rounded_pct(index.value_at(PROB_PRECIP_1H, point.time)),
                precip_1h_mm=finite_or_none(index.value_at(PRECIP_1H, point.time)),
                uv_idx=finite_or_none(index.value_at(UV, point.time)),
            )
        )
    return out


def fraction_of_hours(hours: Sequence[HourPoint], predicate: Callable[[HourPoint], bool]) -> float:
    """Share of hours meeting a multi-field predicate, rounded to 2 decimals."""
    if not hours:
        return 0.0
    return round_half_up(sum(1 for h in hours if predicate(h)) / len(hours), 2)


def _ge(value: float | None, threshold: float) -> bool:
    return value is not None and value >= threshold


def compute_flags(
    index: SeriesIndex,
    hours: Sequence[HourPoint],
    humidity_pct: float,
    thresholds: FlagThresholds,
) -> ProbabilityFlags:
    """Probability flags over the local day's hourly series."""
    very_hot = index.fraction_meeting(T_2M, lambda v: v >= thresholds.very_hot_c)
    very_cold = index.fraction_meeting(T_2M, lambda v: v <= thresholds.very_cold_c)
    extreme_rain = index.fraction_meeting(PRECIP_1H, lambda v: v >= thresholds.extreme_rain_mm)
    dangerous_uv = index.fraction_meeting(UV, lambda v: v >= thresholds.dangerous_uv)
    wet_prob = index.fraction_meeting(PROB_PRECIP_1H, lambda v: v >= thresholds.very_wet_prob_pct)

    humid_air = is_finite(humidity_pct) and humidity_pct >= thresholds.humid_rh_pct

    def _humid(h: HourPoint) -> bool:
        if _ge(h.prob_precip_1h_pct, thresholds.humid_prob_pct):
            return True
        return humid_air and h.uv_idx is not None and h.uv_idx < thresholds.humid_low_uv

    return ProbabilityFlags(
        very_hot=very_hot,
        very_cold=very_cold,
        very_wet=max(extreme_rain, wet_prob),
        very_humid=fraction_of_hours(hours, _humid),
        extreme_rain=extreme_rain,
        dangerous_uv=dangerous_uv,
    )
