"""Deterministic threshold alerts for one local day.

Rules run in a fixed order (UV, heat/cold, rain, gusts, humidex, air quality),
each producing at most one alert at its highest firing tier. Per-hour rules
merge consecutive breaching hours into windows such as "13:00–15:00" and list
disjoint windows in the same line. The final list is deduplicated by
(level, text) in first-seen order.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, List, Sequence

from skycheck.config import AlertThresholds
from skycheck.domain import Alert, AlertLevel, HourPoint
from skycheck.series import MISSING, is_finite, round_half_up

DEFAULT_SOURCE = "Meteomatics"

HourPredicate = Callable[[HourPoint], bool]


@dataclass(frozen=True)
class AlertInputs:
    """Panel-derived scalars the single-shot rules look at (None/NaN = missing)."""
    hi_c: float | None = None
    lo_c: float | None = None
    temp_now_c: float | None = None
    humidity_pct: float | None = None
    gust_kmh: float | None = None
    air_quality_idx: float | None = None


@dataclass(frozen=True)
class HourWindow:
    start_idx: int
    end_idx: int


def _whole(value: float) -> int:
    return int(round_half_up(value))


def _num(value: float) -> str:
    return f"{value:g}"


def _ge(value: float | None, threshold: float) -> bool:
    return is_finite(value) and value >= threshold


def find_windows(hours: Sequence[HourPoint], predicate: HourPredicate) -> List[HourWindow]:
    """Contiguous runs of hours for which `predicate` holds, in order."""
    out: List[HourWindow] = []
    run_start = -1
    for i, hour in enumerate(hours):
        if predicate(hour):
            if run_start == -1:
                run_start = i
            continue
        if run_start != -1:
            out.append(HourWindow(run_start, i - 1))
            run_start = -1
    if run_start != -1:
        out.append(HourWindow(run_start, len(hours) - 1))
    return out


def window_label(hours: Sequence[HourPoint], window: HourWindow) -> str:
    start = hours[window.start_idx].time_local
    end = hours[window.end_idx].time_local
    return start if start == end else f"{start}–{end}"


def _window_labels(hours: Sequence[HourPoint], windows: Sequence[HourWindow]) -> List[str]:
    return [window_label(hours, w) for w in windows]


def humidex(temp_c: float | None, rh_pct: float | None) -> float:
    """Humidex from temperature and relative humidity via a Magnus dew point; NaN if not computable."""
    if not (is_finite(temp_c) and is_finite(rh_pct)) or rh_pct <= 0:
        return MISSING
    a, b = 17.27, 237.7
    try:
        alpha = (a * temp_c) / (b + temp_c) + math.log(rh_pct / 100.0)
        dew = (b * alpha) / (a - alpha)
        e = 6.11 * math.exp(5417.7530 * ((1 / 273.16) - (1 / (dew + 273.15))))
    except (ZeroDivisionError, OverflowError):
        return MISSING
    value = temp_c + (5.0 / 9.0) * (e - 10.0)
    return value if is_finite(value) else MISSING


def _uv_alerts(hours: Sequence[HourPoint], th: AlertThresholds, source: str) -> List[Alert]:
    danger = find_windows(hours, lambda h: _ge(h.uv_idx, th.uv_danger))
    if danger:
        labels = _window_labels(hours, danger)
        return [Alert(
            level=AlertLevel.DANGER,
            source=source,
            text=f"Very high UV ({_num(th.uv_danger)}+) around {', '.join(labels)}. Use sunscreen & shade.",
            evidence=labels,
        )]
    high = find_windows(hours, lambda h: _ge(h.uv_idx, th.uv_high))
    if high:
        labels = _window_labels(hours, high)
        return [Alert(
            level=AlertLevel.INFO,
            source=source,
            text=f"High UV ({_num(th.uv_high)}+) around {', '.join(labels)}.",
            evidence=labels,
        )]
    return []


def _temperature_alerts(inputs: AlertInputs, th: AlertThresholds, source: str) -> List[Alert]:
    out: List[Alert] = []
    if is_finite(inputs.hi_c):
        hi = _whole(inputs.hi_c)
        if inputs.hi_c >= th.heat_danger_c:
            out.append(Alert(level=AlertLevel.DANGER, source=source, text=f"Extreme heat today (High ~ {hi}°C)."))
        elif inputs.hi_c >= th.heat_warning_c:
            out.append(Alert(level=AlertLevel.WARNING, source=source, text=f"Very hot today (High ~ {hi}°C)."))
    if is_finite(inputs.lo_c):
        lo = _whole(inputs.lo_c)
        if inputs.lo_c <= th.cold_danger_c:
            out.append(Alert(level=AlertLevel.DANGER, source=source, text=f"Severe cold tonight (Low ~ {lo}°C)."))
        elif inputs.lo_c <= th.cold_warning_c:
            out.append(Alert(level=AlertLevel.WARNING, source=source, text=f"Cold conditions (Low ~ {lo}°C)."))
    return out


def _rain_alerts(hours: Sequence[HourPoint], th: AlertThresholds, source: str) -> List[Alert]:
    danger = find_windows(
        hours,
        lambda h: _ge(h.prob_precip_1h_pct, th.rain_prob_danger_pct) or _ge(h.precip_1h_mm, th.rain_rate_danger_mm),
    )
    if danger:
        labels = _window_labels(hours, danger)
        return [Alert(
            level=AlertLevel.DANGER,
            source=source,
            text=(
                f"Heavy rain risk ({_num(th.rain_prob_danger_pct)}%+ or {_num(th.rain_rate_danger_mm)}mm/h+) "
                f"around {', '.join(labels)}."
            ),
            evidence=labels,
        )]
    warning = find_windows(
        hours,
        lambda h: _ge(h.prob_precip_1h_pct, th.rain_prob_warning_pct) or _ge(h.precip_1h_mm, th.rain_rate_warning_mm),
    )
    if warning:
        labels = _window_labels(hours, warning)
        return [Alert(
            level=AlertLevel.WARNING,
            source=source,
            text=f"Rain likely ({_num(th.rain_prob_warning_pct)}%+) around {', '.join(labels)}.",
            evidence=labels,
        )]
    return []


def _gust_alerts(inputs: AlertInputs, th: AlertThresholds, source: str) -> List[Alert]:
    if not is_finite(inputs.gust_kmh):
        return []
    gust = _whole(inputs.gust_kmh)
    if inputs.gust_kmh >= th.gust_danger_kmh:
        return [Alert(level=AlertLevel.DANGER, source=source, text=f"Damaging wind gusts {gust} km/h.")]
    if inputs.gust_kmh >= th.gust_warning_kmh:
        return [Alert(level=AlertLevel.WARNING, source=source, text=f"Strong wind gusts {gust} km/h.")]
    return []


def _humidex_alerts(inputs: AlertInputs, th: AlertThresholds, source: str) -> List[Alert]:
    value = humidex(inputs.temp_now_c, inputs.humidity_pct)
    if not is_finite(value):
        return []
    rounded = _whole(value)
    if value >= th.humidex_danger:
        return [Alert(level=AlertLevel.DANGER, source=source, text=f"Dangerous heat stress (Humidex ~ {rounded}).")]
    if value >= th.humidex_warning:
        return [Alert(level=AlertLevel.WARNING, source=source, text=f"Heat stress (Humidex ~ {rounded}).")]
    return []


def _air_quality_alerts(inputs: AlertInputs, th: AlertThresholds, source: str) -> List[Alert]:
    idx = inputs.air_quality_idx
    if not is_finite(idx):
        return []
    if idx >= th.air_quality_danger_idx:
        return [Alert(level=AlertLevel.DANGER, source=source, text=f"Air quality: Very Poor (index {idx:.0f}).")]
    if idx >= th.air_quality_warning_idx:
        return [Alert(level=AlertLevel.WARNING, source=source, text=f"Air quality: Poor (index {idx:.0f}).")]
    return []


def dedupe_alerts(alerts: Sequence[Alert]) -> List[Alert]:
    """Drop alerts whose (level, text) already appeared; keeps first-seen order."""
    seen = set()
    unique: List[Alert] = []
    for a in alerts:
        key = (a.level, a.text)
        if key in seen:
            continue
        seen.add(key)
        unique.append(a)
    return unique


def compute_alerts(
    inputs: AlertInputs,
    hourly: Sequence[HourPoint],
    thresholds: AlertThresholds,
    *,
    source: str = DEFAULT_SOURCE,
    no_alert_label: str | None = None,
) -> List[Alert]:
    """
    Pure function: evaluate every rule over the day's hours and panel scalars.

    When nothing fires and `no_alert_label` (a local date) is given, a single
    informational "no significant alerts" line is returned instead of an empty
    list.
    """
    hours = list(hourly or [])
    alerts: List[Alert] = []
    alerts.extend(_uv_alerts(hours, thresholds, source))
    alerts.extend(_temperature_alerts(inputs, thresholds, source))
    alerts.extend(_rain_alerts(hours, thresholds, source))
    alerts.extend(_gust_alerts(inputs, thresholds, source))
    alerts.extend(_humidex_alerts(inputs, thresholds, source))
    alerts.extend(_air_quality_alerts(inputs, thresholds, source))

    if not alerts and no_alert_label:
        alerts.append(Alert(
            level=AlertLevel.INFO,
            source=source,
            text=f"No significant weather alerts for {no_alert_label}.",
        ))

    return dedupe_alerts(alerts)
