"""Multi-year climatology used in place of a forecast beyond the provider's horizon.

For each of the prior `years_back` years we fetch hourly observations in a
window of +/- `half_window_days` around the target's calendar date, pool all of
them per parameter, and reduce each UTC hour-of-day bucket to a median. The
result has the same Panel / HourPoint shape as the live forecast path, with
values missing wherever a bucket has no finite samples.
"""
from __future__ import annotations

import contextvars
import datetime as dt
import math
import statistics
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence
from zoneinfo import ZoneInfo

from skycheck.config import FlagThresholds
from skycheck.data_sources.base import ProviderClient
from skycheck.domain import HourPoint, Location, Panel, Wind
from skycheck.metrics import (
    PRECIP_1H,
    PROB_PRECIP_1H,
    REL_HUMIDITY,
    T_2M,
    UV,
    WIND_SPEED,
    build_hour_points,
    compute_flags,
    ms_to_kmh,
    uv_level,
)
from skycheck.series import (
    MISSING,
    ParameterSeries,
    SeriesIndex,
    SeriesPoint,
    finite_or_none,
    is_finite,
    round_half_up,
)
from skycheck.time_resolver import ResolvedTarget, local_day_instants, local_day_window
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="climatology")

CLIMATOLOGY_PARAMS = [T_2M, PRECIP_1H, REL_HUMIDITY, WIND_SPEED, UV]
RAIN_THRESHOLD_MM = 0.1
HIGH_PERCENTILE = 0.9
LOW_PERCENTILE = 0.1
HOURS_PER_DAY = 24


def _finite(values: Iterable[float]) -> List[float]:
    return [float(v) for v in values if is_finite(v)]


def median(values: Iterable[float]) -> float:
    """Median of the finite values; NaN when there are none."""
    finite = _finite(values)
    if not finite:
        return MISSING
    return float(statistics.median(finite))


def percentile(values: Iterable[float], q: float) -> float:
    """
    q-th quantile (0..1) of the finite values with linear interpolation between
    the two nearest ranks; NaN when there are none.
    """
    finite = sorted(_finite(values))
    if not finite:
        return MISSING
    q = min(1.0, max(0.0, q))
    pos = q * (len(finite) - 1)
    lo = math.floor(pos)
    hi = math.ceil(pos)
    if lo == hi:
        return finite[lo]
    return finite[lo] + (finite[hi] - finite[lo]) * (pos - lo)


def exceedance_pct(values: Iterable[float], threshold: float) -> float:
    """Rounded percentage of finite values strictly above `threshold`; NaN when none."""
    finite = _finite(values)
    if not finite:
        return MISSING
    return round_half_up(100.0 * sum(1 for v in finite if v > threshold) / len(finite))


def same_day_in_year(day: dt.date, year: int) -> dt.date:
    """Same month/day in another year; 29 Feb falls back to 28 Feb."""
    try:
        return day.replace(year=year)
    except ValueError:
        return day.replace(year=year, day=28)


@dataclass(frozen=True)
class SampleWindow:
    year: int
    start: dt.datetime
    end: dt.datetime


def sample_windows(local_date: dt.date, tz: ZoneInfo, *, years_back: int, half_window_days: int) -> List[SampleWindow]:
    """One UTC window per prior year around the anniversary of `local_date`."""
    out: List[SampleWindow] = []
    half = dt.timedelta(days=half_window_days)
    for k in range(1, years_back + 1):
        anniversary = same_day_in_year(local_date, local_date.year - k)
        first = dt.datetime.combine(anniversary - half, dt.time(12), tzinfo=tz)
        last = dt.datetime.combine(anniversary + half, dt.time(12), tzinfo=tz)
        out.append(
            SampleWindow(
                year=anniversary.year,
                start=local_day_window(first, tz).start,
                end=local_day_window(last, tz).end,
            )
        )
    return out


@dataclass
class HourBuckets:
    """Pooled samples of one parameter split by UTC hour of day."""
    parameter: str
    buckets: List[List[float]] = field(default_factory=lambda: [[] for _ in range(HOURS_PER_DAY)])
    pooled: List[float] = field(default_factory=list)

    def add(self, points: Iterable[SeriesPoint]) -> None:
        for p in points:
            self.buckets[p.time.astimezone(dt.timezone.utc).hour].append(p.value)
            self.pooled.append(p.value)

    def medians(self) -> List[float]:
        return [median(b) for b in self.buckets]


def pool_by_hour(fetched: Sequence[Sequence[ParameterSeries]], parameters: Sequence[str]) -> Dict[str, HourBuckets]:
    """Pool every fetched point per parameter, regardless of year or day."""
    pooled = {p: HourBuckets(p) for p in parameters}
    for year_series in fetched:
        for s in year_series:
            if s.parameter in pooled:
                pooled[s.parameter].add(s.points)
    return pooled


@dataclass
class ClimatologyOutcome:
    panel: Panel
    hourly: List[HourPoint]
    index: SeriesIndex
    years: List[int]
    sample_counts: Dict[str, int]


def _clamp_hour(hour: int) -> int:
    return min(HOURS_PER_DAY - 1, max(0, hour))


class ClimatologyBuilder:
    """Build a Panel + hourly strip from prior years' observations, with no forecast call."""

    def __init__(
        self,
        provider: ProviderClient,
        *,
        years_back: int,
        half_window_days: int,
        flag_thresholds: FlagThresholds | None = None,
        timestep: str = "PT1H",
        max_workers: int = 4,
    ):
        self.provider = provider
        self.years_back = years_back
        self.half_window_days = half_window_days
        self.flag_thresholds = flag_thresholds or FlagThresholds()
        self.timestep = timestep
        self.max_workers = max_workers

    def fetch_samples(self, location: Location, windows: Sequence[SampleWindow]) -> List[List[ParameterSeries]]:
        """Fan out one ranged fetch per year; returns only after every fetch completed."""
        if not windows:
            return []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(windows))) as pool:
            futures = [
                pool.submit(
                    contextvars.copy_context().run,
                    self.provider.fetch_range,
                    location,
                    w.start,
                    w.end,
                    self.timestep,
                    CLIMATOLOGY_PARAMS,
                )
                for w in windows
            ]
            return [f.result() for f in futures]

    def build(self, location: Location, resolved: ResolvedTarget) -> ClimatologyOutcome:
        tz = resolved.tzinfo
        windows = sample_windows(
            resolved.window.local_date,
            tz,
            years_back=self.years_back,
            half_window_days=self.half_window_days,
        )
        logger.info(
            "Building climatology: years=%s half_window_days=%d",
            [w.year for w in windows],
            self.half_window_days,
        )
        fetched = self.fetch_samples(location, windows)
        pooled = pool_by_hour(fetched, CLIMATOLOGY_PARAMS)
        return self.summarize(pooled, resolved, years=[w.year for w in windows])

    def summarize(self, pooled: Dict[str, HourBuckets], resolved: ResolvedTarget, *, years: List[int]) -> ClimatologyOutcome:
        """Reduce pooled buckets to the panel and hourly strip for the target day."""
        tz = resolved.tzinfo
        empty = HourBuckets("")
        temp = pooled.get(T_2M, empty)
        precip = pooled.get(PRECIP_1H, empty)
        uv = pooled.get(UV, empty)

        temp_medians = temp.medians()
        precip_medians = precip.medians()
        uv_medians = uv.medians()
        rain_prob = [exceedance_pct(b, RAIN_THRESHOLD_MM) for b in precip.buckets]

        # Synthetic "typical day": every local hour reads the bucket of its own UTC hour.
        synthetic: Dict[str, List[SeriesPoint]] = {T_2M: [], PRECIP_1H: [], PROB_PRECIP_1H: [], UV: []}
        for instant in local_day_instants(resolved.window):
            h = instant.hour
            synthetic[T_2M].append(SeriesPoint(instant, temp_medians[h]))
            synthetic[PRECIP_1H].append(SeriesPoint(instant, precip_medians[h]))
            synthetic[PROB_PRECIP_1H].append(SeriesPoint(instant, rain_prob[h]))
            synthetic[UV].append(SeriesPoint(instant, uv_medians[h]))
        index = SeriesIndex.build(ParameterSeries(name, pts) for name, pts in synthetic.items())
        hourly = build_hour_points(index, tz)

        target_hour = _clamp_hour(resolved.instant.hour)
        humidity = median(pooled.get(REL_HUMIDITY, empty).pooled)
        wind_ms = median(pooled.get(WIND_SPEED, empty).pooled)
        uv_now = uv_medians[target_hour]
        finite_precip = _finite(precip_medians)

        panel = Panel(
            temp_now_c=finite_or_none(temp_medians[target_hour]),
            hi_c=finite_or_none(percentile(temp_medians, HIGH_PERCENTILE)),
            lo_c=finite_or_none(percentile(temp_medians, LOW_PERCENTILE)),
            precip_last_1h_mm=finite_or_none(precip_medians[target_hour]),
            precip_last_24h_mm=round_half_up(sum(finite_precip), 2) if finite_precip else None,
            humidity_pct=finite_or_none(humidity),
            uv_index=finite_or_none(uv_now),
            uv_level=uv_level(uv_now),
            wind=Wind(speed_kmh=finite_or_none(ms_to_kmh(wind_ms))),
            flags=compute_flags(index, hourly, humidity, self.flag_thresholds),
        )
        counts = {p: len(_finite(b.pooled)) for p, b in pooled.items()}
        logger.debug("Climatology sample counts: %s", counts)
        return ClimatologyOutcome(panel=panel, hourly=hourly, index=index, years=years, sample_counts=counts)
