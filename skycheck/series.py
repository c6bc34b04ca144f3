"""Indexed parameter time series with point lookups, extrema and hour fractions."""
from __future__ import annotations

import datetime as dt
import math
from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, NamedTuple

MISSING = math.nan


def is_finite(value) -> bool:
    """True for real, finite numbers (None, NaN and inf are missing)."""
    if value is None or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except TypeError:
        return False


def finite_or_none(value) -> float | None:
    """Map the NaN sentinel to None for serialization."""
    return float(value) if is_finite(value) else None


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round with .5 going up (towards +inf), unlike the built-in round()."""
    scale = 10 ** ndigits
    return math.floor(value * scale + 0.5) / scale


class SeriesPoint(NamedTuple):
    time: dt.datetime  # timezone-aware, UTC
    value: float


@dataclass
class ParameterSeries:
    """One provider parameter with its points ordered by time."""
    parameter: str
    points: List[SeriesPoint] = field(default_factory=list)

    def __post_init__(self):
        self.points = sorted(self.points, key=lambda p: p.time)

    def __len__(self) -> int:
        return len(self.points)

    def values(self) -> List[float]:
        return [p.value for p in self.points]


class SeriesIndex:
    """
    Read-only mapping of parameter name -> ParameterSeries.

    Lookups never raise on missing parameters or values; they return the NaN
    sentinel instead. Times are kept sorted so point lookups are binary searches.
    """

    def __init__(self, series: Dict[str, ParameterSeries]):
        self._series = series
        self._times: Dict[str, List[dt.datetime]] = {
            name: [p.time for p in s.points] for name, s in series.items()
        }

    @classmethod
    def build(cls, raw: Iterable[ParameterSeries]) -> "SeriesIndex":
        """Index series by parameter; a repeated parameter replaces the earlier one."""
        by_name: Dict[str, ParameterSeries] = {}
        for s in raw:
            by_name[s.parameter] = s
        return cls(by_name)

    def get(self, parameter: str) -> ParameterSeries:
        """Series for `parameter`, or an empty one."""
        return self._series.get(parameter) or ParameterSeries(parameter)

    def points(self, parameter: str) -> List[SeriesPoint]:
        return list(self.get(parameter).points)

    def value_at(self, parameter: str, instant: dt.datetime) -> float:
        """Value of the point stamped exactly `instant`, else NaN."""
        times = self._times.get(parameter, [])
        i = bisect_left(times, instant)
        if i < len(times) and times[i] == instant:
            return self._series[parameter].points[i].value
        return MISSING

    def exact_or_nearest_before(self, parameter: str, instant: dt.datetime) -> float:
        """
        "As of" lookup for right-aligned values.

        The point at `instant` if present, else the latest point before it,
        else NaN.
        """
        times = self._times.get(parameter, [])
        i = bisect_right(times, instant)
        if i == 0:
            return MISSING
        return self._series[parameter].points[i - 1].value

    def nearest(self, parameter: str, instant: dt.datetime) -> float:
        """Value of the point closest to `instant`; ties go to the earlier point."""
        times = self._times.get(parameter, [])
        if not times:
            return MISSING
        i = bisect_left(times, instant)
        candidates = [j for j in (i - 1, i) if 0 <= j < len(times)]
        best = min(candidates, key=lambda j: (abs(times[j] - instant), times[j]))
        return self._series[parameter].points[best].value

    def max(self, parameter: str) -> float:
        finite = [v for v in self.get(parameter).values() if is_finite(v)]
        return max(finite) if finite else MISSING

    def min(self, parameter: str) -> float:
        finite = [v for v in self.get(parameter).values() if is_finite(v)]
        return min(finite) if finite else MISSING

    def fraction_meeting(self, parameter: str, predicate: Callable[[float], bool]) -> float:
        """Share of points satisfying `predicate`, rounded to 2 decimals (0 when empty)."""
        values = self.get(parameter).values()
        if not values:
            return 0.0
        count = sum(1 for v in values if is_finite(v) and predicate(v))
        return round_half_up(count / len(values), 2)
