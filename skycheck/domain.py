"""Domain vocabulary and response schemas for the dashboard.

Everything here is a request-scoped value: enums, errors and the Pydantic
models that make up a dashboard result. Missing measurements are carried as
`None` in these models; the computation modules use NaN internally and convert
at the boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


class _StrictBaseModel(BaseModel):
    """Base model with strict extra handling."""

    model_config = ConfigDict(extra="forbid")


class InvalidInputError(ValueError):
    """Bad coordinates, unparseable target time or unknown time zone."""


class Mode(str, Enum):
    """How the requested instant is served."""
    FORECAST = "forecast"
    CLIMATOLOGY = "climatology"
    HISTORY = "history"


class AlertLevel(str, Enum):
    """Alert severity, ordered info < warning < danger."""
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"


@dataclass(frozen=True)
class Location:
    """A single geographic point."""
    lat: float
    lon: float

    def __post_init__(self):
        if not (-90.0 <= self.lat <= 90.0):
            raise InvalidInputError(f"Latitude out of range: {self.lat}")
        if not (-180.0 <= self.lon <= 180.0):
            raise InvalidInputError(f"Longitude out of range: {self.lon}")


@dataclass(frozen=True)
class DashboardQuery:
    """Inputs for one dashboard computation."""
    location: Location
    target: str | None = None
    timezone: str | None = None


class Alert(_StrictBaseModel):
    """One threshold-driven alert line."""
    level: AlertLevel
    text: str
    source: str
    href: str | None = None
    evidence: List[str] = Field(default_factory=list)


class HourPoint(_StrictBaseModel):
    """One hour of the local day as shown in the hourly strip."""
    time_local: str
    temp_c: float | None = None
    prob_precip_1h_pct: float | None = None
    precip_1h_mm: float | None = None
    uv_idx: float | None = None


class Wind(_StrictBaseModel):
    """Wind block of the panel."""
    speed_kmh: float | None = None
    gust_kmh: float | None = None
    direction_deg: float | None = None
    direction_cardinal: str | None = None


class ProbabilityFlags(_StrictBaseModel):
    """Fraction (0-1, two decimals) of local-day hours meeting each predicate."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    very_hot: float = Field(default=0.0, alias="veryHot")
    very_cold: float = Field(default=0.0, alias="veryCold")
    very_wet: float = Field(default=0.0, alias="veryWet")
    very_humid: float = Field(default=0.0, alias="veryHumid")
    extreme_rain: float = Field(default=0.0, alias="extremeRain")
    dangerous_uv: float = Field(default=0.0, alias="dangerousUV")


class Panel(_StrictBaseModel):
    """Normalized summary for the requested instant and its local day."""
    temp_now_c: float | None = None
    hi_c: float | None = None
    lo_c: float | None = None
    precip_last_1h_mm: float | None = None
    precip_last_24h_mm: float | None = None
    humidity_pct: float | None = None
    uv_index: float | None = None
    uv_level: str = "N/A"
    wind: Wind = Field(default_factory=Wind)
    flags: ProbabilityFlags = Field(default_factory=ProbabilityFlags)


class AirQuality(_StrictBaseModel):
    """Air-quality index (0-5 ordinal) with its text label and component indices."""
    overall_idx: float | None = None
    overall_text: str = "N/A"
    components: Dict[str, float | None] = Field(default_factory=dict)


class ResultMeta(_StrictBaseModel):
    """Metadata describing how/when a dashboard result was generated."""
    mode: Mode
    horizon_days: float
    generated_at: datetime
    source: str
    params: Dict[str, List[str]] = Field(default_factory=dict)
    notes: List[str] = Field(default_factory=list)


class LocationOut(_StrictBaseModel):
    """Echo of the requested location."""
    lat: float
    lon: float
    name: str | None = None


class DashboardResult(_StrictBaseModel):
    """Unified result handed to the presentation layer."""
    mode: Mode
    location: LocationOut
    target_utc: datetime
    timezone: str
    local_date: str
    panel: Panel
    hourly: List[HourPoint] = Field(default_factory=list)
    air_quality: AirQuality = Field(default_factory=AirQuality)
    alerts: List[Alert] = Field(default_factory=list)
    meta: ResultMeta
