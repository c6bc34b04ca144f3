"""Helpers for fetching point weather data from the Meteomatics REST API."""
from __future__ import annotations

import datetime as dt
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import requests

from skycheck import config
from skycheck.data_sources.base import ProviderError, ProviderErrorKind
from skycheck.domain import Location
from skycheck.series import ParameterSeries, SeriesPoint
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="meteomatics_client")

session = requests.Session()

# Meteomatics fills unavailable values with this marker instead of null.
INVALID_VALUE = -999.0

# Upstream messages meaning "this parameter cannot be combined with the others /
# is not served at that time". Only this function knows about them.
_PARAMETER_UNAVAILABLE_MARKERS = (
    "not available",
    "mix request failed",
)


def format_instant(instant: dt.datetime) -> str:
    """UTC ISO-8601 with milliseconds, e.g. 2026-10-18T06:00:00.000Z."""
    if instant.tzinfo is None:
        raise ValueError("instant must be timezone-aware")
    utc = instant.astimezone(dt.timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def _parse_date(s: str) -> dt.datetime:
    text = s.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = dt.datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed.astimezone(dt.timezone.utc)


def _to_value(raw: Any) -> float:
    """Coerce a JSON value to float, mapping null/garbage/-999 to NaN."""
    if raw is None:
        return math.nan
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return math.nan
    if value == INVALID_VALUE:
        return math.nan
    return value


def parse_meteomatics_json(payload: Dict[str, Any]) -> List[ParameterSeries]:
    """Flatten a Meteomatics JSON response (first coordinate only) into series."""
    out: List[ParameterSeries] = []
    for block in (payload or {}).get("data") or []:
        coords = block.get("coordinates") or [{}]
        dates = (coords[0] or {}).get("dates") or []
        points = [SeriesPoint(_parse_date(str(d["date"])), _to_value(d.get("value"))) for d in dates if d.get("date")]
        out.append(ParameterSeries(str(block.get("parameter")), points))
    return out


def classify_provider_error(status: int, body: str) -> ProviderErrorKind:
    """Map an upstream status + body to a structured error kind."""
    lowered = (body or "").lower()
    if status in (401, 403):
        return ProviderErrorKind.AUTHENTICATION
    if status == 429:
        return ProviderErrorKind.RATE_LIMITED
    if 400 <= status < 500 and any(marker in lowered for marker in _PARAMETER_UNAVAILABLE_MARKERS):
        return ProviderErrorKind.PARAMETER_UNAVAILABLE
    return ProviderErrorKind.UPSTREAM


def _auth(settings: config.Settings) -> Tuple[str, str]:
    if not settings.meteomatics_username or not settings.meteomatics_password:
        raise ProviderError(
            500,
            "Meteomatics credentials are not configured (SKYCHECK_METEOMATICS_USERNAME/PASSWORD)",
            ProviderErrorKind.AUTHENTICATION,
        )
    return settings.meteomatics_username, settings.meteomatics_password


def build_url(base_url: str, time_part: str, parameters: Sequence[str], location: Location) -> str:
    """Meteomatics path: /{time}/{params}/{lat},{lon}/json."""
    if not parameters:
        raise ValueError("at least one parameter is required")
    return f"{base_url}/{quote(time_part, safe='')}/{','.join(parameters)}/{location.lat},{location.lon}/json"


def _get_json(url: str, settings: config.Settings) -> Dict[str, Any]:
    """GET a Meteomatics URL and return parsed JSON, raising ProviderError on failure."""
    try:
        resp = session.get(url, auth=_auth(settings), timeout=settings.request_timeout_seconds)
    except requests.RequestException as exc:
        logger.warning("Meteomatics transport failure: %s", exc)
        raise ProviderError(502, str(exc), ProviderErrorKind.TRANSPORT) from exc

    if not resp.ok:
        body = resp.text
        kind = classify_provider_error(resp.status_code, body)
        logger.warning(
            "Meteomatics returned an error: status=%s kind=%s",
            resp.status_code,
            kind.value,
        )
        raise ProviderError(resp.status_code, body, kind)

    try:
        return resp.json()
    except ValueError as exc:
        raise ProviderError(502, "Meteomatics returned a non-JSON body", ProviderErrorKind.UPSTREAM) from exc


def fetch_instant(
    location: Location,
    instant: dt.datetime,
    parameters: Sequence[str],
    *,
    settings: Optional[config.Settings] = None,
) -> Dict[str, float]:
    """Fetch one value per parameter valid at `instant` (NaN when absent)."""
    settings = settings or config.settings
    url = build_url(settings.meteomatics_base_url, format_instant(instant), parameters, location)
    logger.debug("Fetching Meteomatics instant: %s", url)

    series = parse_meteomatics_json(_get_json(url, settings))
    by_name = {s.parameter: s for s in series}
    out: Dict[str, float] = {}
    for p in parameters:
        s = by_name.get(p)
        out[p] = s.points[0].value if s is not None and s.points else math.nan
    return out


def fetch_range(
    location: Location,
    start: dt.datetime,
    end: dt.datetime,
    timestep: str,
    parameters: Sequence[str],
    *,
    settings: Optional[config.Settings] = None,
) -> List[ParameterSeries]:
    """Fetch ordered series for [start, end] at `timestep` (ISO-8601 duration, e.g. PT1H)."""
    settings = settings or config.settings
    time_part = f"{format_instant(start)}--{format_instant(end)}:{timestep}"
    url = build_url(settings.meteomatics_base_url, time_part, parameters, location)
    logger.debug("Fetching Meteomatics range: %s", url)

    series = parse_meteomatics_json(_get_json(url, settings))
    logger.debug(
        "Fetched Meteomatics range: %d series, %d points",
        len(series),
        sum(len(s) for s in series),
    )
    return series
