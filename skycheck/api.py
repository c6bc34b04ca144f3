"""HTTP API for the weather dashboard."""

import datetime as dt
import hmac
from typing import List, Optional

import redis
from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from .config import settings
from .data_sources import ProviderError, build_provider
from .data_sources import nominatim_client
from .domain import DashboardQuery, DashboardResult, InvalidInputError, Location
from .metrics import HOURLY_PARAMS
from .panel import PanelAssembler
from .series import finite_or_none
from .time_resolver import parse_target
from utils.logging_utils import get_tagged_logger, request_context

logger = get_tagged_logger(__name__, tag="api")

_redis_client = None
if settings.api_key_redis_url:
    try:
        _redis_client = redis.Redis.from_url(settings.api_key_redis_url)
        logger.info("API key checks will use Redis backend")
    except redis.RedisError as exc:  # pragma: no cover - depends on deployment
        logger.warning("Failed to connect to Redis for API key checks; falling back to static key: %s", exc)


def require_api_key(x_api_key: str | None = Header(default=None)):
    """
    Validate X-API-Key against Redis (if configured) or the static api_key setting.
    With neither configured every request is allowed.
    """
    if not settings.api_key and not _redis_client:
        return

    if not x_api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")

    if _redis_client:
        try:
            if _redis_client.sismember(settings.api_key_redis_set, x_api_key):
                return
        except redis.RedisError as e:  # pragma: no cover - depends on deployment
            logger.warning("Redis API key lookup error; falling back to static key: %s", e)

    if settings.api_key and hmac.compare_digest(str(x_api_key), str(settings.api_key)):
        return

    logger.debug("Invalid API key provided")
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


router = APIRouter(dependencies=[Depends(require_api_key)])
PROVIDER = build_provider(settings)


def get_assembler() -> PanelAssembler:
    """Request-scoped assembler over the configured provider."""
    return PanelAssembler(PROVIDER, settings)


class DashboardRequest(BaseModel):
    """Incoming dashboard query."""
    model_config = ConfigDict(populate_by_name=True)

    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    target_iso: Optional[str] = Field(default=None, alias="targetISO")
    timezone: Optional[str] = None


class SeriesRequest(BaseModel):
    """Raw ranged series query; defaults to the next 24 hours, hourly."""
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    start: Optional[str] = None
    end: Optional[str] = None
    timestep: str = "PT1H"
    params: List[str] = Field(default_factory=lambda: list(HOURLY_PARAMS), min_length=1)


class SeriesPointOut(BaseModel):
    date: dt.datetime
    value: Optional[float] = None


class SeriesOut(BaseModel):
    parameter: str
    points: List[SeriesPointOut]


class SeriesResponse(BaseModel):
    location: dict
    window: dict
    params: List[str]
    series: List[SeriesOut]


class PlaceOut(BaseModel):
    name: str
    lat: float
    lon: float
    category: str = ""
    type: str = ""
    score: float = 0.0


class GeocodeResponse(BaseModel):
    ok: bool = True
    count: int
    results: List[PlaceOut]


class ReverseGeocodeResponse(BaseModel):
    ok: bool = True
    result: PlaceOut


def _provider_http_error(exc: ProviderError) -> HTTPException:
    """Upstream failures surface as 502 with the upstream status in the detail."""
    logger.error("Provider failure: status=%s kind=%s", exc.status, exc.kind.value)
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail={"error": "Upstream provider error", "status": exc.status, "kind": exc.kind.value, "message": exc.message},
    )


def _as_utc(value: str) -> dt.datetime:
    parsed = parse_target(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed.astimezone(dt.timezone.utc)


@router.get("/dashboard")
def dashboard_hint():
    """Usage hint for clients hitting the endpoint with GET."""
    return {"ok": True, "hint": "POST /v1/dashboard with { lat, lon, targetISO?, timezone? }"}


@router.post("/dashboard", response_model=DashboardResult, response_model_by_alias=True)
def dashboard(req: DashboardRequest, assembler: PanelAssembler = Depends(get_assembler)):
    """Compute the panel, hourly strip, air quality and alerts for a point and time."""
    with request_context():
        try:
            query = DashboardQuery(
                location=Location(lat=req.lat, lon=req.lon),
                target=req.target_iso,
                timezone=req.timezone,
            )
            return assembler.assemble(query)
        except InvalidInputError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
        except ProviderError as exc:
            raise _provider_http_error(exc)


@router.post("/series", response_model=SeriesResponse)
def series(req: SeriesRequest):
    """Pass-through of raw provider series, normalized to {parameter, points}."""
    with request_context():
        try:
            now = dt.datetime.now(dt.timezone.utc)
            start = _as_utc(req.start) if req.start else now
            end = _as_utc(req.end) if req.end else start + dt.timedelta(hours=24)
        except InvalidInputError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
        if end <= start:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end must be after start")

        try:
            raw = PROVIDER.fetch_range(Location(lat=req.lat, lon=req.lon), start, end, req.timestep, req.params)
        except ProviderError as exc:
            raise _provider_http_error(exc)

        return SeriesResponse(
            location={"lat": req.lat, "lon": req.lon},
            window={"start": start.isoformat(), "end": end.isoformat(), "timestep": req.timestep},
            params=req.params,
            series=[
                SeriesOut(
                    parameter=s.parameter,
                    points=[SeriesPointOut(date=p.time, value=finite_or_none(p.value)) for p in s.points],
                )
                for s in raw
            ],
        )


@router.get("/geocode", response_model=GeocodeResponse)
def geocode(q: str = Query(default=""), limit: int = Query(default=5, ge=1, le=20)):
    """Free-text place search."""
    query = q.strip()
    if not query:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing q")
    try:
        places = nominatim_client.search(query, limit)
    except ProviderError as exc:
        raise _provider_http_error(exc)
    return GeocodeResponse(count=len(places), results=[PlaceOut(**vars(p)) for p in places])


@router.get("/geocode/reverse", response_model=ReverseGeocodeResponse)
def reverse_geocode(lat: float = Query(ge=-90, le=90), lon: float = Query(ge=-180, le=180)):
    """Display name for a coordinate."""
    try:
        place = nominatim_client.reverse(lat, lon)
    except ProviderError as exc:
        raise _provider_http_error(exc)
    return ReverseGeocodeResponse(result=PlaceOut(**vars(place)))
