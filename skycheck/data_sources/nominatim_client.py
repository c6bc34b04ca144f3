"""Forward and reverse geocoding against OpenStreetMap Nominatim."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from skycheck import config
from skycheck.data_sources.base import ProviderError, ProviderErrorKind
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="nominatim_client")

session = requests.Session()


@dataclass
class Place:
    """Normalized geocoding hit."""
    name: str
    lat: float
    lon: float
    category: str = ""
    type: str = ""
    score: float = 0.0


def _get(path: str, params: Dict[str, Any], settings: config.Settings) -> Any:
    url = f"{settings.nominatim_base_url}/{path}"
    headers = {"User-Agent": settings.nominatim_user_agent, "Accept": "application/json"}
    try:
        resp = session.get(url, params=params, headers=headers, timeout=settings.request_timeout_seconds)
    except requests.RequestException as exc:
        raise ProviderError(502, str(exc), ProviderErrorKind.TRANSPORT) from exc
    if not resp.ok:
        logger.warning("Nominatim returned an error: status=%s", resp.status_code)
        raise ProviderError(resp.status_code, resp.text, ProviderErrorKind.UPSTREAM)
    return resp.json()


def search(query: str, limit: int = 5, *, settings: Optional[config.Settings] = None) -> List[Place]:
    """Free-text place search."""
    settings = settings or config.settings
    data = _get(
        "search",
        {"format": "jsonv2", "q": query, "addressdetails": 1, "limit": limit},
        settings,
    )
    return [
        Place(
            name=r.get("display_name", ""),
            lat=float(r["lat"]),
            lon=float(r["lon"]),
            category=r.get("class") or "",
            type=r.get("type") or "",
            score=float(r.get("importance") or 0.0),
        )
        for r in data or []
    ]


def reverse(lat: float, lon: float, *, settings: Optional[config.Settings] = None) -> Place:
    """Best display name for a coordinate (city-level zoom)."""
    settings = settings or config.settings
    data = _get(
        "reverse",
        {"format": "jsonv2", "lat": lat, "lon": lon, "zoom": 10, "addressdetails": 1},
        settings,
    )
    return Place(name=(data or {}).get("display_name", ""), lat=lat, lon=lon)
