"""Factory helpers for choosing a weather provider at startup."""

from __future__ import annotations

from skycheck import config
from skycheck.data_sources.base import CallableProviderClient, ProviderClient
from skycheck.data_sources.meteomatics_client import fetch_instant, fetch_range
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="data_sources/factory")


DEFAULT_PROVIDER_NAME = "meteomatics"


def build_provider(settings: config.Settings | None = None) -> ProviderClient:
    """Instantiate the configured provider client."""
    settings = settings or config.settings
    name = (settings.provider or DEFAULT_PROVIDER_NAME).lower()

    if name == "meteomatics":
        if not settings.meteomatics_username or not settings.meteomatics_password:
            logger.warning("Meteomatics credentials are not configured; provider calls will fail")
        logger.info("Using Meteomatics provider")
        return CallableProviderClient(
            instant=lambda *a, **k: fetch_instant(*a, settings=settings, **k),
            range=lambda *a, **k: fetch_range(*a, settings=settings, **k),
        )

    raise ValueError(f"Unknown weather provider '{name}'")
