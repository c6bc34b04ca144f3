"""Weather provider clients and the factory that picks one."""

from .base import CallableProviderClient, ProviderClient, ProviderError, ProviderErrorKind
from .factory import build_provider
from .meteomatics_client import (
    fetch_instant,
    fetch_range,
    parse_meteomatics_json,
)

__all__ = [
    "build_provider",
    "CallableProviderClient",
    "ProviderClient",
    "ProviderError",
    "ProviderErrorKind",
    "fetch_instant",
    "fetch_range",
    "parse_meteomatics_json",
]
