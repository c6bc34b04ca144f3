"""Interfaces and error types for weather provider clients."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Protocol, Sequence

from skycheck.domain import Location
from skycheck.series import ParameterSeries


class ProviderErrorKind(str, Enum):
    """Structured classification of provider failures."""
    PARAMETER_UNAVAILABLE = "parameter_unavailable"  # a requested parameter cannot be served at that time
    AUTHENTICATION = "authentication"
    RATE_LIMITED = "rate_limited"
    UPSTREAM = "upstream"
    TRANSPORT = "transport"


class ProviderError(Exception):
    """Provider call failed; carries an HTTP-like status and a classification."""

    def __init__(self, status: int, message: str, kind: ProviderErrorKind = ProviderErrorKind.UPSTREAM):
        super().__init__(f"Provider {status}: {message}")
        self.status = status
        self.message = message
        self.kind = kind


class ProviderClient(Protocol):
    """Anything that can serve point weather parameters at an instant or over a range."""

    def fetch_instant(
        self,
        location: Location,
        instant: dt.datetime,
        parameters: Sequence[str],
    ) -> Dict[str, float]:
        """Return one value per parameter (NaN when missing)."""
        ...

    def fetch_range(
        self,
        location: Location,
        start: dt.datetime,
        end: dt.datetime,
        timestep: str,
        parameters: Sequence[str],
    ) -> List[ParameterSeries]:
        """Return one ordered series per parameter."""
        ...


@dataclass
class CallableProviderClient(ProviderClient):
    """Wrap two callables so backends (or test fakes) can be swapped in."""

    instant: Callable[..., Dict[str, float]]
    range: Callable[..., List[ParameterSeries]]

    def fetch_instant(self, *args, **kwargs) -> Dict[str, float]:
        return self.instant(*args, **kwargs)

    def fetch_range(self, *args, **kwargs) -> List[ParameterSeries]:
        return self.range(*args, **kwargs)
