"""Resolve a requested target time into a UTC instant and its local-day window."""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from skycheck.domain import InvalidInputError

UTC = dt.timezone.utc
_END_OF_DAY = dt.time(23, 59, 59, 999000)


@dataclass(frozen=True)
class LocalDayWindow:
    """UTC instants for 00:00:00.000 and 23:59:59.999 of one local calendar day."""
    start: dt.datetime
    end: dt.datetime
    local_date: dt.date


@dataclass(frozen=True)
class ResolvedTarget:
    """Absolute target instant plus the local day containing it."""
    instant: dt.datetime
    window: LocalDayWindow
    timezone: str

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def load_zone(tz_name: str) -> ZoneInfo:
    """Return the named zone or raise InvalidInputError."""
    if not tz_name:
        raise InvalidInputError("Time zone is required")
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidInputError(f"Invalid timezone: {tz_name}") from exc


def parse_target(target: str) -> dt.datetime:
    """Parse an ISO-8601 string; the result is naive when no offset was given."""
    text = target.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return dt.datetime.fromisoformat(text)
    except ValueError as exc:
        raise InvalidInputError(f"Unparseable target time: {target!r}") from exc


def local_day_window(instant: dt.datetime, tz: ZoneInfo) -> LocalDayWindow:
    """Window of the calendar day that `instant` falls on when seen in `tz`."""
    try:
        local_date = instant.astimezone(tz).date()
        start = dt.datetime.combine(local_date, dt.time(0, 0), tzinfo=tz).astimezone(UTC)
        end = dt.datetime.combine(local_date, _END_OF_DAY, tzinfo=tz).astimezone(UTC)
    except (OverflowError, ValueError) as exc:
        raise InvalidInputError(f"Target time out of range: {instant.isoformat()}") from exc
    return LocalDayWindow(start=start, end=end, local_date=local_date)


def resolve_target(target: str | None, timezone: str, *, now: dt.datetime | None = None) -> ResolvedTarget:
    """
    Turn a target string + zone name into an absolute instant and local-day window.

    Strings with an explicit offset are absolute and the zone does not alter
    them. Naive strings (or no target, meaning "now") are wall-clock time in
    `timezone`.
    """
    tz = load_zone(timezone)

    if target is None or not target.strip():
        instant = (now or dt.datetime.now(UTC)).astimezone(UTC)
    else:
        parsed = parse_target(target)
        if parsed.tzinfo is None or parsed.utcoffset() is None:
            parsed = parsed.replace(tzinfo=tz)
        try:
            instant = parsed.astimezone(UTC)
        except (OverflowError, ValueError) as exc:
            raise InvalidInputError(f"Target time out of range: {target!r}") from exc

    return ResolvedTarget(instant=instant, window=local_day_window(instant, tz), timezone=timezone)


def local_day_instants(window: LocalDayWindow) -> List[dt.datetime]:
    """Hourly instants from window start through window end (23, 24 or 25 of them)."""
    step = dt.timedelta(hours=1)
    hours = int((window.end - window.start) // step) + 1
    # offsets stay within [start, end]
    return [window.start + i * step for i in range(hours)]


def format_local_label(instant: dt.datetime, tz: ZoneInfo) -> str:
    """'HH:MM' label of an instant in the given zone."""
    return instant.astimezone(tz).strftime("%H:%M")


def format_local_date(instant: dt.datetime, tz: ZoneInfo) -> str:
    """'Oct 18, 2026' style date of an instant in the given zone."""
    local = instant.astimezone(tz)
    return f"{local:%b} {local.day}, {local.year}"
