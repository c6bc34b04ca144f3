"""Assemble the dashboard result: time resolution, horizon, data, panel, alerts."""
from __future__ import annotations

import contextvars
import datetime as dt
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Sequence, Tuple

from skycheck import config
from skycheck.alerts import AlertInputs, compute_alerts
from skycheck.climatology import CLIMATOLOGY_PARAMS, ClimatologyBuilder
from skycheck.data_sources.base import ProviderClient, ProviderError, ProviderErrorKind
from skycheck.domain import (
    AirQuality,
    DashboardQuery,
    DashboardResult,
    LocationOut,
    Mode,
    Panel,
    ResultMeta,
    Wind,
)
from skycheck.horizon import HorizonDecision, classify_horizon
from skycheck.metrics import (
    AIR_QUALITY_COMPONENTS,
    HOURLY_PARAMS,
    INSTANT_PARAMS,
    PRECIP_1H,
    PRECIP_24H,
    REL_HUMIDITY,
    T_2M,
    UV,
    WIND_DIR,
    WIND_GUST,
    WIND_SPEED,
    build_air_quality,
    build_hour_points,
    cardinal,
    compute_flags,
    ms_to_kmh,
    uv_level,
)
from skycheck.series import MISSING, SeriesIndex, finite_or_none, round_half_up
from skycheck.time_resolver import ResolvedTarget, format_local_date, resolve_target
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="panel")

HOURLY_TIMESTEP = "PT1H"


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class PanelAssembler:
    """
    Orchestrates one dashboard request.

    Live modes (forecast/history) issue an instant query and an hourly range
    query for the local day in parallel; the instant query is retried once
    without air-quality parameters when the provider reports them unavailable.
    Climatology mode replaces both with ClimatologyBuilder output. Alerts are
    computed on whichever panel/hourly pair was produced.
    """

    def __init__(
        self,
        provider: ProviderClient,
        settings: config.Settings | None = None,
        *,
        clock: Callable[[], dt.datetime] = _utc_now,
    ):
        self.provider = provider
        self.settings = settings or config.settings
        self.clock = clock

    def assemble(self, query: DashboardQuery) -> DashboardResult:
        now = self.clock()
        tz_name = query.timezone or self.settings.default_timezone
        resolved = resolve_target(query.target, tz_name, now=now)
        decision = classify_horizon(
            resolved.instant,
            now,
            max_forecast_days=self.settings.max_forecast_days,
            max_air_quality_days=self.settings.max_air_quality_days,
        )
        logger.info(
            "Assembling dashboard: target=%s tz=%s mode=%s horizon_days=%.2f",
            resolved.instant.isoformat(),
            tz_name,
            decision.mode.value,
            decision.horizon_days,
        )

        if decision.mode == Mode.CLIMATOLOGY:
            return self._assemble_climatology(query, resolved, decision, now)
        return self._assemble_live(query, resolved, decision, now)

    # -- live (forecast / history) -------------------------------------------------

    def _fetch_instant(self, query: DashboardQuery, resolved: ResolvedTarget,
                       include_air_quality: bool) -> Tuple[Dict[str, float], List[str], List[str]]:
        """Instant values, the parameters they came from, and notes about degradation."""
        params = list(INSTANT_PARAMS)
        if include_air_quality:
            params += list(AIR_QUALITY_COMPONENTS.values())
        try:
            return self.provider.fetch_instant(query.location, resolved.instant, params), params, []
        except ProviderError as exc:
            if not include_air_quality or exc.kind != ProviderErrorKind.PARAMETER_UNAVAILABLE:
                raise
            logger.warning("Air-quality parameters unavailable at target; retrying without them: %s", exc.message)

        params = list(INSTANT_PARAMS)
        values = self.provider.fetch_instant(query.location, resolved.instant, params)
        return values, params, ["Air quality unavailable from the provider at this time."]

    def _assemble_live(self, query: DashboardQuery, resolved: ResolvedTarget,
                       decision: HorizonDecision, now: dt.datetime) -> DashboardResult:
        window = resolved.window
        with ThreadPoolExecutor(max_workers=1) as pool:
            hourly_future = pool.submit(
                contextvars.copy_context().run,
                self.provider.fetch_range,
                query.location,
                window.start,
                window.end,
                HOURLY_TIMESTEP,
                HOURLY_PARAMS,
            )
            instant, instant_params, notes = self._fetch_instant(query, resolved, decision.include_air_quality)
            hourly_series = hourly_future.result()

        if not decision.include_air_quality:
            notes.append("Air quality not requested beyond the provider's air-quality horizon.")

        index = SeriesIndex.build(hourly_series)
        tz = resolved.tzinfo
        hours = build_hour_points(index, tz)

        humidity = instant.get(REL_HUMIDITY, MISSING)
        wind_dir = instant.get(WIND_DIR, MISSING)
        gust_kmh = ms_to_kmh(instant.get(WIND_GUST, MISSING))
        uv_now = index.nearest(UV, resolved.instant)

        panel = Panel(
            temp_now_c=finite_or_none(index.nearest(T_2M, resolved.instant)),
            hi_c=finite_or_none(index.max(T_2M)),
            lo_c=finite_or_none(index.min(T_2M)),
            precip_last_1h_mm=finite_or_none(index.exact_or_nearest_before(PRECIP_1H, resolved.instant)),
            precip_last_24h_mm=finite_or_none(instant.get(PRECIP_24H, MISSING)),
            humidity_pct=finite_or_none(humidity),
            uv_index=finite_or_none(uv_now),
            uv_level=uv_level(uv_now),
            wind=Wind(
                speed_kmh=finite_or_none(ms_to_kmh(instant.get(WIND_SPEED, MISSING))),
                gust_kmh=finite_or_none(gust_kmh),
                direction_deg=finite_or_none(wind_dir),
                direction_cardinal=cardinal(wind_dir),
            ),
            flags=compute_flags(index, hours, humidity, self.settings.flag_thresholds),
        )

        aq_requested = any(p in instant_params for p in AIR_QUALITY_COMPONENTS.values())
        air_quality = build_air_quality(instant) if aq_requested else AirQuality()

        alerts = compute_alerts(
            AlertInputs(
                hi_c=panel.hi_c,
                lo_c=panel.lo_c,
                temp_now_c=panel.temp_now_c,
                humidity_pct=panel.humidity_pct,
                gust_kmh=panel.wind.gust_kmh,
                air_quality_idx=air_quality.overall_idx,
            ),
            hours,
            self.settings.alert_thresholds,
            no_alert_label=self._no_alert_label(decision.mode, resolved),
        )
        logger.info("Computed live dashboard: hours=%d alerts=%d", len(hours), len(alerts))

        return self._result(
            query, resolved, decision, now,
            panel=panel,
            hourly=hours,
            air_quality=air_quality,
            alerts=alerts,
            params={"series": list(HOURLY_PARAMS), "instant": instant_params},
            notes=notes,
        )

    # -- climatology -----------------------------------------------------------------

    def _assemble_climatology(self, query: DashboardQuery, resolved: ResolvedTarget,
                              decision: HorizonDecision, now: dt.datetime) -> DashboardResult:
        builder = ClimatologyBuilder(
            self.provider,
            years_back=self.settings.climatology_years_back,
            half_window_days=self.settings.climatology_half_window_days,
            flag_thresholds=self.settings.flag_thresholds,
        )
        outcome = builder.build(query.location, resolved)
        panel = outcome.panel

        alerts = compute_alerts(
            AlertInputs(
                hi_c=panel.hi_c,
                lo_c=panel.lo_c,
                temp_now_c=panel.temp_now_c,
                humidity_pct=panel.humidity_pct,
                gust_kmh=panel.wind.gust_kmh,
            ),
            outcome.hourly,
            self.settings.alert_thresholds,
            no_alert_label=self._no_alert_label(decision.mode, resolved),
        )
        logger.info("Computed climatology dashboard: years=%s alerts=%d", outcome.years, len(alerts))

        notes = [
            f"Climatology from {len(outcome.years)} prior years "
            f"(+/- {self.settings.climatology_half_window_days} days around the date).",
            "Values are medians/percentiles of past observations, not an hourly forecast.",
        ]
        return self._result(
            query, resolved, decision, now,
            panel=panel,
            hourly=outcome.hourly,
            air_quality=AirQuality(),
            alerts=alerts,
            params={"climatology": list(CLIMATOLOGY_PARAMS)},
            notes=notes,
        )

    # -- shared ----------------------------------------------------------------------

    def _no_alert_label(self, mode: Mode, resolved: ResolvedTarget) -> str | None:
        notice = self.settings.no_alerts_notice
        if notice == "always" or (notice == "climatology" and mode == Mode.CLIMATOLOGY):
            return format_local_date(resolved.instant, resolved.tzinfo)
        return None

    def _result(self, query: DashboardQuery, resolved: ResolvedTarget, decision: HorizonDecision,
                now: dt.datetime, *, panel: Panel, hourly, air_quality: AirQuality, alerts,
                params: Dict[str, Sequence[str]], notes: List[str]) -> DashboardResult:
        return DashboardResult(
            mode=decision.mode,
            location=LocationOut(lat=query.location.lat, lon=query.location.lon),
            target_utc=resolved.instant,
            timezone=resolved.timezone,
            local_date=format_local_date(resolved.instant, resolved.tzinfo),
            panel=panel,
            hourly=hourly,
            air_quality=air_quality,
            alerts=alerts,
            meta=ResultMeta(
                mode=decision.mode,
                horizon_days=round_half_up(decision.horizon_days, 1),
                generated_at=now,
                source=self.settings.provider,
                params={k: list(v) for k, v in params.items()},
                notes=notes,
            ),
        )
