"""Service configuration pulled from environment variables via pydantic-settings."""
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")


class AlertThresholds(BaseModel):
    """Two-tier thresholds used by the alert engine (metric units)."""
    uv_high: float = 6.0
    uv_danger: float = 8.0
    heat_warning_c: float = 35.0
    heat_danger_c: float = 40.0
    cold_warning_c: float = 5.0
    cold_danger_c: float = -5.0
    rain_prob_warning_pct: float = 60.0
    rain_prob_danger_pct: float = 80.0
    rain_rate_warning_mm: float = 3.0
    rain_rate_danger_mm: float = 7.0
    gust_warning_kmh: float = 60.0
    gust_danger_kmh: float = 80.0
    humidex_warning: float = 35.0
    humidex_danger: float = 40.0
    air_quality_warning_idx: float = 3.0
    air_quality_danger_idx: float = 4.0


class FlagThresholds(BaseModel):
    """Per-hour predicates behind the panel's 0-1 probability flags."""
    very_hot_c: float = 35.0
    very_cold_c: float = 5.0
    extreme_rain_mm: float = 7.0
    dangerous_uv: float = 8.0
    very_wet_prob_pct: float = 60.0
    humid_prob_pct: float = 50.0
    humid_low_uv: float = 3.0
    humid_rh_pct: float = 70.0


class Settings(BaseSettings):
    """Environment-driven configuration for the SkyCheck dashboard service."""
    model_config = SettingsConfigDict(env_prefix="SKYCHECK_", env_nested_delimiter="__", extra="ignore")

    provider: str = "meteomatics"
    meteomatics_base_url: str = "https://api.meteomatics.com"
    meteomatics_username: str | None = None
    meteomatics_password: str | None = None
    request_timeout_seconds: float = 20.0

    default_timezone: str = "America/Mazatlan"
    max_forecast_days: float = 10.0
    max_air_quality_days: float = 4.0
    climatology_years_back: int = Field(default=5, ge=1, le=30)
    climatology_half_window_days: int = Field(default=3, ge=0, le=15)
    no_alerts_notice: Literal["always", "climatology", "never"] = "climatology"
    alert_thresholds: AlertThresholds = Field(default_factory=AlertThresholds)
    flag_thresholds: FlagThresholds = Field(default_factory=FlagThresholds)

    api_key: str | None = None
    api_key_redis_url: str | None = None
    api_key_redis_set: str = "api_keys"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173", "http://localhost:3001"])

    nominatim_base_url: str = "https://nominatim.openstreetmap.org"
    nominatim_user_agent: str = "SkyCheck/1.0 (+https://example.com/contact)"

    @field_validator("meteomatics_base_url", "nominatim_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4, exclude={'meteomatics_password'})}")
