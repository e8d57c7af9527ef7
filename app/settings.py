from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    db_path: Path = Field(
        default=Path("data/disaster-alerts.db"), validation_alias="DB_PATH"
    )
    user_agent: str = Field(
        default="disaster-alerts/0.1", validation_alias="USER_AGENT"
    )
    http_timeout_seconds: float = Field(
        default=10.0, validation_alias="HTTP_TIMEOUT_SECONDS"
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    usgs_feed_url: str = Field(
        default="https://earthquake.usgs.gov/earthquakes/feed/v1.0/summary/all_day.geojson",
        validation_alias="USGS_FEED_URL",
    )
    min_earthquake_magnitude: float = Field(
        default=2.5, validation_alias="MIN_EARTHQUAKE_MAGNITUDE"
    )
    usgs_max_attempts: int = Field(default=3, validation_alias="USGS_MAX_ATTEMPTS")
    usgs_retry_delay_seconds: float = Field(
        default=1.0, validation_alias="USGS_RETRY_DELAY_SECONDS"
    )

    gdacs_feed_url: str = Field(
        default="https://www.gdacs.org/xml/rss.xml", validation_alias="GDACS_FEED_URL"
    )
    firms_api_key: str | None = Field(default=None, validation_alias="FIRMS_API_KEY")

    geocoder_url: str = Field(
        default="https://nominatim.openstreetmap.org/reverse",
        validation_alias="GEOCODER_URL",
    )
    geocode_min_interval_seconds: float = Field(
        default=1.0, validation_alias="GEOCODE_MIN_INTERVAL_SECONDS"
    )
    geocode_cache_ttl_seconds: float = Field(
        default=3600.0, validation_alias="GEOCODE_CACHE_TTL_SECONDS"
    )

    sync_interval_seconds: float = Field(
        default=21600.0, validation_alias="SYNC_INTERVAL_SECONDS"
    )
    alert_interval_seconds: float = Field(
        default=600.0, validation_alias="ALERT_INTERVAL_SECONDS"
    )
    alert_initial_delay_seconds: float = Field(
        default=5.0, validation_alias="ALERT_INITIAL_DELAY_SECONDS"
    )
    scheduler_enabled: bool = Field(default=True, validation_alias="SCHEDULER_ENABLED")

    topic_prefix: str = Field(default="disaster-alerts", validation_alias="TOPIC_PREFIX")
