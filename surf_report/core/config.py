"""Application settings loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "surf-report"
    app_version: str = "0.1.0"
    api_prefix: str = "/api"
    # No default: a missing connection string is a fatal configuration error.
    database_url: str | None = None
    default_location: str = "folly-beach"
    spots_config_path: str | None = None
    report_timezone: str = "America/New_York"
    report_max_attempts: int = 60
    report_retry_delay_seconds: float = 60.0
    report_exhaustion_policy: str = "fail"  # fail|degrade
    rating_strategy: str = "offshore"  # offshore|additive
    run_deadline_seconds: float | None = None
    upstream_timeout_seconds: float = 12.0
    http_user_agent: str = "surf-report/0.1.0 (ops@surf-report.local)"
    ndbc_base_url: str = "https://www.ndbc.noaa.gov/data/realtime2"
    nws_base_url: str = "https://api.weather.gov"
    tides_api_url: str = "https://api.tidesandcurrents.noaa.gov/api/prod/datagetter"
    tide_days_ahead: int = 6
    retention_days: int = 7

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()

__all__ = ["settings", "Settings"]
