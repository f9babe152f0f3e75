from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class PortalSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="forbid")

    database_url: str
    log_level: str = "info"

    # Auth
    jwt_secret: str = "dev-secret"
    token_ttl_minutes: int = 12 * 60

    # Event scheduling forms are entered in this zone unless the request names one.
    default_timezone: str = "America/Chicago"

    # Leads table
    default_page_size: int = 20
    realtime_debounce_ms: int = 500

    cors_origins: list[str] = ["http://localhost:3000"]
    otel_enabled: bool = True


SETTINGS = PortalSettings()
