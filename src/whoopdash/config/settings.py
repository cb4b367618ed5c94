"""Configuration management for the WHOOP dashboard using Pydantic Settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class WhoopSettings(BaseSettings):
    """Whoop API OAuth settings.

    The upstream host, version prefix and endpoint paths are configuration:
    Whoop has moved them more than once.
    """

    model_config = SettingsConfigDict(env_prefix="WHOOP_", env_file=".env", extra="ignore")

    client_id: str = ""
    client_secret: SecretStr = SecretStr("")
    redirect_uri: str = "http://localhost:3000/callback"

    # Bootstrap credentials, only used while no token file exists
    access_token: SecretStr = SecretStr("")
    refresh_token: SecretStr = SecretStr("")

    auth_url: str = "https://api.prod.whoop.com/oauth/oauth2/auth"
    token_url: str = "https://api.prod.whoop.com/oauth/oauth2/token"
    api_base_url: str = "https://api.prod.whoop.com/developer/v1"
    scopes: str = "read:recovery read:cycles read:sleep read:workout read:profile offline"

    profile_path: str = "/user/profile/basic"
    cycle_path: str = "/cycle"
    recovery_path: str = "/cycle/{cycle_id}/recovery"
    sleep_path: str = "/activity/sleep"
    workout_path: str = "/activity/workout"


class DashboardSettings(BaseSettings):
    """Local file locations and fetch tuning."""

    model_config = SettingsConfigDict(env_prefix="DASHBOARD_", env_file=".env", extra="ignore")

    token_file: Path = Path("config/whoop-token.json")
    snapshot_file: Path = Path("data/all-data.json")

    refresh_skew_seconds: int = 300
    request_timeout_seconds: float = 10.0
    record_limit: int = 14
    lookback_days: int = 14
    sync_interval_minutes: int = 60


class Settings(BaseSettings):
    """Main dashboard settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["console", "json"] = "console"

    whoop: WhoopSettings = Field(default_factory=WhoopSettings)
    dashboard: DashboardSettings = Field(default_factory=DashboardSettings)


# Global settings instance
settings = Settings()
