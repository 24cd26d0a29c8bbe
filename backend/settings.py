"""Configuration settings for the Steam alert service."""
from enum import Enum
from pydantic_settings import BaseSettings, SettingsConfigDict


class LookbackPolicy(str, Enum):
    """How a change condition picks its baseline when history is sparse"""
    OLDEST_AVAILABLE = "oldest_available"
    STRICT = "strict"


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # API Server
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    log_level: str = "INFO"

    # Buffers
    history_size: int = 500          # alert messages kept in memory
    metric_history_size: int = 1440  # points per app per metric

    # Evaluation
    group_window_minutes: int = 5
    lookback_policy: LookbackPolicy = LookbackPolicy.OLDEST_AVAILABLE
    dynamic_priority: bool = False

    # Rendering
    display_timezone: str = "UTC"
    alert_footer_text: str = "SteamPulse Alert"
    action_base_path: str = "/games"

    model_config = SettingsConfigDict(
        env_prefix="STEAM_ALERTS_",
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
