"""
Configuration management for Frame Tracker.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Application
    app_name: str = Field(default="Frame Tracker")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_workers: int = Field(default=1)

    # Database
    database_url: str = Field(default="sqlite:///./frame_tracker.db")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    # Workflow
    system_actor_id: str = Field(
        default="system",
        description="Actor id accepted for automated transitions without a user row.",
    )
    strict_pipeline: bool = Field(
        default=False,
        description="Reject transitions that skip pipeline stages.",
    )

    # Real-time
    websocket_queue_size: int = Field(default=100, ge=1)

    # Mystery intake
    mystery_customer_email: str = Field(default="mystery@shop.local")
    mystery_customer_name: str = Field(default="Mystery Customer")
    mystery_due_days: int = Field(default=60, ge=1)

    # Workload risk thresholds
    overdue_risk_medium_pct: float = Field(default=10.0)
    overdue_risk_high_pct: float = Field(default=20.0)
    overdue_critical_count: int = Field(default=3)
    urgent_high_count: int = Field(default=5)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
