"""
Application settings and configuration management using Pydantic Settings.
"""
import re
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


HH_MM_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application Settings
    app_name: str = Field(default="Reservation Timegrid", description="Application name")
    app_env: str = Field(default="development", description="Environment (development, staging, production)")
    log_level: str = Field(default="INFO", description="Logging level")

    # Restaurant Configuration
    restaurant_timezone: str = Field(default="Europe/Madrid", description="Restaurant timezone")

    # Remote procedure layer
    rpc_base_url: str = Field(default="http://localhost:54321", description="Base URL of the data/RPC backend")
    rpc_api_key: str = Field(default="", description="API key sent as apikey and bearer token")
    rpc_timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout for every remote call")
    availability_rpc_name: str = Field(
        default="get_available_time_slots_with_zones",
        description="Remote function returning slot capacity with zone metadata"
    )

    # Time grid
    slot_interval_minutes: int = Field(default=15, description="Cadence of the staff timeline grid")
    picker_interval_minutes: int = Field(default=30, description="Cadence of the guest slot picker")
    default_duration_minutes: int = Field(default=90, ge=1, description="Fallback reservation duration")
    double_service_lookahead_minutes: int = Field(
        default=180, ge=0, description="Window after a seating in which a second seating flags a turn"
    )
    timeline_window_start: str = Field(default="12:00", description="First visible minute of the timeline (HH:MM)")
    timeline_window_end: str = Field(default="23:30", description="Last visible minute of the timeline (HH:MM)")

    # Refresh
    refresh_debounce_seconds: float = Field(
        default=0.5, ge=0, description="Quiet period before a push notification triggers a reload"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed_levels:
            raise ValueError(f"log_level must be one of {allowed_levels}")
        return v_upper

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate environment is one of the allowed values."""
        allowed_envs = ["development", "staging", "production"]
        v_lower = v.lower()
        if v_lower not in allowed_envs:
            raise ValueError(f"app_env must be one of {allowed_envs}")
        return v_lower

    @field_validator("slot_interval_minutes", "picker_interval_minutes")
    @classmethod
    def validate_interval(cls, v: int) -> int:
        """Intervals must divide an hour evenly so labels stay on the grid."""
        if v <= 0 or 60 % v != 0:
            raise ValueError("interval must be a positive divisor of 60")
        return v

    @field_validator("timeline_window_start", "timeline_window_end")
    @classmethod
    def validate_window_bound(cls, v: str) -> str:
        """Validate timeline bounds are zero-padded HH:MM labels."""
        v = v.strip()
        if not HH_MM_PATTERN.match(v):
            raise ValueError("timeline window bounds must use HH:MM")
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"


# Global settings instance
settings = Settings()
