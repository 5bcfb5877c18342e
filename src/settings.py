from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TrackingSettings(BaseSettings):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["text", "json"] = "text"

    # Geofenced checkpoint detection
    checkpoint_radius_m: float = Field(
        default=50.0,
        ge=5.0,
        le=500.0,
        description="Distance in meters at which a checkpoint is considered reached",
    )
    directions_refresh_distance_m: float = Field(
        default=100.0,
        ge=10.0,
        le=5000.0,
        description="Movement in meters since the last refresh before directions are re-fetched",
    )

    # Speed estimation
    speed_buffer_size: int = Field(default=20, ge=1, le=500)
    max_plausible_speed_kmh: float = Field(
        default=200.0,
        gt=0.0,
        le=500.0,
        description="Instantaneous speeds above this are treated as GPS jitter and discarded",
    )
    nominal_fix_interval_s: float = Field(
        default=5.0,
        gt=0.0,
        le=120.0,
        description="Assumed GPS cadence when fix timestamps are missing or not increasing",
    )
    use_elapsed_time: bool = Field(
        default=True,
        description="Derive speed from the real time between fixes instead of the nominal interval",
    )

    # Midway parent notification
    midway_band_low_pct: float = Field(default=45.0, ge=0.0, le=100.0)
    midway_band_high_pct: float = Field(default=55.0, ge=0.0, le=100.0)

    model_config = SettingsConfigDict(env_prefix="TRACKING_")

    @model_validator(mode="after")
    def validate_midway_band(self) -> "TrackingSettings":
        if self.midway_band_low_pct > self.midway_band_high_pct:
            raise ValueError(
                f"Midway band is empty: low {self.midway_band_low_pct} > "
                f"high {self.midway_band_high_pct}"
            )
        return self


class OSRMSettings(BaseSettings):
    base_url: str = "https://router.project-osrm.org"
    timeout: float = Field(default=5.0, gt=0.0, le=60.0)
    max_retries: int = Field(default=3, ge=1, le=10)
    retry_base_delay: float = Field(default=0.5, ge=0.0, le=5.0)
    retry_multiplier: float = Field(default=2.0, ge=1.0, le=5.0)

    model_config = SettingsConfigDict(env_prefix="OSRM_")

    @field_validator("base_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("OSRM base URL must start with http:// or https://")
        return v.rstrip("/")


class RedisSettings(BaseSettings):
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: str = ""
    ssl: bool = False

    model_config = SettingsConfigDict(env_prefix="REDIS_")


class SMSSettings(BaseSettings):
    """Parent SMS dispatch through a Twilio-compatible API."""

    account_sid: str = ""
    auth_token: str = ""
    from_number: str = ""
    api_base_url: str = "https://api.twilio.com"
    app_base_url: str = "http://localhost:5173"
    dev_mode: bool = Field(
        default=True,
        description="Log messages instead of sending them",
    )
    timeout: float = Field(default=10.0, gt=0.0, le=60.0)

    model_config = SettingsConfigDict(env_prefix="SMS_")

    @field_validator("api_base_url", "app_base_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_credentials_provided(self) -> "SMSSettings":
        if self.dev_mode:
            return self
        missing = []
        if not self.account_sid:
            missing.append("SMS_ACCOUNT_SID")
        if not self.auth_token:
            missing.append("SMS_AUTH_TOKEN")
        if not self.from_number:
            missing.append("SMS_FROM_NUMBER")
        if missing:
            raise ValueError(f"Required credentials not provided: {', '.join(missing)}")
        return self


class DatabaseSettings(BaseSettings):
    path: str = "./db/rides.db"

    model_config = SettingsConfigDict(env_prefix="DB_")


class Settings(BaseSettings):
    tracking: TrackingSettings = Field(default_factory=TrackingSettings)
    osrm: OSRMSettings = Field(default_factory=OSRMSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    sms: SMSSettings = Field(default_factory=SMSSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        case_sensitive=False,
    )


def get_settings() -> Settings:
    """Load and validate settings from environment variables."""
    return Settings()
