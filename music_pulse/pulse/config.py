"""Configuration for the pulse engine."""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PulseConfig(BaseSettings):
    """Growth thresholds and refresh fan-out limits."""

    model_config = SettingsConfigDict(
        env_prefix="PULSE_",
        case_sensitive=False,
        extra="ignore",
    )

    growth_window_days: int = Field(
        default=7,
        ge=1,
        le=90,
        description="Trailing window for growth computation",
    )
    rising_threshold: float = Field(
        default=15.0,
        description="Growth percentage above which a track is rising",
    )
    declining_threshold: float = Field(
        default=-5.0,
        description="Growth percentage below which a track is declining",
    )
    refresh_concurrency: int = Field(
        default=4,
        ge=1,
        le=50,
        description="Maximum concurrent provider calls per refresh cycle",
    )
    circuit_failure_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive provider failures before the circuit opens",
    )
    circuit_recovery_seconds: float = Field(
        default=60.0,
        ge=0.0,
        description="Seconds before a recovery probe is allowed through",
    )

    @model_validator(mode="after")
    def _thresholds_ordered(self) -> "PulseConfig":
        if self.declining_threshold > self.rising_threshold:
            raise ValueError("declining_threshold must not exceed rising_threshold")
        return self
