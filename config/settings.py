"""Pydantic settings for the reallocation planner."""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Morpho API
    morpho_api_url: str = Field(
        default="https://blue-api.morpho.org/graphql",
        description="Morpho GraphQL API URL",
    )
    api_rate_limit: int = Field(default=5000, ge=1, description="Requests allowed per rate window")
    api_rate_window: int = Field(default=300, ge=1, description="Rate window in seconds")
    request_timeout_seconds: int = Field(default=20, ge=1, le=300, description="HTTP request timeout")

    # Curated strategy targets
    targets_api_url: str = Field(
        default="https://chl9tekt72.execute-api.us-east-1.amazonaws.com/dev/targets",
        description="Strategy targets API URL",
    )

    # Reallocation thresholds
    reallocation_usd_threshold: Decimal = Field(
        default=Decimal("10000"),
        ge=0,
        description="Minimum USD value of a single market leg",
    )
    usd_flowcap_threshold: Decimal = Field(
        default=Decimal("50000"),
        ge=0,
        description="Flow caps below this USD value are reported as missing",
    )
    default_supply_target_utilization: int = Field(
        default=905 * 10**15,
        gt=0,
        le=10**18,
        description="WAD utilization above which shared liquidity is pulled in",
    )

    # Logging
    log_level: str = Field(default="WARNING", description="Root log level")

    @field_validator("reallocation_usd_threshold", "usd_flowcap_threshold", mode="before")
    @classmethod
    def parse_usd(cls, v):
        """Accept plain strings such as '10_000' or '$10000'."""
        if isinstance(v, str):
            return Decimal(v.replace("$", "").replace("_", "").replace(",", "").strip())
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def parse_log_level(cls, v):
        """Normalize log level name."""
        if isinstance(v, str):
            return v.strip().upper() or "WARNING"
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
