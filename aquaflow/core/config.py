"""Application configuration using pydantic-settings.

All environment variables should be accessed through the settings object
rather than using os.getenv() directly.
"""

from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LOCATIONS_FILE = str(Path(__file__).resolve().parent.parent / "data" / "locations.json")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///./data/aquaflow.db"

    # Security
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 240  # 4 hours

    # CORS - comma-separated origins or "*" for development only
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"

    # Rate limiting
    rate_limit_enabled: bool = True

    # ==========================================================================
    # Business rules
    # ==========================================================================
    default_bonus_amount: int = 5000
    bonus_currency_prefix: str = "Rs."

    # Branch stock below this quantity is picked up by the auto-order
    low_stock_reorder_threshold: int = 10
    low_stock_min_reorder_quantity: int = 20
    auto_order_lead_days: int = 7

    # Recycling bins raise the factory notification at this fill percentage
    bin_notification_threshold: float = 80.0
    reject_reverses_bin_level: bool = True

    # Factory main waste bin, fed by collected branch waste
    factory_bin_capacity: float = 1000.0

    # Branch reports cover this many days when no date range is given
    report_default_days: int = 30

    # Location directory (name -> coordinates) used by emergency helpers
    locations_file: Optional[str] = None
    route_road_factor: float = 1.3
    route_average_speed_kmh: float = 40.0

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate settings for production safety."""
        import warnings

        if self.secret_key == "change-me-in-production" or len(self.secret_key) < 32:
            if not self.debug:
                raise ValueError(
                    "FATAL: Cannot start in production mode without a secure SECRET_KEY "
                    "(minimum 32 characters)."
                )
            warnings.warn(
                "Using a default or short SECRET_KEY is insecure! Set SECRET_KEY environment variable.",
                UserWarning,
                stacklevel=2,
            )
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def resolved_locations_file(self) -> str:
        return self.locations_file or DEFAULT_LOCATIONS_FILE


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
