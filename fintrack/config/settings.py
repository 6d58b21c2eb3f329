"""
Configuration Management for fintrack

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FirebaseSettings(BaseSettings):
    """Firebase (Firestore + Authentication) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FIREBASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to the Firebase service account credentials JSON"
    )
    web_api_key: str = Field(
        ...,
        description="Web API key used for the Authentication REST API"
    )
    project_id: Optional[str] = Field(
        default=None,
        description="Firebase project ID (read from credentials when omitted)"
    )
    auth_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        le=120,
        description="Timeout for Authentication REST calls"
    )
    audit_collection: str = Field(
        default="audit",
        min_length=1,
        description="Per-user collection holding persisted audit events"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Firebase credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local structured logs"
    )

    # Operation list
    page_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Operations shown per history page"
    )
    recent_operations_limit: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Operations shown on the overview page"
    )

    # Statistics
    trend_days: int = Field(
        default=30,
        ge=1,
        le=366,
        description="Number of daily buckets in the trend chart"
    )
    balance_months: int = Field(
        default=12,
        ge=1,
        le=120,
        description="Number of monthly buckets in the balance chart"
    )
    week_starts_on: int = Field(
        default=6,
        ge=0,
        le=6,
        description="First day of the week (0=Monday ... 6=Sunday)"
    )

    # Display
    uncategorized_label: str = Field(
        default="Uncategorized",
        min_length=1,
        description="Label for operations without a (resolvable) category"
    )
    currency_symbol: str = Field(
        default="€",
        description="Currency symbol used when formatting amounts"
    )

    # Validation thresholds
    max_operation_amount: float = Field(
        default=1000000.0,
        gt=0,
        description="Amount above which an operation is flagged for review"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        ge=0,
        description="How many days in the future an operation date can be"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration:
    # the app runs offline when Firebase is not configured.

    @property
    def firebase(self) -> FirebaseSettings:
        return FirebaseSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.firebase
        results["firebase"] = True
    except Exception as e:
        results["firebase"] = False
        results["firebase_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
