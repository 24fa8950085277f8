"""
Configuration Management for One Stop Finance

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here so every external dependency
(AI model, database, admission control) is visible in one place and
validated at startup.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeminiSettings(BaseSettings):
    """Gemini model configuration (used for receipt and prompt extraction)."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-2.0-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class DatabaseSettings(BaseSettings):
    """Relational store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        default="sqlite:///onestop.db",
        description="SQLAlchemy database URL"
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements"
    )
    sqlite_timeout: float = Field(
        default=15.0,
        gt=0,
        description="Seconds a SQLite writer waits for a lock before failing"
    )


class AdmissionSettings(BaseSettings):
    """Token bucket limits for write requests."""

    model_config = SettingsConfigDict(
        env_prefix="ADMISSION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    capacity: int = Field(
        default=10,
        ge=1,
        description="Maximum tokens a subject can hold"
    )
    refill_rate: int = Field(
        default=10,
        ge=1,
        description="Tokens added every interval"
    )
    interval_seconds: int = Field(
        default=3600,
        ge=1,
        description="Refill interval in seconds"
    )
    blocked_subjects: str = Field(
        default="",
        description="Comma-separated subject ids that are always denied"
    )

    @property
    def blocked_subjects_list(self) -> list[str]:
        """Get blocked subjects as a list."""
        return [s.strip() for s in self.blocked_subjects.split(",") if s.strip()]


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

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Receipt upload limits
    max_upload_size_mb: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum receipt image size in MB"
    )
    supported_image_formats: str = Field(
        default="jpeg,png,webp,heic",
        description="Comma-separated list of supported image subtypes"
    )

    future_date_tolerance_days: int = Field(
        default=1,
        ge=0,
        description="How many days in the future a receipt date can be"
    )

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_image_formats.split(",")]

    @property
    def supported_mime_types(self) -> set[str]:
        return {f"image/{fmt}" for fmt in self.supported_formats_list}

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings. Sub-settings are loaded lazily so the
    application can run with partial configuration (e.g. no Gemini key
    for manual-entry only use).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @property
    def admission(self) -> AdmissionSettings:
        return AdmissionSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid} plus "<name>_error"
    entries describing what is missing. Useful for startup checks.
    """
    results: dict[str, object] = {}
    settings = get_settings()

    for name in ("gemini", "database", "admission", "app"):
        error: Optional[str] = None
        try:
            getattr(settings, name)
        except Exception as e:
            error = str(e)
        results[name] = error is None
        if error is not None:
            results[f"{name}_error"] = error

    return results
