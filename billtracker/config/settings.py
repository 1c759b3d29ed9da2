"""
Configuration Management for Bill Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here and validated at startup.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from billtracker.models.bill import BulkMode


class StorageSettings(BaseSettings):
    """Key-value storage backend configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BILLTRACKER_STORAGE_",
        extra="ignore"
    )

    backend: str = Field(
        default="json_file",
        description="Storage backend: 'memory' or 'json_file'"
    )
    data_path: str = Field(
        default="data/billtracker.json",
        description="File holding the key-value map for the json_file backend"
    )

    # Keys within the backend
    bills_key: str = Field(
        default="billtracker_bills",
        min_length=1,
        description="Key holding the serialized bill collection"
    )
    audit_key: str = Field(
        default="billtracker_audit",
        min_length=1,
        description="Key holding the persisted audit trail"
    )

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        allowed = {"memory", "json_file"}
        if v.lower() not in allowed:
            raise ValueError(f"Unsupported storage backend: {v}. Allowed: {allowed}")
        return v.lower()


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
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode (forces DEBUG logging)"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Standard library log level name"
    )
    json_logs: bool = Field(
        default=True,
        description="Render logs as JSON (False renders for the console)"
    )

    # Multi-item request contracts
    bulk_mode: BulkMode = Field(
        default=BulkMode.ATOMIC,
        description="Failure contract for bulk operations"
    )
    import_mode: BulkMode = Field(
        default=BulkMode.ATOMIC,
        description="Failure contract for JSON imports"
    )

    # Recurring generation
    default_recurring_count: int = Field(
        default=12,
        ge=1,
        le=120,
        description="Occurrences (template included) generated when no count is given"
    )

    # Validation thresholds
    max_bill_amount: float = Field(
        default=1000000.0,
        gt=0,
        description="Amounts above this raise a non-blocking warning"
    )

    # Audit trail
    persist_audit: bool = Field(
        default=True,
        description="Also persist audit events to the storage backend"
    )
    audit_max_events: int = Field(
        default=1000,
        ge=10,
        description="Newest audit events kept in storage"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Unsupported log level: {v}. Allowed: {allowed}")
        return v.upper()

    @property
    def effective_log_level(self) -> str:
        """Log level actually applied, DEBUG whenever debug mode is on."""
        return "DEBUG" if self.debug_mode else self.log_level


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

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

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


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error for the ones that failed.
    Useful for startup checks.
    """
    results: dict[str, object] = {}

    settings = get_settings()

    for name in ("storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
