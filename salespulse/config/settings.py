"""
SalesPulse
Centralized Configuration Management

Pydantic settings with environment variable support for the sync layer,
the analytics engine and the services they talk to.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL configuration for the remote record store"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="salespulse", alias="database", description="Database name")
    user: str = Field(default="salespulse", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, description="Full async URL (overrides host/port)")

    @property
    def async_url(self) -> str:
        """Async database URL for asyncpg"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class RedisSettings(BaseSettings):
    """Redis configuration for the local snapshot cache"""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: Optional[SecretStr] = Field(default=None, description="Redis password")
    db: int = Field(default=0, description="Redis database number")
    max_connections: int = Field(default=50, description="Max connections")
    socket_timeout: int = Field(default=5, description="Socket timeout in seconds")
    decode_responses: bool = Field(default=True, description="Decode responses to strings")
    url: Optional[str] = Field(default=None, alias="REDIS_URL", description="Redis URL (overrides host/port)")

    def get_url(self) -> str:
        """Redis connection URL - uses REDIS_URL if set, otherwise builds from host/port"""
        if self.url:
            return self.url
        if self.password:
            return f"redis://:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


class SyncSettings(BaseSettings):
    """Cache reconciliation configuration"""

    model_config = SettingsConfigDict(env_prefix="SYNC_")

    page_size: int = Field(default=1000, gt=0, description="Records per remote page")
    cache_backend: str = Field(default="redis", description="Snapshot cache backend: redis or memory")
    cache_namespace: str = Field(default="salespulse:snapshots", description="Snapshot key namespace")

    @field_validator("cache_backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate cache backend value"""
        allowed = ["redis", "memory"]
        if v.lower() not in allowed:
            raise ValueError(f"Cache backend must be one of: {allowed}")
        return v.lower()


class AnalyticsSettings(BaseSettings):
    """Thresholds and display options for the analytics engine"""

    model_config = SettingsConfigDict(env_prefix="ANALYTICS_")

    loyal_min_bills: int = Field(default=2, description="Loyal when in-window bills exceed this")
    high_spender_percentile: float = Field(default=0.8, ge=0, le=1, description="High spender cut-off")
    spend_range_lower: float = Field(default=0.25, ge=0, le=1, description="Typical spend lower percentile")
    spend_range_upper: float = Field(default=0.75, ge=0, le=1, description="Typical spend upper percentile")
    peak_window_hours: int = Field(default=2, ge=1, le=24, description="Length of the peak window")
    top_n: int = Field(default=5, ge=1, description="Items listed in top-N rankings")
    newest_members: int = Field(default=10, ge=1, description="Newest customers listed")
    peak_popular_items: int = Field(default=4, ge=1, description="Items listed for the peak window")
    weekend_days: List[int] = Field(default=[5, 6], description="Weekday numbers counted as weekend")
    currency_prefix: str = Field(default="Rp", description="Currency prefix for display values")
    flat_on_equal: bool = Field(default=False, description="Report equal periods as flat instead of down")


class MonitoringSettings(BaseSettings):
    """Logging configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="salespulse", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()


settings = get_settings()
