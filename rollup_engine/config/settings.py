"""
E-Commerce Rollup Engine
Centralized Configuration Management

Configuration is loaded with Pydantic settings from environment variables
(and an optional .env file), validated and cached for the process lifetime.
"""

from functools import lru_cache
from typing import Optional, List
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL configuration for the raw transactional store"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="ecommerce", alias="database", description="Database name")
    user: str = Field(default="ecommerce", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, alias="DATABASE_URL", description="Full async URL (overrides host/port)")
    scan_isolation_level: Optional[str] = Field(
        default=None,
        description="Isolation level for refresh scans, e.g. REPEATABLE READ",
    )

    @property
    def async_url(self) -> str:
        """Async database URL for asyncpg"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class RedisSettings(BaseSettings):
    """Redis configuration for snapshot persistence"""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: Optional[SecretStr] = Field(default=None, description="Redis password")
    db: int = Field(default=0, description="Redis database number")
    max_connections: int = Field(default=20, description="Max connections")
    socket_timeout: int = Field(default=5, description="Socket timeout in seconds")
    url: Optional[str] = Field(default=None, alias="REDIS_URL", description="Redis URL (overrides host/port)")

    def get_url(self) -> str:
        """Redis connection URL - uses REDIS_URL if set, otherwise builds from host/port"""
        if self.url:
            return self.url
        if self.password:
            return f"redis://:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


class RollupSettings(BaseSettings):
    """Rollup refresh and query configuration"""

    model_config = SettingsConfigDict(env_prefix="ROLLUP_")

    enabled: List[str] = Field(
        default=["daily_sales", "top_products", "user_engagement", "category_revenue"],
        description="Rollups registered with the engine, in refresh order",
    )
    refresh_timeout_seconds: Optional[float] = Field(
        default=300.0,
        description="Cancel a single rollup refresh after this many seconds",
    )
    default_page_size: int = Field(default=20, description="Default listing page size")
    max_page_size: int = Field(default=500, description="Largest page a listing may return")
    persist_snapshots: bool = Field(default=False, description="Persist swapped-in snapshots to Redis")
    restore_on_startup: bool = Field(default=True, description="Load persisted snapshots at startup")
    refresh_on_startup: bool = Field(default=False, description="Refresh all rollups at startup")
    dashboard_days: int = Field(default=30, description="Daily sales rows shown on the dashboard")
    dashboard_top_n: int = Field(default=10, description="Products and users shown on the dashboard")


class TriggerSettings(BaseSettings):
    """Scheduled refresh trigger configuration"""

    model_config = SettingsConfigDict(env_prefix="TRIGGER_")

    api_url: str = Field(default="http://localhost:8000/api/v1", description="Rollup API base URL")
    request_timeout_seconds: float = Field(default=600.0, description="HTTP timeout for a refresh call")


class SeedSettings(BaseSettings):
    """Synthetic raw data volumes for development seeding"""

    model_config = SettingsConfigDict(env_prefix="")

    users_count: int = Field(default=1000, alias="USERS_COUNT", description="Users to generate")
    products_count: int = Field(default=200, alias="PRODUCTS_COUNT", description="Products to generate")
    orders_per_user: int = Field(default=10, alias="ORDERS_PER_USER", description="Orders per user")
    activities_per_user: int = Field(default=50, alias="ACTIVITIES_PER_USER", description="Activities per user")
    batch_size: int = Field(default=1000, alias="SEED_BATCH_SIZE", description="Rows per insert statement")
    seed: int = Field(default=42, alias="SEED_RANDOM_SEED", description="Random seed")


class MonitoringSettings(BaseSettings):
    """Logging configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


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
    app_name: str = Field(default="ecommerce-rollups", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    rollups: RollupSettings = Field(default_factory=RollupSettings)
    trigger: TriggerSettings = Field(default_factory=TriggerSettings)
    seed: SeedSettings = Field(default_factory=SeedSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
