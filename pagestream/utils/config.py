# ==============================================================================
# Application Configuration
# ==============================================================================
"""
Configuration management using pydantic-settings.

All configuration is loaded from environment variables, with support for
.env files via python-dotenv.
"""

from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file before any settings are instantiated
load_dotenv()


class PostgresSettings(BaseSettings):
    """PostgreSQL connection settings."""

    model_config = SettingsConfigDict(env_prefix="PG_")

    host: str = Field(default="localhost", description="PostgreSQL host")
    port: int = Field(default=5432, description="PostgreSQL port")
    user: str = Field(default="postgres", description="PostgreSQL username")
    password: str = Field(default="postgres", description="PostgreSQL password")
    database: str = Field(default="pagestream", description="Database name")
    schema_name: str = Field(default="pagestream", description="Schema name")
    sslmode: str = Field(default="prefer", description="SSL mode")

    @property
    def connection_string(self) -> str:
        """Build PostgreSQL connection string."""
        return (
            f"postgresql://{self.user}:{self.password}@"
            f"{self.host}:{self.port}/{self.database}?sslmode={self.sslmode}"
        )


class ValkeySettings(BaseSettings):
    """Valkey (Redis-compatible) connection settings for the cache layer."""

    model_config = SettingsConfigDict(env_prefix="VALKEY_")

    host: str = Field(default="localhost", description="Valkey host")
    port: int = Field(default=6379, description="Valkey port")
    password: Optional[str] = Field(default=None, description="Valkey password")
    db: int = Field(default=0, description="Valkey database number")
    ssl: bool = Field(default=False, description="Use SSL/TLS connection")
    socket_timeout: int = Field(default=5, description="Socket timeout in seconds")

    @property
    def url(self) -> str:
        """Build Valkey connection URL."""
        scheme = "rediss" if self.ssl else "redis"
        if self.password:
            return f"{scheme}://:{self.password}@{self.host}:{self.port}/{self.db}"
        return f"{scheme}://{self.host}:{self.port}/{self.db}"


class GeoSettings(BaseSettings):
    """Geolocation resolver settings.

    The remote tier is an HTTP lookup service with a hard request quota; the
    local tier reads an offline MaxMind GeoLite2 City database.
    """

    model_config = SettingsConfigDict(env_prefix="GEO_")

    remote_enabled: bool = Field(default=True, description="Enable the remote lookup tier")
    remote_url: str = Field(
        default="https://ipapi.co/{ip}/json/",
        description="Remote lookup URL template ({ip} is substituted)",
    )
    remote_timeout_seconds: float = Field(
        default=1.5, description="Timeout for a single remote lookup"
    )
    remote_rate_per_minute: int = Field(
        default=45, description="Remote lookups allowed per minute before falling through"
    )
    local_db_path: Optional[str] = Field(
        default="./GeoLite2-City.mmdb", description="Path to the GeoLite2 City database"
    )
    tier_cache_size: int = Field(
        default=50_000, description="Max positive results kept in memory per tier"
    )


class IngestSettings(BaseSettings):
    """Collection endpoint settings."""

    model_config = SettingsConfigDict(env_prefix="INGEST_")

    max_events_per_second: float = Field(
        default=500.0,
        description="Admission control rate for the collect path (0 disables)",
    )
    max_burst: Optional[int] = Field(
        default=None, description="Burst capacity for admission control"
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        extra="ignore",
    )

    # Nested settings
    postgres: PostgresSettings = Field(default_factory=PostgresSettings)
    valkey: ValkeySettings = Field(default_factory=ValkeySettings)
    geo: GeoSettings = Field(default_factory=GeoSettings)
    ingest: IngestSettings = Field(default_factory=IngestSettings)

    # General settings
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are loaded once and cached for subsequent calls.
    """
    return Settings()
