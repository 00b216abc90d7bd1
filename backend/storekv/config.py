"""
Configuration Management Module

Configures application parameters via environment variables or .env file.
The relational connection itself is resolved separately (see
storekv.db.config_resolver), these settings only cover how it is used.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application Configuration Class

    All configuration items can be overridden by environment variables, with names matching fields (uppercase).
    """

    # Application Config
    APP_NAME: str = "Store KV"
    DEBUG: bool = False

    # Storage Paths
    # Primary connection config file (written by the admin UI)
    PG_CONFIG_FILE: str = "data/pg-config.json"
    # Backup copy of the connection config, survives volume resets of the primary
    PG_BACKUP_FILE: str = "data/pg-env.json"
    # Flat-file store used when no relational config is resolvable
    STORE_FILE: str = "data/store.json"

    # Connection Pool Config
    # Max connections held by the pool
    POOL_MAX_SIZE: int = 10
    # Connection acquisition / connect timeout (seconds)
    POOL_TIMEOUT_SECONDS: int = 5
    # Max connection age (seconds), older connections are replaced on checkout.
    # Also bounds how long an idle connection can linger.
    POOL_RECYCLE_SECONDS: int = 600

    # Read Cache Config (seconds)
    # Aggregate of all keys except images, the most expensive read
    CACHE_ALL_TTL_SECONDS: float = 2.0
    # Images document, changes rarely
    CACHE_IMAGES_TTL_SECONDS: float = 60.0
    # Every other key
    CACHE_DEFAULT_TTL_SECONDS: float = 10.0

    # Migration Config
    # Run the image extraction migration once shortly after startup
    MIGRATE_ON_STARTUP: bool = True
    MIGRATE_STARTUP_DELAY_SECONDS: float = 0.5
    # Shared secret for the on-demand migration trigger.
    # When unset, the trigger only accepts loopback clients.
    MIGRATE_SECRET: str | None = None

    # CORS Config
    # Comma-separated list of allowed origins for CORS
    ALLOWED_ORIGINS: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get application configuration (Singleton)

    Returns:
        Settings: Application configuration instance
    """
    return Settings()
