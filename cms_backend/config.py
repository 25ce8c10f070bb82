"""Configuration management using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database settings (tables are owned by the CMS, we only read them)
    db_server: str = "localhost"
    db_name: str = "cms"
    db_user: str = "cms"
    db_password: str = ""
    db_port: int = 5432
    db_pool_size: int = 10
    db_max_overflow: int = 20
    sql_echo: bool = False
    # Full SQLAlchemy URL, takes precedence over the db_* parts when set
    database_url_override: str = ""

    # Server settings
    host: str = "0.0.0.0"
    port: int = 1337
    cors_allow_origins: str = "*"

    # Search engine connection
    search_host: str = "search"
    search_port: int = 7700
    search_protocol: str = "http"
    search_api_key: str = ""
    search_timeout: int = 10  # seconds, per request
    search_collection_name: str = "search_content_v2"

    # Search synchronization
    search_sync_enabled: bool = True
    search_sync_batch_size: int = 50
    # Pause between batch imports so a full sync never floods the engine
    search_sync_batch_delay_seconds: float = 0.2
    # Let the app finish booting before the startup sync decision runs
    search_sync_startup_delay_seconds: float = 10.0
    # Full resync when index count < threshold * published rows
    search_resync_threshold: float = 0.9
    # Daily consistency backstop (minute hour day month weekday)
    search_sync_cron: str = "0 3 * * *"
    # Run the daily sync inside the web process. Disable when the arq worker runs it.
    search_sync_cron_in_app: bool = True
    # Shared secret for the admin sync endpoints. Empty disables them.
    search_admin_token: str = ""

    # Redis settings (arq worker queue)
    redis_url: str = "redis://localhost:6379/0"

    @property
    def database_url(self) -> str:
        """Build PostgreSQL async connection string."""
        if self.database_url_override:
            return self.database_url_override
        from urllib.parse import quote_plus
        return (
            f"postgresql+asyncpg://{self.db_user}:{quote_plus(self.db_password)}"
            f"@{self.db_server}:{self.db_port}/{self.db_name}"
        )

    @property
    def search_url(self) -> str:
        """Build the search engine base URL."""
        return f"{self.search_protocol}://{self.search_host}:{self.search_port}"

    @property
    def cors_origins(self) -> list[str]:
        """Parse the comma-separated CORS origin list."""
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]


# Global settings instance
settings = Settings()
