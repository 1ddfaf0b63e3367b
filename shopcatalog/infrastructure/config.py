"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False
    slow_request_ms: float = 1000.0

    # Database
    database_url: str = "postgresql+asyncpg://shopcatalog:shopcatalog_dev_password@db:5432/shopcatalog"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: float = 30.0
    db_command_timeout: float | None = 10.0

    # Catalog
    default_locale: str = "en"
    catalog_locales: list[str] = ["en", "fr"]
    default_page_size: int = 12
    max_page_size: int = 100
    category_max_depth: int = 64
    catalog_timezone: str = "UTC"

    # Storefront views
    best_sellers_limit: int = 10
    storefront_highlight_limit: int = 20
    storefront_list_limit: int = 100

    # Logging
    log_level: str = "INFO"

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
