"""
Core configuration module for the Atma catalog service.
Settings are loaded from environment variables (and an optional .env file).
"""

from pydantic_settings import BaseSettings
import logging

logger = logging.getLogger(__name__)

PLACEHOLDER_ADMIN_KEY = "CHANGE-ME-IN-DOTENV"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Defaults run against a local SQLite file.
    """

    # Application
    app_name: str = "Atma Catalog"
    app_version: str = "1.0.0"
    environment: str = "production"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./atma_catalog.db"
    database_pool_size: int = 10
    database_max_overflow: int = 20
    database_pool_recycle: int = 1800  # Recycle connections after 30 min
    database_pool_pre_ping: bool = True

    # API Configuration
    api_prefix: str = "/api/v1"
    api_host: str = "0.0.0.0"
    api_port: int = 8890
    api_workers: int = 4

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # "text" or "json"

    # CORS
    cors_origins: list = ["http://localhost:3000", "http://127.0.0.1:3000"]
    cors_allow_credentials: bool = False
    cors_allow_methods: list = ["GET", "OPTIONS"]
    cors_allow_headers: list = ["Content-Type", "Accept", "X-API-Key", "X-Request-ID"]

    # Admin API key unlocks admin-only listing variants (MUST be set via .env in production)
    admin_api_key: str = PLACEHOLDER_ADMIN_KEY

    # Catalog
    default_page_size: int = 10
    max_page_size: int = 100
    min_text_length: int = 2
    placeholder_image: str = "/img/placeholder.jpg"

    # Rate limiting
    rate_limit_enabled: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
