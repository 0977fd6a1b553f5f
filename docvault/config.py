import logging
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "docvault-client"
    app_env: str = "dev"
    api_base_url: str = "http://localhost:8080/api"
    client_origin: str = "http://localhost:5173"
    request_timeout_seconds: float = 30.0
    connect_timeout_seconds: float = 10.0
    shared_blob_ttl_seconds: float = 3600
    view_blob_ttl_seconds: float = 10
    default_expiry_days: int = 30
    default_max_views: int = 100
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_prefix="DOCVAULT_")


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings | None = None) -> logging.Logger:
    settings = settings or get_settings()
    logger = logging.getLogger("docvault")
    logger.setLevel(settings.log_level.upper())
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return logger
