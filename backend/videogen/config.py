"""Application configuration using Pydantic Settings."""
from pathlib import Path
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # Application
    APP_NAME: str = "Video Generation Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./data/videogen.db"

    # Redis (Celery broker + status pub/sub)
    REDIS_URL: str = "redis://redis:6379/0"
    BROADCAST_ENABLED: bool = True

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Replicate
    REPLICATE_API_TOKEN: str = ""
    REPLICATE_API_URL: str = "https://api.replicate.com/v1"
    REPLICATE_MODEL: str = "bytedance/seedance-1-lite"
    MODEL_TYPE: str = "seedance-1-lite"
    PROVIDER_TIMEOUT_SECONDS: float = 60.0

    # Generation defaults sent to the provider
    DEFAULT_DURATION: int = 5
    DEFAULT_ASPECT_RATIO: str = "16:9"
    DEFAULT_RESOLUTION: str = "720p"
    DEFAULT_FPS: int = 24
    CAMERA_FIXED: bool = False

    # Background reconciliation
    RECONCILE_INTERVAL_SECONDS: float = 30.0
    RECONCILE_BATCH_SIZE: int = 50
    PENDING_STALE_SECONDS: int = 300  # pending rows older than this are orphans

    # Listing
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def sqlite_path(self) -> Path | None:
        if not self.DATABASE_URL.startswith("sqlite:///"):
            return None
        raw = self.DATABASE_URL.replace("sqlite:///", "")
        if not raw or raw == ":memory:":
            return None
        return Path(raw)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
