# core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional


class Settings(BaseSettings):
    """
    Centralized application configuration.
    Grouped logically for readability.
    """

    # ------------------------------------------------------------
    # Project / Runtime
    # ------------------------------------------------------------
    PROJECT_NAME: str = "BioQuest Generation Gateway"
    DEBUG: bool = False
    ENABLE_CORS: bool = True

    # HTTP / API
    FRONTEND_ENDPOINT: str = ""
    BACKEND_ENDPOINT: str = ""
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_MIN: str = "30"

    # ------------------------------------------------------------
    # Feature guard
    # ------------------------------------------------------------
    """
    Short-circuits every generation endpoint with a 503 before any
    provider call or quota mutation happens
    """
    GENERATION_DISABLED: bool = False

    # ------------------------------------------------------------
    # Provider credentials (base URLs are fixed per provider)
    # ------------------------------------------------------------
    MESHY_API_KEY: Optional[str] = Field(
        default=None,
        description="Text-to-3D provider API key"
    )
    BLOCKADE_API_KEY: Optional[str] = Field(
        default=None,
        description="Skybox provider API key"
    )
    PROVIDER_REQUEST_TIMEOUT_SECONDS: float = 30.0

    # ------------------------------------------------------------
    # Generation quota
    # ------------------------------------------------------------
    MAX_CONCURRENT_GENERATIONS: int = Field(
        default=2,
        ge=1,
        description="Maximum in-flight generation jobs per client identifier"
    )
    QUOTA_RESET_INTERVAL_SECONDS: float = Field(
        default=600.0,
        gt=0,
        description="Whole quota map is cleared on this fixed interval"
    )
    QUOTA_BACKEND: str = Field(
        default="memory",
        description="'memory' (per-process map) or 'redis' (shared counter)"
    )
    JOB_RETENTION_SECONDS: float = 3600.0

    # ------------------------------------------------------------
    # Polling / pipeline
    # ------------------------------------------------------------
    SKYBOX_POLL_INTERVAL_SECONDS: float = 5.0
    SKYBOX_POLL_MAX_ATTEMPTS: int = 60
    SKYBOX_STYLE_ID: int = 2
    REFINE_SUBMIT_TIMEOUT_SECONDS: float = 8.0

    # ------------------------------------------------------------
    # Asset proxy
    # ------------------------------------------------------------
    ASSET_PROXY_TIMEOUT_SECONDS: float = 60.0

    # ------------------------------------------------------------
    # Redis Configuration
    # ------------------------------------------------------------
    """
    Redis connection settings, only used when QUOTA_BACKEND == "redis"
    """
    REDIS_HOST: str = Field(
        default="localhost",
        description="Redis server hostname"
    )
    REDIS_PORT: int = Field(
        default=6379,
        description="Redis server port"
    )
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    REDIS_SSL: bool = False
    REDIS_SOCKET_TIMEOUT: float = 5.0
    REDIS_SOCKET_CONNECT_TIMEOUT: float = 5.0
    REDIS_MAX_CONNECTIONS: int = 20
    REDIS_QUOTA_PREFIX: str = "genquota:"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
