"""Configuration for the pairing service."""

from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

# Find the .env file relative to the project root.
PROJECT_ROOT = Path(__file__).parent.parent
ENV_FILE = PROJECT_ROOT / ".env"

# Published in .env.example; only fit for local development.
DEFAULT_JWT_SECRET = "change-me-in-production-0123456789abcdef"


class Settings(BaseSettings):
    """Pairing service settings."""

    model_config = SettingsConfigDict(env_file=str(ENV_FILE), env_file_encoding="utf-8", extra="ignore")

    # Server
    pairing_host: str = "0.0.0.0"
    pairing_port: int = 8000
    cors_origins: List[str] = ["*"]

    # Room store
    store_backend: str = "redis"
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None
    store_retry_backoff_seconds: float = 0.2

    # Room codes
    room_code_length: int = 6
    room_code_alphabet: str = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
    code_max_attempts: int = 10

    # Expiry
    waiting_room_ttl_seconds: int = 600
    sweeper_enabled: bool = True
    sweep_interval_seconds: float = 60.0

    # Identity
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithms: List[str] = ["HS256"]
    jwt_audience: Optional[str] = None
    jwt_issuer: Optional[str] = None
    jwt_jwks_url: Optional[str] = None

    # Environment
    log_level: str = "INFO"
    environment: str = "development"


settings = Settings()
