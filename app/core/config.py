"""Application configuration and settings"""
from pydantic_settings import BaseSettings
from typing import List, Optional
import secrets


class Settings(BaseSettings):
    """Application settings and configuration"""

    # API Settings
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Gemini Key Gateway"
    VERSION: str = "1.0.0"
    DESCRIPTION: str = "Authenticated gateway to the Gemini API with rotating upstream keys"

    # Security
    SECRET_KEY: str = secrets.token_urlsafe(32)
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    RELOAD: bool = False

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Key-value store (Upstash exposes a rediss:// URL)
    REDIS_URL: Optional[str] = None
    GEMINI_KEYS_REDIS_KEY: str = "gemini:api_keys"
    USAGE_STATS_PREFIX: str = "usage"
    REQUEST_LOG_REDIS_KEY: str = "requests:log"
    REQUEST_LOG_MAX_ENTRIES: int = 10000

    # Gemini
    GEMINI_API_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/models"
    GEMINI_MODEL: str = "gemini-1.5-flash"
    GEMINI_TIMEOUT_SECONDS: float = 30.0
    GEMINI_KEY_ENV_PREFIX: str = "GEMINI_API_KEY"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/app.log"

    # Rate Limiting (per user, fixed window)
    USER_RATE_LIMIT: int = 1000
    USER_RATE_WINDOW_SECONDS: int = 3600

    class Config:
        case_sensitive = True
        env_file = ".env"


settings = Settings()
