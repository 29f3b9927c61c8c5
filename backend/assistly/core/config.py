"""
Configuration settings using Pydantic
"""
from functools import lru_cache
from typing import Optional
from pathlib import Path
from pydantic_settings import BaseSettings

# Get the backend directory
BACKEND_DIR = Path(__file__).resolve().parent.parent.parent
ENV_FILE = BACKEND_DIR / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # App
    APP_NAME: str = "Assistly"
    DEBUG: bool = False

    # Flow / plan / attachment storage
    API_BASE_URL: str = "http://localhost:8000/api/v1"
    API_TOKEN: Optional[str] = None
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Chat channel (websocket) and file upload side channel
    WS_URL: str = "ws://localhost:8000"
    UPLOAD_BASE_URL: Optional[str] = None  # Falls back to API_BASE_URL
    MAX_UPLOAD_MB: int = 10

    @property
    def UPLOAD_URL(self) -> str:
        """Base URL for the chat upload endpoints"""
        return self.UPLOAD_BASE_URL or self.API_BASE_URL

    @property
    def MAX_UPLOAD_BYTES(self) -> int:
        return self.MAX_UPLOAD_MB * 1024 * 1024

    # Widget embedding
    WIDGET_OPEN_HEIGHT: int = 500
    WIDGET_CLOSED_HEIGHT: int = 100

    # Country detection
    DEFAULT_COUNTRY_CODE: str = "US"
    COUNTRY_LOOKUP_URL: Optional[str] = None  # e.g. http://ip-api.com/json/?fields=countryCode

    # Authoring
    TITLE_MAX_LENGTH: int = 100

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    class Config:
        env_file = str(ENV_FILE)
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
