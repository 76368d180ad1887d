"""
Settings Configuration for Media Relay Service
Handles environment variables and application configuration
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service Configuration
    service_name: str = "Media Relay Service"
    version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 5060
    workers: int = 1
    log_level: str = "INFO"

    # Signaling Configuration
    websocket_path: str = "/api/signal"
    ws_max_size: int = 16 * 1024 * 1024  # 16MB per frame
    send_timeout_seconds: float = 5.0

    # Room Configuration
    room_key_max_digits: int = 4
    room_key_max_attempts: int = 16

    # Chunk Transport Configuration
    max_fragment_size: int = 40000  # raw bytes per fragment, stays under 64K once encoded

    # File Paths
    log_storage_path: str = "./logs"
    log_to_file: bool = True

    # Security Configuration
    allowed_origins: List[str] = ["*"]

    # Development Configuration
    debug: bool = False
    reload: bool = False


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance"""
    return Settings()
