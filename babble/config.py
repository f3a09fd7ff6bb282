"""
Babble Service Configuration
"""

from typing import List, Literal
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # ===== Service =====
    SERVICE_NAME: str = Field(default="babble-service")
    SERVICE_VERSION: str = Field(default="1.0.0")
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)
    LOG_LEVEL: str = Field(default="info")
    LOG_JSON: bool = Field(default=False)
    DEBUG: bool = Field(default=False)

    # ===== CORS =====
    CORS_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"]
    )

    # ===== Generation Defaults =====
    DEFAULT_ORDER: int = Field(default=2)
    DEFAULT_MODE: Literal["char", "word"] = Field(default="char")
    DEFAULT_LENGTH: int = Field(default=100)
    DEFAULT_TEMPERATURE: float = Field(default=1.0)

    # ===== Limits =====
    MAX_ORDER: int = Field(default=5)
    MAX_GENERATE_LENGTH: int = Field(default=5000)
    MAX_TEMPERATURE: float = Field(default=5.0)
    MAX_UPLOAD_BYTES: int = Field(default=2 * 1024 * 1024)
    MAX_MODELS: int = Field(default=32)

    # ===== Performance =====
    GENERATION_TIMEOUT: float = Field(default=30.0)
    TRAINING_TIMEOUT: float = Field(default=60.0)

    # >>> pydantic v2 settings config <<<
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
