"""
Settings for swapstudio, read from the environment and an optional .env file.

Timing values are in seconds. STUDIO_TIME_SCALE stretches or shrinks every
progress message offset and auto-clear delay at once.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # llama-swap service manager
    CONTROL_PLANE_URL: str = "http://127.0.0.1:8091"
    CONTROL_PLANE_TIMEOUT: float = Field(default=120.0, gt=0)  # restarts are slow
    CONTROL_PLANE_READ_ATTEMPTS: int = Field(default=3, ge=1)
    CONTROL_PLANE_RETRY_DELAY: float = Field(default=0.5, ge=0)

    STUDIO_TIME_SCALE: float = Field(default=1.0, ge=0)
    MODEL_SAVE_CLEARS_ALL_EDITS: bool = False
    LOAD_ON_STARTUP: bool = True

    HOST: str = "127.0.0.1"
    PORT: int = 8095
    DEBUG: bool = False
    CORS_ORIGINS: str = "*"

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "console"

    @field_validator("CONTROL_PLANE_URL")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def cors_origins_list(self) -> list[str]:
        """CORS_ORIGINS split on commas; "*" allows every origin."""
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()
