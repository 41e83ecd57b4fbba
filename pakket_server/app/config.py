"""Runtime settings for the package registration server."""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration loaded from ``PAKKET_*`` environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="PAKKET_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Pakket Portaal API"
    api_prefix: str = "/api"
    database_url: str = Field(
        default="sqlite:///pakket.db",
        description="SQLAlchemy URL of the relational store.",
    )

    reservation_minutes: int = Field(default=30, ge=1, description="Lifetime of a package number reservation.")
    max_generation_attempts: int = Field(default=50, ge=1)
    max_reservation_attempts: int = Field(default=5, ge=1)

    status_policy: Literal["free", "forward"] = Field(
        default="free",
        description="'free' allows any status change, 'forward' only the next step.",
    )
    enforce_reservation_liveness: bool = Field(
        default=False,
        description="Require a live reservation owned by the caller before a package is registered.",
    )

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return str(value).strip().upper()


settings = Settings()
