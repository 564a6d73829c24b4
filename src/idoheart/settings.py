"""SDK settings and configuration."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """SDK settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="IDOHEART_",
        case_sensitive=False,
        extra="ignore",
    )

    # API
    api_key: str | None = Field(
        default=None,
        description="IDoHeart API key sent as X-API-Key",
    )
    base_url: str = Field(
        default="https://idoheart.com",
        description="Base host of the IDoHeart API",
    )

    # Local state
    storage_path: Path = Field(
        default=Path.home() / ".idoheart" / "store.json",
        description="JSON file holding sent referrals and the received code",
    )

    # Redemption
    allow_self_redemption: bool = Field(
        default=False,
        description="Allow redeeming a code this installation generated itself",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug-only facilities such as resetting the received code",
    )

    # Logging
    is_logging: bool = Field(
        default=True,
        description="Emit SDK log events",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        description="Log output format",
    )


# Global settings instance
settings = Settings()
