"""Configuration management for the External Editor host.

Host-wide settings are loaded with Pydantic settings from environment
variables or a .env file. Per-request behaviour (editor command, header
policy, temporary directory) always comes from the request itself.
"""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Browsers refuse single messages from a native host above 1 MiB.
DEFAULT_MAX_FRAME_SIZE = 1024 * 1024
DEFAULT_MAX_BODY_LENGTH = 768 * 1024


class Settings(BaseSettings):
    """Host settings with environment variable support.

    All settings can be overridden via environment variables with
    the EXTERNAL_EDITOR_ prefix (e.g., EXTERNAL_EDITOR_LOG_LEVEL).
    """

    model_config = SettingsConfigDict(
        env_prefix="EXTERNAL_EDITOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Transport
    max_frame_size: int = Field(
        default=DEFAULT_MAX_FRAME_SIZE,
        gt=0,
        description="Largest frame the host may write to the mail client, in bytes",
    )
    max_body_length: int = Field(
        default=DEFAULT_MAX_BODY_LENGTH,
        gt=0,
        description=(
            "Largest JSON-encoded body slice carried by one response chunk. "
            "Must leave headroom below max_frame_size for the other fields."
        ),
    )

    # Editor
    homebrew_prefix: str = Field(
        default="/usr/local/bin/",
        description="Directory prepended to generated editor commands on macOS",
    )

    # Native messaging manifest
    native_app_name: str = Field(
        default="external_editor_revived",
        description="Name the mail client uses to look up this host",
    )
    extension_id: str = Field(
        default="external-editor-revived@tsundere.moe",
        description="Extension allowed to connect to this host",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    @model_validator(mode="after")
    def _check_body_fits_frame(self) -> "Settings":
        if self.max_body_length >= self.max_frame_size:
            raise ValueError("max_body_length must be smaller than max_frame_size")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached host settings.

    Returns:
        Settings: Host settings instance.
    """
    return Settings()
